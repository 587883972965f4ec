from __future__ import annotations


class CertdeskError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    public_message = "Internal error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(CertdeskError):
    status_code = 400
    public_message = "Invalid submission"


class NotFoundError(CertdeskError):
    status_code = 404
    public_message = "Participant not found"


class FulfillmentError(CertdeskError):
    """A collaborator failed while fulfilling a certificate.

    ``step`` names the stage of the chain that failed so that a caller can
    decide whether a retry makes sense.
    """

    step = "fulfill"

    def __init__(
        self,
        message: str | None = None,
        *,
        submission_id: int | None = None,
        step: str | None = None,
    ):
        super().__init__(message)
        self.submission_id = submission_id
        if step:
            self.step = step

    def __str__(self) -> str:
        return f"{self.message} (submission={self.submission_id} step={self.step})"


class RenderError(FulfillmentError):
    step = "render"
    public_message = "Failed to generate certificate"


class StorageError(FulfillmentError):
    status_code = 502
    step = "store"
    public_message = "Failed to store certificate"


class DeliveryError(FulfillmentError):
    status_code = 502
    step = "notify"
    public_message = "Failed to send certificate"
