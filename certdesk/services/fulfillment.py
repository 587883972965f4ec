"""Certificate fulfillment: render, store, notify, record.

A call runs a fixed chain of steps for one submission. Each step either
returns its value or raises a :class:`FulfillmentError` subclass naming the
step; the first error stops the chain and is reported on the result. Nothing
is retried here; callers re-invoke :meth:`FulfillmentOrchestrator.fulfill`.

What survives a failure:

* render or upload failed: the submission row is untouched.
* notification failed: the uploaded artifact and its key stay recorded and
  ``certificate_sent`` stays false, so the next call reuses the artifact and
  only retries the notification.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Any, Callable

from flask import current_app

from ..certgen import CertificateAssets, render_certificate_pdf
from ..constants import ARTIFACT_CONTENT_TYPE, DEFAULT_ARTIFACT_URL_TTL_SECONDS
from ..errors import DeliveryError, FulfillmentError, RenderError, StorageError, ValidationError
from ..extensions import clients
from ..models import Submission
from ..shared.channels import Channel, contact_for, select_channel
from ..shared.storage import materialized
from ..shared.time import now_utc
from . import submissions
from .artifact_store import build_artifact_store
from .notifiers import build_email_notifier, build_sms_notifier

logger = logging.getLogger("certdesk.fulfillment")


@dataclass(frozen=True)
class ArtifactRef:
    key: str
    url: str | None
    regenerated: bool
    local_path: str | None = None
    issued_on: date | None = None


@dataclass
class FulfillmentResult:
    submission_id: int
    channel: Channel
    sent: bool = False
    artifact_key: str | None = None
    artifact_url: str | None = None
    regenerated: bool = False
    message_id: str | None = None
    error: FulfillmentError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> "FulfillmentResult":
        if self.error is not None:
            raise self.error
        return self

    def to_dict(self) -> dict:
        return {
            "submission_id": self.submission_id,
            "channel": self.channel.value,
            "sent": self.sent,
            "artifact_key": self.artifact_key,
            "regenerated": self.regenerated,
            "error": self.error.public_message if self.error else None,
            "failed_step": self.error.step if self.error else None,
        }


def artifact_key_for(submission_id: int, at: datetime) -> str:
    return f"certificate_{submission_id}_{int(at.timestamp() * 1000)}.pdf"


def issue_date_from_key(key: str | None) -> date | None:
    """Recover the render date encoded in a key built by :func:`artifact_key_for`."""
    stem = (key or "").rsplit(".", 1)[0]
    millis = stem.rsplit("_", 1)[-1]
    if not millis.isdigit():
        return None
    return datetime.fromtimestamp(int(millis) / 1000, tz=timezone.utc).date()


class FulfillmentOrchestrator:
    def __init__(
        self,
        store,
        email_notifier,
        sms_notifier,
        *,
        assets: CertificateAssets | None = None,
        work_dir: str | None = None,
        url_ttl: int = DEFAULT_ARTIFACT_URL_TTL_SECONDS,
        renderer: Callable[..., bytes] = render_certificate_pdf,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self.email_notifier = email_notifier
        self.sms_notifier = sms_notifier
        self.assets = assets or CertificateAssets()
        self.work_dir = work_dir
        self.url_ttl = url_ttl
        self.renderer = renderer
        self.clock = clock

    def _call(self, error_cls: type[FulfillmentError], submission: Submission, fn, *args) -> Any:
        """Run one collaborator call, mapping foreign exceptions to ``error_cls``."""
        try:
            return fn(*args)
        except FulfillmentError as exc:
            if exc.submission_id is None:
                exc.submission_id = submission.id
            raise
        except Exception as exc:
            raise error_cls(str(exc), submission_id=submission.id) from exc

    def choose_channel(self, submission: Submission, requested: Channel | None = None) -> Channel:
        if requested is None or requested is Channel.NONE:
            return select_channel(submission.email, submission.phone)
        if not contact_for(requested, submission.email, submission.phone):
            what = "email address" if requested is Channel.EMAIL else "phone number"
            raise ValidationError(f"No {what} found for this participant")
        return requested

    def _prepare_artifact(self, submission: Submission, force: bool, stack: ExitStack) -> ArtifactRef:
        key = submission.certificate_key
        if key and not force:
            if self._call(StorageError, submission, self.store.exists, key):
                logger.info("[FULFILL] submission=%s reuse key=%s", submission.id, key)
                issued_on = issue_date_from_key(key) or self.clock().date()
                return ArtifactRef(key, submission.certificate_url, regenerated=False, issued_on=issued_on)
            logger.info("[FULFILL] submission=%s stored artifact missing key=%s", submission.id, key)

        issued_at = self.clock()
        pdf = self._call(
            RenderError,
            submission,
            self.renderer,
            submission.name,
            submission.id,
            issued_at.date(),
            self.assets,
        )
        new_key = artifact_key_for(submission.id, issued_at)
        local_path = stack.enter_context(materialized(pdf, work_dir=self.work_dir))
        with open(local_path, "rb") as fh:
            url = self._call(StorageError, submission, self.store.put, new_key, fh, ARTIFACT_CONTENT_TYPE)
        submissions.update(submission, certificate_key=new_key, certificate_url=url)
        logger.info("[FULFILL] submission=%s stored key=%s", submission.id, new_key)
        return ArtifactRef(
            new_key, url, regenerated=True, local_path=local_path, issued_on=issued_at.date()
        )

    def _artifact_bytes(self, submission: Submission, artifact: ArtifactRef) -> bytes:
        if artifact.local_path:
            with open(artifact.local_path, "rb") as fh:
                return fh.read()
        return self._call(StorageError, submission, self.store.get, artifact.key)

    def access_url(self, submission: Submission, artifact: ArtifactRef) -> str:
        return self._call(StorageError, submission, self.store.access_url, artifact.key, self.url_ttl)

    def _notify(self, submission: Submission, channel: Channel, artifact: ArtifactRef) -> str:
        issue_date = artifact.issued_on
        if channel is Channel.EMAIL:
            attachment = self._artifact_bytes(submission, artifact)
            return self._call(
                DeliveryError,
                submission,
                self.email_notifier.send_certificate,
                submission.name,
                submission.email.strip(),
                attachment,
                submission.id,
                issue_date,
            )
        link = self.access_url(submission, artifact)
        return self._call(
            DeliveryError,
            submission,
            self.sms_notifier.send_certificate_link,
            submission.name,
            submission.phone,
            link,
            submission.id,
            issue_date,
        )

    def _record_sent(self, submission: Submission, channel: Channel) -> None:
        fields = {"certificate_sent": True, "delivery_channel": channel.value}
        if submission.certificate_sent_at is None:
            fields["certificate_sent_at"] = self.clock().replace(tzinfo=None)
        submissions.update(submission, **fields)

    def ensure_artifact(self, submission: Submission, *, force: bool = False) -> ArtifactRef:
        """Make sure a stored certificate exists; raises on failure."""
        with ExitStack() as stack:
            artifact = self._prepare_artifact(submission, force, stack)
        return replace(artifact, local_path=None)

    def fetch_artifact(self, submission: Submission) -> bytes:
        with ExitStack() as stack:
            artifact = self._prepare_artifact(submission, False, stack)
            return self._artifact_bytes(submission, artifact)

    def fulfill(
        self,
        submission: Submission,
        *,
        channel: Channel | None = None,
        force_regenerate: bool = False,
    ) -> FulfillmentResult:
        """Produce and deliver a certificate for ``submission``.

        Raises :class:`ValidationError` only when a forced ``channel`` has no
        contact detail; collaborator failures are returned on the result.
        """

        chosen = self.choose_channel(submission, channel)
        result = FulfillmentResult(submission_id=submission.id, channel=chosen)
        if chosen is Channel.NONE:
            logger.info("[FULFILL] submission=%s channel=none nothing to send", submission.id)
            return result

        try:
            with ExitStack() as stack:
                artifact = self._prepare_artifact(submission, force_regenerate, stack)
                result.artifact_key = artifact.key
                result.artifact_url = artifact.url
                result.regenerated = artifact.regenerated
                result.message_id = self._notify(submission, chosen, artifact)
            self._record_sent(submission, chosen)
            result.sent = True
        except FulfillmentError as exc:
            logger.warning(
                "[FULFILL] submission=%s channel=%s step=%s failed: %s",
                submission.id,
                chosen.value,
                exc.step,
                exc.message,
            )
            result.error = exc
            return result

        logger.info(
            "[FULFILL] submission=%s channel=%s sent=true key=%s regenerated=%s",
            submission.id,
            chosen.value,
            result.artifact_key,
            result.regenerated,
        )
        return result


def get_orchestrator() -> FulfillmentOrchestrator:
    """Build an orchestrator wired to the current app's shared clients."""
    cfg = current_app.config
    registry = clients()
    return FulfillmentOrchestrator(
        registry.get("artifact_store", build_artifact_store),
        registry.get("email_notifier", build_email_notifier),
        registry.get("sms_notifier", build_sms_notifier),
        assets=CertificateAssets.from_config(cfg),
        work_dir=cfg.get("CERT_WORK_DIR"),
        url_ttl=int(cfg.get("ARTIFACT_URL_TTL_SECONDS") or DEFAULT_ARTIFACT_URL_TTL_SECONDS),
    )
