from __future__ import annotations

from io import BytesIO

from flask import Blueprint, jsonify, request, send_file

from ..constants import ARTIFACT_CONTENT_TYPE, EVENT_FILE_SLUG
from ..services import submissions
from ..services.fulfillment import FulfillmentResult, get_orchestrator
from ..shared.channels import Channel
from ..shared.mail_utils import attachment_filename

bp = Blueprint("submissions", __name__, url_prefix="/api/submissions")


def _intake_message(result: FulfillmentResult) -> str:
    if result.channel is Channel.NONE:
        return "Registration successful! Certificate can be collected later."
    if not result.sent:
        return "Registration successful! We could not deliver your certificate yet; it will be resent."
    if result.channel is Channel.EMAIL:
        return "Registration successful! Certificate has been sent to your email."
    return "Registration successful! A link to your certificate has been sent to your phone."


@bp.post("")
def create_submission():
    fields = submissions.validate_intake(request.get_json(silent=True))
    submission = submissions.insert(fields)
    result = get_orchestrator().fulfill(submission)
    return (
        jsonify(
            {
                "message": _intake_message(result),
                "id": submission.id,
                "fulfillment": result.to_dict(),
            }
        ),
        201,
    )


@bp.get("")
def list_submissions():
    return jsonify([row.to_dict() for row in submissions.list_all()])


@bp.get("/<int:submission_id>")
def get_submission(submission_id: int):
    return jsonify(submissions.get_by_id(submission_id).to_dict())


@bp.post("/<int:submission_id>/certificate")
def regenerate_certificate(submission_id: int):
    submission = submissions.get_by_id(submission_id)
    orchestrator = get_orchestrator()
    artifact = orchestrator.ensure_artifact(submission, force=True)
    return jsonify(
        {
            "message": "Certificate generated successfully",
            "certificate_key": artifact.key,
            "certificate_url": orchestrator.access_url(submission, artifact),
        }
    )


def _send(submission_id: int, channel: Channel, destination_attr: str):
    submission = submissions.get_by_id(submission_id)
    result = get_orchestrator().fulfill(submission, channel=channel)
    result.raise_for_error()
    destination = getattr(submission, destination_attr)
    return jsonify(
        {
            "message": f"Certificate sent successfully to {destination}",
            **result.to_dict(),
        }
    )


@bp.post("/<int:submission_id>/send-email")
def send_email(submission_id: int):
    return _send(submission_id, Channel.EMAIL, "email")


@bp.post("/<int:submission_id>/send-sms")
def send_sms(submission_id: int):
    return _send(submission_id, Channel.SMS, "phone")


@bp.get("/<int:submission_id>/certificate/download")
def download_certificate(submission_id: int):
    submission = submissions.get_by_id(submission_id)
    pdf = get_orchestrator().fetch_artifact(submission)
    return send_file(
        BytesIO(pdf),
        mimetype=ARTIFACT_CONTENT_TYPE,
        as_attachment=True,
        download_name=attachment_filename(EVENT_FILE_SLUG, submission.name),
    )
