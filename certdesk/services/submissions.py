"""Submission intake and persistence."""

from __future__ import annotations

from datetime import timezone

from flask import current_app

from ..app import db
from ..errors import NotFoundError, ValidationError
from ..models import FULFILLMENT_FIELDS, Submission
from ..shared.mail_utils import clean_email, is_valid_email
from ..shared.time import parse_client_timestamp

# client key -> column
_LOCATION_FIELDS = {
    "latitude": "latitude",
    "longitude": "longitude",
    "accuracy": "location_accuracy",
    "city": "city",
    "state": "state",
    "country": "country",
    "countryCode": "country_code",
    "fullAddress": "full_address",
}
_FLOAT_COLUMNS = {"latitude", "longitude", "location_accuracy"}


def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def validate_intake(payload: dict | None) -> dict:
    """Turn a client payload into column values for a new submission.

    Raises :class:`ValidationError` without touching the database.
    """

    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    name = _text(payload.get("name"))
    if not name:
        raise ValidationError("Name is required")

    email = clean_email(payload.get("email"))
    phone = _text(payload.get("phone"))
    if not email and not phone:
        raise ValidationError("Either email or phone is required")
    if email and not is_valid_email(email):
        raise ValidationError("Email address is not valid")

    fields = {
        "name": name,
        "email": email,
        "phone": phone,
        "message": _text(payload.get("message")),
    }

    location = payload.get("location") or {}
    if not isinstance(location, dict):
        raise ValidationError("Location must be an object")
    for client_key, column in _LOCATION_FIELDS.items():
        raw = location.get(client_key)
        if raw in (None, ""):
            fields[column] = None
            continue
        if column in _FLOAT_COLUMNS:
            try:
                fields[column] = float(raw)
            except (TypeError, ValueError):
                raise ValidationError(f"Location {client_key} must be a number")
        else:
            fields[column] = _text(raw)
    try:
        stamp = parse_client_timestamp(location.get("timestamp"))
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Location timestamp is not valid")
    if stamp is not None and stamp.tzinfo is not None:
        stamp = stamp.astimezone(timezone.utc).replace(tzinfo=None)
    fields["location_timestamp"] = stamp
    return fields


def insert(fields: dict) -> Submission:
    clean = {k: v for k, v in fields.items() if k not in FULFILLMENT_FIELDS}
    submission = Submission(**clean)
    db.session.add(submission)
    db.session.commit()
    current_app.logger.info("[SUBMISSION] created id=%s", submission.id)
    return submission


def get_by_id(submission_id: int) -> Submission:
    submission = db.session.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError()
    return submission


def update(submission: Submission, **fields) -> Submission:
    for key, value in fields.items():
        setattr(submission, key, value)
    db.session.commit()
    return submission


def list_all() -> list[Submission]:
    return (
        db.session.query(Submission)
        .order_by(Submission.created_at.desc(), Submission.id.desc())
        .all()
    )
