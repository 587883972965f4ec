from __future__ import annotations

from sqlalchemy import false
from sqlalchemy.orm import validates

from .app import db
from .shared.channels import Channel

# Columns written only by the fulfillment workflow; never accepted from clients.
FULFILLMENT_FIELDS = (
    "certificate_key",
    "certificate_url",
    "certificate_sent",
    "certificate_sent_at",
    "delivery_channel",
)


class Submission(db.Model):
    __tablename__ = "submissions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, default="")
    phone = db.Column(db.String(50), nullable=False, default="")
    message = db.Column(db.Text, nullable=False, default="")

    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    location_accuracy = db.Column(db.Float)
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    country = db.Column(db.String(100))
    country_code = db.Column(db.String(10))
    full_address = db.Column(db.Text)
    location_timestamp = db.Column(db.DateTime)

    certificate_key = db.Column(db.String(500))
    certificate_url = db.Column(db.Text)
    certificate_sent = db.Column(
        db.Boolean, nullable=False, default=False, server_default=false()
    )
    certificate_sent_at = db.Column(db.DateTime)
    delivery_channel = db.Column(db.String(10))

    created_at = db.Column(db.DateTime, server_default=db.func.now())

    @validates("delivery_channel")
    def _check_channel(self, key, value):
        if value is None:
            return value
        return Channel(value).value

    @validates("certificate_sent")
    def _sent_is_monotonic(self, key, value):
        if self.certificate_sent and not value:
            raise ValueError("certificate_sent cannot be reset once true")
        return bool(value)

    @property
    def has_contact(self) -> bool:
        return bool((self.email or "").strip() or (self.phone or "").strip())

    def to_dict(self) -> dict:
        def iso(value):
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "name": self.name,
            "email": self.email or "",
            "phone": self.phone or "",
            "message": self.message or "",
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location_accuracy": self.location_accuracy,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "country_code": self.country_code,
            "full_address": self.full_address,
            "location_timestamp": iso(self.location_timestamp),
            "certificate_key": self.certificate_key,
            "certificate_sent": bool(self.certificate_sent),
            "certificate_sent_at": iso(self.certificate_sent_at),
            "delivery_channel": self.delivery_channel,
            "created_at": iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Submission {self.id} {self.name!r}>"
