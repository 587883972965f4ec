import logging

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from .errors import DeliveryError

logger = logging.getLogger("certdesk.sms")


class SmsSender:
    """Thin wrapper around the Twilio REST client.

    The client is created on the first send and reused afterwards.
    """

    def __init__(self, account_sid: str | None, auth_token: str | None, from_number: str | None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client: Client | None = None

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def _get_client(self) -> Client:
        if not self.configured:
            raise DeliveryError("Twilio credentials are not properly configured")
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
            logger.info("[SMS-INIT] twilio client ready from=%s", self.from_number)
        return self._client

    def send(self, to: str, body: str) -> str:
        client = self._get_client()
        try:
            message = client.messages.create(body=body, from_=self.from_number, to=to)
        except (TwilioException, OSError) as exc:
            logger.info("[SMS-OUT] to=%s result=%s", to, exc)
            raise DeliveryError(f"SMS delivery failed: {exc}") from exc
        logger.info("[SMS-OUT] to=%s sid=%s result=sent", to, message.sid)
        return message.sid

    def close(self) -> None:
        self._client = None
