import asyncio
import logging
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from core.config import settings
from core.errors import DeliveryError

logger = logging.getLogger(__name__)

_twilio_client: Optional[Client] = None


def get_twilio_client() -> Optional[Client]:
    global _twilio_client
    if _twilio_client is not None:
        return _twilio_client
    if not settings.TWILIO_ACCOUNT_SID or not settings.TWILIO_AUTH_TOKEN:
        logger.warning("Twilio credentials are not set")
        return None
    _twilio_client = Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
    return _twilio_client


def send_otp_sms(phone: str, otp_code: int, expire_minutes: int) -> None:
    """Send the code through Twilio. Raises DeliveryError on failure."""
    client = get_twilio_client()
    if client is None or not settings.TWILIO_PHONE_NUMBER:
        raise DeliveryError("SMS provider is not configured")
    try:
        message = client.messages.create(
            body=f"Your OTP is {otp_code}. It will expire in {expire_minutes} minutes.",
            from_=settings.TWILIO_PHONE_NUMBER,
            to=phone,
        )
    except TwilioException as exc:
        logger.error(f"Twilio error sending OTP to {phone}: {exc}")
        raise DeliveryError(f"Failed to send sms: {exc}") from exc
    logger.info(f"OTP SMS queued for {phone} (sid={getattr(message, 'sid', '-')}, status={getattr(message, 'status', '-')})")


class SmsChannel:
    """Delivers OTP codes by SMS; the Twilio REST call runs in a worker thread."""
    name = "SMS"

    def __init__(self, expire_minutes: Optional[int] = None):
        self.expire_minutes = expire_minutes or settings.OTP_EXPIRE_MINUTES

    async def send(self, number: str, code: int) -> None:
        await asyncio.to_thread(send_otp_sms, number, code, self.expire_minutes)
