from datetime import datetime, timezone
from typing import Callable, List, Optional
import logging
import random

from core.config import OtpPolicy
from core.errors import DeliveryFailed, InvalidCode, NotFound, RateLimitExceeded, ValidationError
from db.otp_store import OtpStore
from schemas.otp_schema import DeliveryResult, OtpRecord, VerificationResult
from utils.timing import timeit

logger = logging.getLogger(__name__)

_rng = random.SystemRandom()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp(length: int = 6) -> int:
    """Random numeric code with exactly ``length`` digits."""
    return _rng.randint(10 ** (length - 1), 10 ** length - 1)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class OtpService:
    """Issues, delivers and verifies one-time passcodes.

    The store and both channels are injected so that each request works on
    its own collaborators; the service keeps no state between calls.
    """

    def __init__(
        self,
        store: OtpStore,
        email_channel=None,
        sms_channel=None,
        policy: Optional[OtpPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.email_channel = email_channel
        self.sms_channel = sms_channel
        self.policy = policy or OtpPolicy()
        self.clock = clock

    @timeit("request_otp")
    async def request_otp(self, email: Optional[str] = None, phone: Optional[str] = None) -> DeliveryResult:
        email, phone = _clean(email), _clean(phone)
        if not email and not phone:
            raise ValidationError()

        now = self.clock()
        attempts = await self.store.count_recent(email, phone, since=now - self.policy.window)
        if attempts >= self.policy.max_attempts:
            # Only the rolling window is enforced; this timestamp is a hint for the client
            next_allowed = now + self.policy.block_duration
            logger.warning(f"OTP rate limit hit ({attempts} requests in window)")
            raise RateLimitExceeded(next_allowed)

        # Two independent deletes, not one combined filter
        if email:
            await self.store.delete_by_email(email)
        if phone:
            await self.store.delete_by_phone(phone)

        record = await self.store.save(OtpRecord(
            email=email,
            phone=phone,
            otp=generate_otp(self.policy.code_length),
            expiration=now + self.policy.expire_after,
            attempts=0,
            created_at=now,
        ))

        errors: List[str] = []
        email_sent = await self._deliver(self.email_channel, "Email", email, record.otp, errors) if email else None
        sms_sent = await self._deliver(self.sms_channel, "SMS", phone, record.otp, errors) if phone else None

        if not email_sent and not sms_sent:
            await self.store.delete_one(record.id)
            logger.error(f"OTP {record.id} rolled back, no channel delivered: {errors}")
            raise DeliveryFailed(errors)

        logger.info(f"OTP {record.id} issued (email_sent={email_sent}, sms_sent={sms_sent})")
        return DeliveryResult(
            email_sent=email_sent,
            sms_sent=sms_sent,
            errors=errors or None,
        )

    async def _deliver(self, channel, label: str, destination: str, code: int, errors: List[str]) -> bool:
        if channel is None:
            errors.append(f"{label} error: channel not configured")
            logger.error(f"{label} channel not configured")
            return False
        try:
            await channel.send(destination, code)
            return True
        except Exception as exc:
            # A failing channel must not prevent the other one from being tried
            errors.append(f"{label} error: {exc}")
            logger.error(f"{label} sending failed: {exc}")
            return False

    @timeit("verify_otp")
    async def verify_otp(self, record: Optional[OtpRecord], entered_code) -> VerificationResult:
        if record is None:
            raise NotFound()

        try:
            code = int(str(entered_code).strip())
        except (TypeError, ValueError):
            raise InvalidCode() from None
        if record.otp != code:
            logger.info(f"OTP {record.id} mismatch")
            raise InvalidCode()

        await self.store.delete_one(record.id)
        logger.info(f"OTP {record.id} verified and consumed")
        return VerificationResult()

    async def find_current_record(self, email: Optional[str] = None, phone: Optional[str] = None) -> Optional[OtpRecord]:
        """Latest unexpired record for the identifier(s); what verification is checked against."""
        email, phone = _clean(email), _clean(phone)
        if not email and not phone:
            return None
        return await self.store.find_current(email, phone, self.clock())

    async def clear_all(self) -> int:
        removed = await self.store.delete_all()
        logger.warning(f"Cleared all OTP records ({removed} removed)")
        return removed
