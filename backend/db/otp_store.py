from datetime import datetime, timezone
from typing import Optional

from schemas.otp_schema import OtpRecord


def as_utc(value: datetime) -> datetime:
    """Drivers hand back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class OtpStore:
    """Persistence operations the OTP service relies on.

    Implementations raise ``core.errors.StoreError`` when the backend fails.
    """

    async def count_recent(self, email: Optional[str], phone: Optional[str], since: datetime) -> int:
        """Count records for ``email`` OR ``phone`` created at or after ``since``."""
        raise NotImplementedError

    async def delete_by_email(self, email: str) -> int:
        raise NotImplementedError

    async def delete_by_phone(self, phone: str) -> int:
        raise NotImplementedError

    async def delete_one(self, record_id: str) -> bool:
        raise NotImplementedError

    async def delete_all(self) -> int:
        raise NotImplementedError

    async def save(self, record: OtpRecord) -> OtpRecord:
        """Insert ``record`` and return it with the store-assigned id."""
        raise NotImplementedError

    async def find_by_id(self, record_id: str) -> Optional[OtpRecord]:
        raise NotImplementedError

    async def find_current(self, email: Optional[str], phone: Optional[str], now: datetime) -> Optional[OtpRecord]:
        """Newest unexpired record for ``email`` OR ``phone``."""
        raise NotImplementedError

    async def ping(self) -> None:
        raise NotImplementedError
