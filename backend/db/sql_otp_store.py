import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.errors import StoreError
from db.models.otp import OtpRecordModel
from db.otp_store import OtpStore, as_utc
from schemas.otp_schema import OtpRecord
from utils.db import safe_commit

logger = logging.getLogger(__name__)


def _identifier_clause(email: Optional[str], phone: Optional[str]):
    conditions = []
    if email:
        conditions.append(OtpRecordModel.email == email)
    if phone:
        conditions.append(OtpRecordModel.phone == phone)
    return or_(*conditions) if conditions else None


def _to_record(row: OtpRecordModel) -> OtpRecord:
    return OtpRecord(
        id=str(row.id),
        email=row.email,
        phone=row.phone,
        otp=row.otp,
        expiration=as_utc(row.expiration),
        attempts=row.attempts or 0,
        created_at=as_utc(row.created_at),
    )


def _row_id(record_id: str) -> Optional[int]:
    try:
        return int(record_id)
    except (TypeError, ValueError):
        return None


class SqlOtpStore(OtpStore):
    """OTP records in a relational table through an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def count_recent(self, email, phone, since: datetime) -> int:
        clause = _identifier_clause(email, phone)
        if clause is None:
            return 0
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(func.count(OtpRecordModel.id)).where(clause, OtpRecordModel.created_at >= since)
                )
                return int(result.scalar() or 0)
        except SQLAlchemyError as e:
            logger.error(f"SQL count of recent OTPs failed: {e}")
            raise StoreError("Could not count OTP records") from e

    async def delete_by_email(self, email: str) -> int:
        return await self._delete(delete(OtpRecordModel).where(OtpRecordModel.email == email))

    async def delete_by_phone(self, phone: str) -> int:
        return await self._delete(delete(OtpRecordModel).where(OtpRecordModel.phone == phone))

    async def delete_all(self) -> int:
        return await self._delete(delete(OtpRecordModel))

    async def delete_one(self, record_id: str) -> bool:
        row_id = _row_id(record_id)
        if row_id is None:
            return False
        return await self._delete(delete(OtpRecordModel).where(OtpRecordModel.id == row_id)) > 0

    async def _delete(self, statement) -> int:
        try:
            async with self.session_factory() as db:
                result = await db.execute(statement)
                await safe_commit(db, "Could not delete OTP records")
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"SQL delete of OTP records failed: {e}")
            raise StoreError("Could not delete OTP records") from e

    async def save(self, record: OtpRecord) -> OtpRecord:
        row = OtpRecordModel(
            email=record.email,
            phone=record.phone,
            otp=record.otp,
            expiration=record.expiration,
            attempts=record.attempts,
            created_at=record.created_at,
        )
        try:
            async with self.session_factory() as db:
                db.add(row)
                await db.flush()
                row_id = row.id
                await safe_commit(db, "Could not save OTP record")
                return record.model_copy(update={"id": str(row_id)})
        except SQLAlchemyError as e:
            logger.error(f"SQL insert of OTP failed: {e}")
            raise StoreError("Could not save OTP record") from e

    async def find_by_id(self, record_id: str) -> Optional[OtpRecord]:
        row_id = _row_id(record_id)
        if row_id is None:
            return None
        try:
            async with self.session_factory() as db:
                row = await db.get(OtpRecordModel, row_id)
                return _to_record(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"SQL lookup of OTP {record_id} failed: {e}")
            raise StoreError("Could not load OTP record") from e

    async def find_current(self, email, phone, now: datetime) -> Optional[OtpRecord]:
        clause = _identifier_clause(email, phone)
        if clause is None:
            return None
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(OtpRecordModel)
                    .where(clause, OtpRecordModel.expiration > now)
                    .order_by(OtpRecordModel.created_at.desc(), OtpRecordModel.id.desc())
                    .limit(1)
                )
                row = result.scalars().first()
                return _to_record(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"SQL lookup of current OTP failed: {e}")
            raise StoreError("Could not load OTP record") from e

    async def ping(self) -> None:
        try:
            async with self.session_factory() as db:
                await db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreError("SQL database unavailable") from e
