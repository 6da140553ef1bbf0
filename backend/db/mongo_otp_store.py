import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError

from core.errors import StoreError
from db.otp_store import OtpStore, as_utc
from schemas.otp_schema import OtpRecord

logger = logging.getLogger(__name__)


def _identifier_filter(email: Optional[str], phone: Optional[str]) -> List[Dict[str, Any]]:
    return [clause for clause in ({"email": email} if email else None, {"phone": phone} if phone else None) if clause]


def _to_record(doc: Dict[str, Any]) -> OtpRecord:
    return OtpRecord(
        id=str(doc["_id"]),
        email=doc.get("email"),
        phone=doc.get("phone"),
        otp=int(doc["otp"]),
        expiration=as_utc(doc["expiration"]),
        attempts=int(doc.get("attempts", 0)),
        created_at=as_utc(doc["createdAt"]),
    )


def _object_id(record_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return None


class MongoOtpStore(OtpStore):
    """OTP records in a MongoDB collection (motor)."""

    def __init__(self, collection):
        self.collection = collection

    async def count_recent(self, email, phone, since: datetime) -> int:
        clauses = _identifier_filter(email, phone)
        if not clauses:
            return 0
        try:
            return await self.collection.count_documents({
                "$or": clauses,
                "createdAt": {"$gte": since},
            })
        except PyMongoError as e:
            logger.error(f"Mongo count of recent OTPs failed: {e}")
            raise StoreError("Could not count OTP records") from e

    async def delete_by_email(self, email: str) -> int:
        return await self._delete_many({"email": email})

    async def delete_by_phone(self, phone: str) -> int:
        return await self._delete_many({"phone": phone})

    async def delete_all(self) -> int:
        return await self._delete_many({})

    async def _delete_many(self, query: Dict[str, Any]) -> int:
        try:
            result = await self.collection.delete_many(query)
        except PyMongoError as e:
            logger.error(f"Mongo delete_many {query} failed: {e}")
            raise StoreError("Could not delete OTP records") from e
        return result.deleted_count

    async def delete_one(self, record_id: str) -> bool:
        oid = _object_id(record_id)
        if oid is None:
            return False
        try:
            result = await self.collection.delete_one({"_id": oid})
        except PyMongoError as e:
            logger.error(f"Mongo delete of OTP {record_id} failed: {e}")
            raise StoreError("Could not delete OTP record") from e
        return result.deleted_count > 0

    async def save(self, record: OtpRecord) -> OtpRecord:
        doc = {
            "email": record.email,
            "phone": record.phone,
            "otp": record.otp,
            "expiration": record.expiration,
            "attempts": record.attempts,
            "createdAt": record.created_at,
        }
        try:
            result = await self.collection.insert_one(doc)
        except PyMongoError as e:
            logger.error(f"Mongo insert of OTP failed: {e}")
            raise StoreError("Could not save OTP record") from e
        return record.model_copy(update={"id": str(result.inserted_id)})

    async def find_by_id(self, record_id: str) -> Optional[OtpRecord]:
        oid = _object_id(record_id)
        if oid is None:
            return None
        try:
            doc = await self.collection.find_one({"_id": oid})
        except PyMongoError as e:
            logger.error(f"Mongo lookup of OTP {record_id} failed: {e}")
            raise StoreError("Could not load OTP record") from e
        return _to_record(doc) if doc else None

    async def find_current(self, email, phone, now: datetime) -> Optional[OtpRecord]:
        clauses = _identifier_filter(email, phone)
        if not clauses:
            return None
        try:
            doc = await self.collection.find_one(
                {"$or": clauses, "expiration": {"$gt": now}},
                sort=[("createdAt", -1)],
            )
        except PyMongoError as e:
            logger.error(f"Mongo lookup of current OTP failed: {e}")
            raise StoreError("Could not load OTP record") from e
        return _to_record(doc) if doc else None

    async def ping(self) -> None:
        try:
            await self.collection.database.command({"ping": 1})
        except PyMongoError as e:
            raise StoreError("MongoDB unavailable") from e
