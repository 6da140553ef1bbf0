from fastapi import Depends, Request
from pydantic import ValidationError as PayloadError
from typing import Optional
import json
import logging

from core.config import settings
from core.errors import StoreError
from db import session as sql_session
from db.mongodb import get_mongo_db
from db.mongo_otp_store import MongoOtpStore
from db.otp_store import OtpStore
from db.sql_otp_store import SqlOtpStore
from schemas.otp_schema import OtpRecord, OtpVerifyRequest
from services.otp_service import OtpService
from utils.email import EmailChannel
from utils.sms import SmsChannel

logger = logging.getLogger(__name__)


def get_otp_store() -> OtpStore:
    if settings.USE_MONGO:
        mdb = get_mongo_db()
        if mdb is None:
            raise StoreError("MongoDB is not configured")
        return MongoOtpStore(mdb[settings.MONGO_OTP_COLLECTION])
    if sql_session.SessionLocal is None:
        raise StoreError("SQL database is not configured")
    return SqlOtpStore(sql_session.SessionLocal)


def get_otp_service(store: OtpStore = Depends(get_otp_store)) -> OtpService:
    policy = settings.otp_policy()
    expire_minutes = int(policy.expire_after.total_seconds() // 60)
    return OtpService(
        store,
        email_channel=EmailChannel(expire_minutes),
        sms_channel=SmsChannel(expire_minutes),
        policy=policy,
    )


async def get_otp_record(request: Request, service: OtpService = Depends(get_otp_service)) -> Optional[OtpRecord]:
    """Look up the record a verify request is checked against.

    Runs before the handler and attaches the result to ``request.state.otp_record``.
    Yields None when the body has no usable identifier or nothing current exists.
    """
    record = None
    try:
        payload = OtpVerifyRequest.model_validate(await request.json())
    except (json.JSONDecodeError, UnicodeDecodeError, PayloadError):
        # The handler's own body validation reports the problem
        payload = None
    if payload is not None:
        record = await service.find_current_record(payload.email, payload.phone)
    request.state.otp_record = record
    return record
