from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
import logging

from api.dependencies import get_otp_record, get_otp_service
from core.config import settings
from core.errors import StoreError
from schemas.otp_schema import OtpGenerateRequest, OtpRecord, OtpVerifyRequest
from services.otp_service import OtpService
from utils.logging_config import bind_subject
from utils.responses import no_store_json
from utils.timing import timeit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/otp")


@router.post("/generate")
@timeit("generate_otp")
async def generate_otp(payload: OtpGenerateRequest, service: OtpService = Depends(get_otp_service)):
    bind_subject(payload.email, payload.phone)
    try:
        result = await service.request_otp(email=payload.email, phone=payload.phone)
    except StoreError as e:
        logger.error(f"OTP Generation Error: {e}")
        return no_store_json({"message": "Error sending OTP"}, status_code=500)
    return no_store_json(result.to_content())


@router.post("/verify")
@timeit("verify_otp")
async def verify_otp(
    payload: OtpVerifyRequest,
    otp_record: Optional[OtpRecord] = Depends(get_otp_record),
    service: OtpService = Depends(get_otp_service),
):
    bind_subject(payload.email, payload.phone)
    try:
        result = await service.verify_otp(otp_record, payload.otp)
    except StoreError as e:
        logger.error(f"OTP Verification Error: {e}")
        return no_store_json({"message": "Error verifying OTP"}, status_code=500)
    return no_store_json(result.model_dump())


def require_purge_enabled():
    if not settings.ALLOW_OTP_PURGE:
        raise HTTPException(status_code=404, detail="Not Found")


@router.delete("", dependencies=[Depends(require_purge_enabled)])
async def clear_otp_records(service: OtpService = Depends(get_otp_service)):
    """Wipe every OTP record. Development escape hatch, off unless ALLOW_OTP_PURGE is set."""
    try:
        removed = await service.clear_all()
    except StoreError as e:
        logger.error(f"Database Clear Error: {e}")
        return no_store_json({"message": "Error clearing OTP records"}, status_code=500)
    return no_store_json({"message": "All OTP records cleared successfully", "deleted": removed})
