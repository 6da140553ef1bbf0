from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Any, Dict, List, Optional


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class OtpRecord(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    otp: int
    expiration: datetime
    attempts: int = 0
    created_at: datetime = Field(alias="createdAt")

    class Config:
        populate_by_name = True
        extra = "ignore"


class OtpGenerateRequest(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

    @field_validator("email", "phone", mode="before")
    @classmethod
    def strip_identifiers(cls, value: Any) -> Any:
        return _blank_to_none(value)


class OtpVerifyRequest(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    otp: str

    @field_validator("email", "phone", mode="before")
    @classmethod
    def strip_identifiers(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("otp", mode="before")
    @classmethod
    def code_as_text(cls, value: Any) -> Any:
        # Clients send the code either as a JSON number or a string
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class DeliveryResult(BaseModel):
    message: str = "OTP sent successfully"
    email_sent: Optional[bool] = None
    sms_sent: Optional[bool] = None
    errors: Optional[List[str]] = None

    def to_content(self) -> Dict[str, Any]:
        data = self.model_dump()
        if not data.get("errors"):
            data.pop("errors", None)
        return data


class VerificationResult(BaseModel):
    message: str = "OTP verified successfully"
