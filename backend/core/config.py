from datetime import timedelta
from pydantic import BaseModel
from pydantic_settings import BaseSettings
from typing import List, Optional


class OtpPolicy(BaseModel):
    """Rate limiting and lifetime rules applied by the OTP service."""
    code_length: int = 6
    expire_after: timedelta = timedelta(minutes=5)
    max_attempts: int = 3
    window: timedelta = timedelta(hours=1)
    block_duration: timedelta = timedelta(hours=24)

    class Config:
        frozen = True


class Settings(BaseSettings):
    # App settings
    APP_NAME: str = "OTP Verification API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    # Serves DELETE /otp; development only
    ALLOW_OTP_PURGE: bool = False

    # CORS settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Logging
    LOG_LEVEL: str = "DEBUG"
    LOG_DIR: str = "logs"
    LOG_TTL_DAYS: int = 7
    LOG_TO_FILE: bool = True

    # MongoDB (primary store)
    USE_MONGO: bool = True
    MONGO_URI: Optional[str] = None
    MONGO_DB: str = "otp_service"
    MONGO_OTP_COLLECTION: str = "otps"

    # SQL store, used when USE_MONGO=false
    DATABASE_URL: str = "sqlite+aiosqlite:///./otp.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_POOL_TIMEOUT: int = 10
    DB_CONNECT_TIMEOUT: int = 10
    DB_PRE_PING: bool = True

    # SMTP / Email settings
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: Optional[str] = None
    SMTP_FROM_NAME: str = "Account Verification"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_TIMEOUT: int = 15
    SMTP_DEBUG: bool = False
    OTP_EMAIL_SUBJECT: str = "Your verification code"

    # Twilio SMS
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None

    # OTP policy
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 5
    OTP_RATE_LIMIT_MAX_ATTEMPTS: int = 3
    OTP_RATE_LIMIT_WINDOW_MINUTES: int = 60
    OTP_RATE_LIMIT_BLOCK_HOURS: int = 24

    class Config:
        env_file = ".env"
        case_sensitive = True

    def otp_policy(self) -> OtpPolicy:
        return OtpPolicy(
            code_length=self.OTP_LENGTH,
            expire_after=timedelta(minutes=self.OTP_EXPIRE_MINUTES),
            max_attempts=self.OTP_RATE_LIMIT_MAX_ATTEMPTS,
            window=timedelta(minutes=self.OTP_RATE_LIMIT_WINDOW_MINUTES),
            block_duration=timedelta(hours=self.OTP_RATE_LIMIT_BLOCK_HOURS),
        )


# Create settings instance
settings = Settings()

# Validate settings
if settings.OTP_LENGTH < 1:
    raise ValueError("OTP_LENGTH must be at least 1")

if settings.OTP_RATE_LIMIT_MAX_ATTEMPTS < 1:
    raise ValueError("OTP_RATE_LIMIT_MAX_ATTEMPTS must be at least 1")

if not settings.USE_MONGO and not settings.DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required when USE_MONGO=false")
