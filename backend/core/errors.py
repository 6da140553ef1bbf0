from datetime import datetime
from typing import Any, Dict, List, Optional


class OtpError(Exception):
    """Base for failures that map onto a structured HTTP response."""
    status_code: int = 500
    message: str = "Internal server error"
    # "message" for generation failures, "error" for verification failures
    body_key: str = "message"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_content(self) -> Dict[str, Any]:
        return {self.body_key: self.message}


class ValidationError(OtpError):
    status_code = 400
    message = "Email or phone is required."


class RateLimitExceeded(OtpError):
    status_code = 429
    message = "Too many OTP requests. Please try again later."

    def __init__(self, next_attempt_allowed: datetime, message: Optional[str] = None):
        self.next_attempt_allowed = next_attempt_allowed
        super().__init__(message)

    def to_content(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "nextAttemptAllowed": self.next_attempt_allowed.isoformat(),
        }


class DeliveryFailed(OtpError):
    status_code = 500
    message = "Failed to send OTP through any method"

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message)

    def to_content(self) -> Dict[str, Any]:
        return {"message": self.message, "errors": self.errors}


class NotFound(OtpError):
    status_code = 404
    message = "OTP not found"
    body_key = "error"


class InvalidCode(OtpError):
    status_code = 400
    message = "Invalid OTP"
    body_key = "error"


class StoreError(OtpError):
    """Persistence layer failure. The detail is logged, never returned."""
    status_code = 500

    def to_content(self) -> Dict[str, Any]:
        return {"message": "Internal server error"}


class DeliveryError(Exception):
    """Raised by a delivery channel when a message could not be handed off."""
