import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional
from core.config import settings
from core.errors import DeliveryError
import logging

logger = logging.getLogger(__name__)


def _build_message(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>" if settings.SMTP_FROM_NAME and settings.SMTP_FROM_EMAIL else (settings.SMTP_FROM_EMAIL or "no-reply@example.com")
    msg["To"] = to_email
    if text_body:
        msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def send_email(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> None:
    """Hand a message to the configured SMTP server. Raises DeliveryError on failure."""
    if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
        logger.warning("SMTP not configured; cannot send email")
        raise DeliveryError("SMTP is not configured")
    try:
        msg = _build_message(subject, to_email, html_body, text_body)
        # SSL (SMTPS) or STARTTLS
        timeout = settings.SMTP_TIMEOUT or 15
        debug = 1 if settings.SMTP_DEBUG else 0
        if settings.SMTP_USE_SSL:
            with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                server.set_debuglevel(debug)
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                server.set_debuglevel(debug)
                if settings.SMTP_USE_TLS:
                    server.starttls()
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        logger.info(f"Sent email to {to_email} with subject '{subject}'")
    except (smtplib.SMTPException, OSError) as exc:
        logger.error(f"Failed to send email to {to_email}: {exc}")
        raise DeliveryError(f"Failed to send email: {exc}") from exc


def send_otp_email(to_email: str, otp_code: int, expire_minutes: int) -> None:
    subject = settings.OTP_EMAIL_SUBJECT
    text = f"Your OTP is {otp_code}. It will expire in {expire_minutes} minutes."
    html = f"""
    <div style='font-family: Arial, sans-serif; line-height: 1.5;'>
      <h2>Verify your account</h2>
      <p>Use the following One-Time Password (OTP) to verify your account. This code will expire in <strong>{expire_minutes} minutes</strong>.</p>
      <p style='font-size: 24px; font-weight: bold; letter-spacing: 4px;'>{otp_code}</p>
      <p>If you did not request this code, you can safely ignore this email.</p>
      <p>- {settings.SMTP_FROM_NAME} Team</p>
    </div>
    """
    send_email(subject, to_email, html, text)


class EmailChannel:
    """Delivers OTP codes by email; SMTP runs in a worker thread."""
    name = "Email"

    def __init__(self, expire_minutes: Optional[int] = None):
        self.expire_minutes = expire_minutes or settings.OTP_EXPIRE_MINUTES

    async def send(self, address: str, code: int) -> None:
        await asyncio.to_thread(send_otp_email, address, code, self.expire_minutes)
