"""
Tests for the email (SMTP) and SMS (Twilio) delivery channels.
"""
import smtplib
import pytest
from unittest.mock import MagicMock, patch
from twilio.base.exceptions import TwilioRestException

from core.config import settings
from core.errors import DeliveryError
from utils import sms as sms_module
from utils.email import EmailChannel
from utils.sms import SmsChannel


@pytest.fixture
def smtp_settings(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.test")
    monkeypatch.setattr(settings, "SMTP_PORT", 2525)
    monkeypatch.setattr(settings, "SMTP_FROM_EMAIL", "no-reply@verify.test")
    monkeypatch.setattr(settings, "SMTP_USERNAME", "mailer")
    monkeypatch.setattr(settings, "SMTP_PASSWORD", "secret")
    monkeypatch.setattr(settings, "SMTP_USE_SSL", False)
    monkeypatch.setattr(settings, "SMTP_USE_TLS", True)


@pytest.fixture
def twilio_settings(monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "token")
    monkeypatch.setattr(settings, "TWILIO_PHONE_NUMBER", "+15550000000")
    monkeypatch.setattr(sms_module, "_twilio_client", None)


class TestEmailChannel:
    @pytest.mark.asyncio
    async def test_sends_code_over_starttls(self, smtp_settings):
        with patch("utils.email.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value

            await EmailChannel(5).send("a@x.com", 123456)

        smtp_cls.assert_called_once_with("smtp.test", 2525, timeout=15)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "secret")
        message = server.send_message.call_args.args[0]
        assert message["To"] == "a@x.com"
        assert "123456" in message.get_body(preferencelist=("plain",)).get_content()

    @pytest.mark.asyncio
    async def test_ssl_mode(self, smtp_settings, monkeypatch):
        monkeypatch.setattr(settings, "SMTP_USE_SSL", True)
        with patch("utils.email.smtplib.SMTP_SSL") as smtp_ssl_cls:
            await EmailChannel(5).send("a@x.com", 123456)

        smtp_ssl_cls.return_value.__enter__.return_value.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_unconfigured_smtp_raises(self, monkeypatch):
        monkeypatch.setattr(settings, "SMTP_HOST", None)

        with pytest.raises(DeliveryError, match="SMTP is not configured"):
            await EmailChannel(5).send("a@x.com", 123456)

    @pytest.mark.asyncio
    async def test_smtp_failure_raises_delivery_error(self, smtp_settings):
        with patch("utils.email.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            server.send_message.side_effect = smtplib.SMTPRecipientsRefused({"a@x.com": (550, b"no such user")})

            with pytest.raises(DeliveryError, match="Failed to send email"):
                await EmailChannel(5).send("a@x.com", 123456)


class TestSmsChannel:
    @pytest.mark.asyncio
    async def test_sends_code_via_twilio(self, twilio_settings):
        client = MagicMock()
        with patch("utils.sms.Client", return_value=client) as client_cls:
            await SmsChannel(5).send("+1555", 654321)

        client_cls.assert_called_once_with("AC123", "token")
        client.messages.create.assert_called_once_with(
            body="Your OTP is 654321. It will expire in 5 minutes.",
            from_="+15550000000",
            to="+1555",
        )

    @pytest.mark.asyncio
    async def test_twilio_error_raises_delivery_error(self, twilio_settings):
        client = MagicMock()
        client.messages.create.side_effect = TwilioRestException(400, "https://api.twilio.com", "Invalid 'To' number")
        with patch("utils.sms.Client", return_value=client):
            with pytest.raises(DeliveryError, match="Failed to send sms"):
                await SmsChannel(5).send("+1555", 654321)

    @pytest.mark.asyncio
    async def test_missing_credentials_raise(self, twilio_settings, monkeypatch):
        monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", None)

        with pytest.raises(DeliveryError, match="not configured"):
            await SmsChannel(5).send("+1555", 654321)
