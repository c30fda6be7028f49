"""Outbound email delivery of OTP codes."""

import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

import anyio

from campus_assistant.core.config import Settings

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CODE_PATTERN = re.compile(r"^\d{6}$")

BRAND = "PCE Campus Assistant"
COLLEGE = "Providence College of Engineering"


class EmailDeliveryError(Exception):
    """Raised when an OTP email could not be handed to the mail server."""


class EmailSender(Protocol):
    async def send(self, to_address: str, code: str) -> None: ...


def render_otp_html(code: str, expire_minutes: int) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #667eea;">{BRAND}</h2>
        <p>Thank you for registering with {BRAND}. Use the verification code below to complete your registration.</p>
        <p style="text-transform: uppercase; letter-spacing: 1px;">Your Verification Code</p>
        <h1 style="color: #667eea; font-size: 42px; letter-spacing: 12px; font-family: 'Courier New', monospace;">{code}</h1>
        <p>This verification code will expire in <strong>{expire_minutes} minutes</strong>.
        If you did not register for {BRAND}, please ignore this email.</p>
        <p style="color: #999999; font-size: 12px;">{COLLEGE}<br>Campus Assistant<br>
        This is an automated message. Please do not reply to this email.</p>
    </div>
    """


def render_otp_text(code: str, expire_minutes: int) -> str:
    return (
        f"{BRAND} - Email Verification OTP\n\n"
        f"Thank you for registering with {BRAND}.\n\n"
        f"Your OTP is: {code}\n\n"
        f"Valid for {expire_minutes} minutes.\n\n"
        f"If you did not register for {BRAND}, please ignore this email.\n\n"
        f"---\n{COLLEGE}\nCampus Assistant\n\n"
        "This is an automated message. Please do not reply to this email."
    )


def explain_smtp_error(exc: BaseException) -> str:
    """Turn a raw transport error into an actionable message for operators."""
    text = str(exc)
    if isinstance(exc, smtplib.SMTPAuthenticationError) or "535" in text or "BadCredentials" in text:
        return (
            "SMTP Authentication Failed: check SMTP_USER and SMTP_PASS. "
            "For Gmail, use a 16-character App Password rather than the account password."
        )
    if isinstance(exc, (ConnectionRefusedError, TimeoutError)) or "timed out" in text.lower():
        return "SMTP Connection Failed: check your network connection and the SMTP_HOST / SMTP_PORT settings."
    if "not configured" in text:
        return "SMTP not configured: set SMTP_USER and SMTP_PASS."
    return text


class SMTPEmailSender:
    """Deliver OTP codes through an SMTP relay.

    Blocking `smtplib` calls run in a worker thread so the async request is
    not blocked. Any failure surfaces as `EmailDeliveryError` carrying a
    human-readable explanation.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def _open(self) -> smtplib.SMTP:
        """Create the client only; the handshake runs inside the caller's `with` block."""
        s = self.settings
        if not s.SMTP_USER or not s.SMTP_PASS:
            raise RuntimeError("SMTP credentials not configured.")
        if s.smtp_use_ssl:
            return smtplib.SMTP_SSL(s.SMTP_HOST, s.SMTP_PORT, timeout=s.SMTP_TIMEOUT_SECONDS)
        return smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=s.SMTP_TIMEOUT_SECONDS)

    def _login(self, server: smtplib.SMTP) -> None:
        s = self.settings
        if not s.smtp_use_ssl:
            server.ehlo()
            server.starttls()
            server.ehlo()
        server.login(s.SMTP_USER, s.SMTP_PASS)

    def build_message(self, to_address: str, code: str, subject: str = "Email Verification OTP") -> MIMEMultipart:
        expire_minutes = self.settings.OTP_EXPIRE_SECONDS // 60
        message = MIMEMultipart("alternative")
        message["From"] = f'"{BRAND}" <{self.settings.smtp_sender_address}>'
        message["To"] = to_address
        message["Subject"] = subject
        message.attach(MIMEText(render_otp_text(code, expire_minutes), "plain"))
        message.attach(MIMEText(render_otp_html(code, expire_minutes), "html"))
        return message

    async def send(self, to_address: str, code: str) -> None:
        """Send the OTP code to the provided email address."""
        to_address = to_address.strip().lower()
        if not EMAIL_PATTERN.fullmatch(to_address):
            raise EmailDeliveryError("Invalid email address format")
        if not CODE_PATTERN.fullmatch(code):
            raise EmailDeliveryError("Invalid OTP format. OTP must be a 6-digit number")

        message = self.build_message(to_address, code)

        def _send() -> None:
            with self._open() as server:
                self._login(server)
                server.send_message(message)

        try:
            await anyio.to_thread.run_sync(_send)
        except Exception as exc:
            logger.error("Failed to send OTP email to %s: %s", to_address, exc)
            raise EmailDeliveryError(explain_smtp_error(exc)) from exc
        logger.info("OTP email sent to %s", to_address)

    async def verify_connection(self) -> None:
        """Authenticate against the relay and disconnect; raises on failure."""

        def _check() -> None:
            with self._open() as server:
                self._login(server)

        try:
            await anyio.to_thread.run_sync(_check)
        except Exception as exc:
            logger.error("SMTP connection verification failed: %s", exc)
            raise EmailDeliveryError(explain_smtp_error(exc)) from exc
        logger.info("SMTP connection verified")


class LoggingEmailSender:
    """Development sender: writes the code to the log instead of mailing it."""

    async def send(self, to_address: str, code: str) -> None:
        logger.warning("[development] OTP for %s is %s", to_address, code)

    async def verify_connection(self) -> None:
        return None


def build_email_sender(settings: Settings) -> EmailSender:
    if settings.ENVIRONMENT == "development":
        return LoggingEmailSender()
    return SMTPEmailSender(settings)
