"""SMTP delivery and email verification codes for MailClub."""

from __future__ import annotations

import re
import secrets
import smtplib
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from email.message import EmailMessage
from email.utils import make_msgid
from html import escape
from typing import Dict, List, Optional, Sequence

from .clock import Clock, SystemClock
from .exceptions import EmailDeliveryError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DEFAULT_SENDER = "Posty Magic Mail Club <noreply@magicmailclub.org>"
VERIFICATION_SUBJECT = "Verify Your Email - Posty Magic Mail Club"
VERIFICATION_CODE_TTL = timedelta(hours=1)


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


class EmailClient:
    """Small wrapper around :mod:`smtplib`.

    Without a host the client runs in outbox mode: messages are kept in memory
    for inspection instead of being sent.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: int = 587,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        sender: str = DEFAULT_SENDER,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout
        self._outbox: List[EmailMessage] = []

    @property
    def outbox_mode(self) -> bool:
        return not self.host

    def build_message(
        self,
        subject: str,
        body: str,
        *,
        recipients: Sequence[str],
        sender: Optional[str] = None,
        html: Optional[str] = None,
    ) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = sender or self.sender
        message["To"] = ", ".join(recipients)
        message["Message-ID"] = make_msgid(domain="magicmailclub.org")
        message.set_content(body)
        if html is not None:
            message.add_alternative(html, subtype="html")
        return message

    def send(self, message: EmailMessage) -> str:
        """Deliver ``message`` and return its message id."""

        if message["Message-ID"] is None:
            message["Message-ID"] = make_msgid(domain="magicmailclub.org")
        if self.outbox_mode:
            self._outbox.append(message)
            return str(message["Message-ID"])
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"Failed to send email: {exc}") from exc
        return str(message["Message-ID"])

    def deliveries(self) -> Sequence[EmailMessage]:
        return tuple(self._outbox)


def render_verification_text(code: str, user_name: str) -> str:
    return (
        f"Welcome, {user_name}!\n\n"
        "Posty is excited to have you join the Magic Mail Club! "
        "Please verify your email to get started on your adventure.\n\n"
        f"Your verification code is: {code}\n\n"
        "This code expires in 1 hour.\n"
        "If you didn't request this code, please ignore this email.\n"
    )


def render_verification_html(code: str, user_name: str) -> str:
    name = escape(user_name)
    code = escape(code)
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{VERIFICATION_SUBJECT}</title></head>
<body style="font-family: 'Segoe UI', Tahoma, sans-serif; background-color: #1a1a2e; padding: 20px;">
  <div style="max-width: 500px; margin: 0 auto; border-radius: 20px; background: #16213e;">
    <div style="text-align: center; padding: 30px 20px 20px;">
      <h1 style="color: #FFD700; margin: 0;">POSTY</h1>
      <h2 style="color: #4FC3F7; margin: 5px 0 0; letter-spacing: 2px;">MAGIC MAIL CLUB</h2>
    </div>
    <div style="background: white; margin: 0 20px 20px; border-radius: 15px; padding: 25px; text-align: center;">
      <h3 style="color: #1a1a2e;">Welcome, {name}!</h3>
      <p style="color: #666;">Posty is excited to have you join the Magic Mail Club! Please verify your email to get started on your adventure.</p>
      <p style="color: #888;">Your verification code is:</p>
      <div style="background: #FFD700; padding: 20px 30px; border-radius: 12px; display: inline-block;">
        <span style="font-size: 36px; font-weight: bold; letter-spacing: 8px;">{code}</span>
      </div>
      <p style="color: #888;">This code expires in <strong>1 hour</strong>.</p>
      <p style="color: #999; font-size: 12px;">If you didn't request this code, please ignore this email.</p>
    </div>
  </div>
</body>
</html>
"""


def send_verification_email(client: EmailClient, email: str, code: str, user_name: str) -> str:
    message = client.build_message(
        VERIFICATION_SUBJECT,
        render_verification_text(code, user_name),
        recipients=[email],
        html=render_verification_html(code, user_name),
    )
    return client.send(message)


@dataclass(slots=True)
class VerificationCode:
    code: str
    expires_at: datetime


class EmailVerificationCodes:
    """Issue and check six digit, time-boxed codes per email address."""

    def __init__(self, *, ttl: timedelta = VERIFICATION_CODE_TTL, clock: Clock | None = None) -> None:
        self.ttl = ttl
        self._clock = clock or SystemClock()
        self._codes: Dict[str, VerificationCode] = {}
        self._lock = threading.Lock()

    def issue(self, email: str) -> str:
        code = f"{secrets.randbelow(900_000) + 100_000}"
        with self._lock:
            self._codes[email.strip().lower()] = VerificationCode(
                code=code, expires_at=self._clock.now() + self.ttl
            )
        return code

    def check(self, email: str, code: str) -> bool:
        """Return whether ``code`` matches; a matching code is consumed."""

        key = email.strip().lower()
        with self._lock:
            record = self._codes.get(key)
            if record is None:
                return False
            if self._clock.now() > record.expires_at:
                self._codes.pop(key, None)
                return False
            if not secrets.compare_digest(record.code, str(code).strip()):
                return False
            self._codes.pop(key, None)
            return True


__all__ = [
    "DEFAULT_SENDER",
    "EMAIL_PATTERN",
    "EmailClient",
    "EmailVerificationCodes",
    "VERIFICATION_CODE_TTL",
    "VERIFICATION_SUBJECT",
    "VerificationCode",
    "is_valid_email",
    "render_verification_html",
    "render_verification_text",
    "send_verification_email",
]
