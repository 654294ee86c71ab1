import smtplib
from datetime import datetime

import pytest

from mailclub.clock import ManualClock
from mailclub.emailing import (
    EmailClient,
    EmailVerificationCodes,
    is_valid_email,
    render_verification_html,
    send_verification_email,
)
from mailclub.exceptions import EmailDeliveryError


def test_email_format_validation() -> None:
    assert is_valid_email("parent@example.com")
    assert not is_valid_email("parent@example")
    assert not is_valid_email("parent example@x.com")
    assert not is_valid_email("")


def test_outbox_mode_keeps_messages() -> None:
    client = EmailClient()

    message_id = send_verification_email(client, "parent@example.com", "123456", "Sam")

    assert client.outbox_mode
    (message,) = client.deliveries()
    assert message["To"] == "parent@example.com"
    assert message["Message-ID"] == message_id
    assert "123456" in message.get_body(preferencelist=("plain",)).get_content()


def test_verification_html_escapes_user_name() -> None:
    html = render_verification_html("123456", "<Sam>")
    assert "&lt;Sam&gt;" in html
    assert "<Sam>" not in html


def test_smtp_failure_raises_delivery_error(monkeypatch: pytest.MonkeyPatch) -> None:
    class BrokenSMTP:
        def __init__(self, *args, **kwargs) -> None:
            raise smtplib.SMTPConnectError(421, "unavailable")

    monkeypatch.setattr(smtplib, "SMTP", BrokenSMTP)
    client = EmailClient("smtp.example.com", 587)
    message = client.build_message("Hi", "Body", recipients=["parent@example.com"])

    with pytest.raises(EmailDeliveryError):
        client.send(message)


def test_verification_codes_expire_after_an_hour() -> None:
    clock = ManualClock(datetime(2024, 3, 10, 8, 0))
    codes = EmailVerificationCodes(clock=clock)

    code = codes.issue("Parent@Example.com")
    assert len(code) == 6 and code.isdigit()
    assert not codes.check("parent@example.com", "000000" if code != "000000" else "111111")

    clock.advance(minutes=61)
    assert not codes.check("parent@example.com", code)


def test_verification_code_is_single_use() -> None:
    codes = EmailVerificationCodes(clock=ManualClock())

    code = codes.issue("parent@example.com")

    assert codes.check("PARENT@example.com", code)
    assert not codes.check("parent@example.com", code)
