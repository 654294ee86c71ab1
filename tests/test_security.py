from datetime import datetime, timedelta

import pytest

from mailclub.clock import ManualClock
from mailclub.exceptions import RateLimited
from mailclub.security import (
    EmailRateLimiter,
    hash_passcode,
    passcode_context,
    validate_passcode,
    verify_passcode,
)


def test_passcode_hash_round_trip() -> None:
    stored = hash_passcode("4321")

    assert "4321" not in stored
    assert verify_passcode("4321", stored)
    assert not verify_passcode("1234", stored)
    assert not verify_passcode("abcd", stored)


def test_passcode_hashes_are_salted() -> None:
    assert hash_passcode("1234") != hash_passcode("1234")


def test_passcode_hash_uses_passlib_pbkdf2_format() -> None:
    stored = hash_passcode("2468")

    assert stored.startswith("$pbkdf2-sha256$")
    assert passcode_context.identify(stored) == "pbkdf2_sha256"
    assert passcode_context.verify("2468", stored)


@pytest.mark.parametrize("passcode", ["123", "12345", "12a4", ""])
def test_passcode_must_be_four_digits(passcode: str) -> None:
    with pytest.raises(ValueError):
        validate_passcode(passcode)


def test_verify_rejects_malformed_hash() -> None:
    assert not verify_passcode("1234", "not-a-hash")


def test_rate_limiter_allows_five_per_window() -> None:
    clock = ManualClock(datetime(2024, 3, 10, 8, 0))
    limiter = EmailRateLimiter(clock=clock)

    for _ in range(5):
        limiter.hit("Parent@Example.com")
    assert limiter.remaining("parent@example.com") == 0

    with pytest.raises(RateLimited) as excinfo:
        limiter.hit("parent@example.com")
    assert excinfo.value.retryable
    assert excinfo.value.retry_after == pytest.approx(3600)


def test_rate_limiter_opens_new_window_after_expiry() -> None:
    clock = ManualClock(datetime(2024, 3, 10, 8, 0))
    limiter = EmailRateLimiter(clock=clock)
    for _ in range(5):
        limiter.hit("parent@example.com")

    clock.advance(hours=1)
    with pytest.raises(RateLimited):
        limiter.hit("parent@example.com")

    clock.advance(seconds=1)
    window = limiter.hit("parent@example.com")
    assert window.count == 1
    assert window.reset_at == clock.now() + timedelta(hours=1)


def test_rate_limiter_tracks_emails_separately() -> None:
    limiter = EmailRateLimiter(max_requests=1, clock=ManualClock())

    limiter.hit("a@example.com")
    limiter.hit("b@example.com")
    with pytest.raises(RateLimited):
        limiter.hit("A@example.com")

    limiter.reset("a@example.com")
    limiter.hit("a@example.com")
