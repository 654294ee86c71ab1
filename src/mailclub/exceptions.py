"""Custom exception hierarchy for the MailClub package."""

from __future__ import annotations


class MailClubError(Exception):
    """Base class for all MailClub specific errors.

    ``kind`` names the failure for API callers and ``retryable`` tells them
    whether repeating the same call may succeed.
    """

    kind = "error"
    retryable = False


class InvalidTransition(MailClubError):
    """Raised when a task is not in the state an operation expects."""

    kind = "invalid_transition"


class NotOwned(MailClubError):
    """Raised when a child or task is referenced from outside its owner."""

    kind = "not_owned"


class InvalidPasscode(MailClubError):
    """Raised when a parent passcode check fails."""

    kind = "invalid_passcode"
    retryable = True


class QuotaExceeded(MailClubError):
    """Raised when the subscription tier does not allow a mutation."""

    kind = "quota_exceeded"


class RateLimited(MailClubError):
    """Raised when an email sender has used up its request window."""

    kind = "rate_limited"
    retryable = True

    def __init__(self, message: str, *, retry_after: float = 0.0) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class DuplicateAccountError(MailClubError):
    """Raised when attempting to register an email that already exists."""

    kind = "duplicate_account"


class AccountNotFoundError(MailClubError):
    """Raised when an account lookup fails."""

    kind = "not_found"


class ChildNotFoundError(MailClubError):
    """Raised when a child lookup fails."""

    kind = "not_found"


class TaskNotFoundError(MailClubError):
    """Raised when a task lookup fails."""

    kind = "not_found"


class EmailDeliveryError(MailClubError):
    """Raised when the outgoing mail server rejects or cannot take a message."""

    kind = "delivery_failed"
    retryable = True
