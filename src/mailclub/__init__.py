"""MailClub package: tasks, points and mail rewards for kids."""

from .admin import AuditLog
from .clock import Clock, ManualClock, SystemClock
from .emailing import EmailClient, EmailVerificationCodes
from .exceptions import (
    AccountNotFoundError,
    ChildNotFoundError,
    DuplicateAccountError,
    EmailDeliveryError,
    InvalidPasscode,
    InvalidTransition,
    MailClubError,
    NotOwned,
    QuotaExceeded,
    RateLimited,
    TaskNotFoundError,
)
from .generator import DAILY_TASK_COUNT, DailyRefresh, DailyTaskGenerator, Regeneration
from .lifecycle import ApprovalReceipt, TaskEvent, TransitionResult, transition
from .models import (
    Account,
    AgeGroup,
    AuditEvent,
    Badge,
    BadgeType,
    Child,
    DailyProgress,
    Proof,
    ShippingAddress,
    SubscriptionTier,
    Task,
    TaskCategory,
    TaskOrigin,
    TaskStatus,
    VerificationResult,
)
from .ops import HealthMonitor, StructuredLogger
from .progression import advance_mail_meter, level_for, next_streak, tier_for
from .proofs import NeutralProofVerifier, ProofVerificationRequest, ProofVerifier
from .quotas import CUSTOM_TASK_DAILY_QUOTA, PLAN_LIMITS, PlanLimits
from .security import EmailRateLimiter
from .service import AccountStore, BatchApproval, CustomTaskResult, InMemoryAccountStore, MailClub

__all__ = [
    "Account",
    "AccountNotFoundError",
    "AccountStore",
    "AgeGroup",
    "ApprovalReceipt",
    "AuditEvent",
    "AuditLog",
    "Badge",
    "BadgeType",
    "BatchApproval",
    "CUSTOM_TASK_DAILY_QUOTA",
    "Child",
    "ChildNotFoundError",
    "Clock",
    "CustomTaskResult",
    "DAILY_TASK_COUNT",
    "DailyProgress",
    "DailyRefresh",
    "DailyTaskGenerator",
    "DuplicateAccountError",
    "EmailClient",
    "EmailDeliveryError",
    "EmailRateLimiter",
    "EmailVerificationCodes",
    "HealthMonitor",
    "InMemoryAccountStore",
    "InvalidPasscode",
    "InvalidTransition",
    "MailClub",
    "MailClubError",
    "ManualClock",
    "NeutralProofVerifier",
    "NotOwned",
    "PLAN_LIMITS",
    "PlanLimits",
    "Proof",
    "ProofVerificationRequest",
    "ProofVerifier",
    "QuotaExceeded",
    "RateLimited",
    "Regeneration",
    "ShippingAddress",
    "StructuredLogger",
    "SubscriptionTier",
    "SystemClock",
    "Task",
    "TaskCategory",
    "TaskEvent",
    "TaskNotFoundError",
    "TaskOrigin",
    "TaskStatus",
    "TransitionResult",
    "VerificationResult",
    "advance_mail_meter",
    "level_for",
    "next_streak",
    "tier_for",
    "transition",
]
