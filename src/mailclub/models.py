"""Domain models used by the MailClub package."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple

MIN_CHILD_AGE = 5
MAX_CHILD_AGE = 17


class SubscriptionTier(str, Enum):
    """Subscription plans, cheapest first."""

    FREE = "free"
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"


class TaskStatus(str, Enum):
    """States of the task lifecycle."""

    PENDING = "pending"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"


class TaskOrigin(str, Enum):
    """Where a task came from."""

    DAILY_GENERATED = "daily_generated"
    CUSTOM = "custom_parent_added"


class TaskCategory(str, Enum):
    READING = "reading"
    CHORES = "chores"
    CREATIVITY = "creativity"
    KINDNESS = "kindness"
    FITNESS = "fitness"
    MINDSET = "mindset"
    LEARNING = "learning"
    GOALS = "goals"
    ENTREPRENEUR = "entrepreneur"
    GENERAL = "general"


class AgeGroup(str, Enum):
    """Age buckets that decide which daily tasks a child receives."""

    LITTLE_EXPLORERS = "5-7"
    JUNIOR_ACHIEVERS = "8-11"
    RISING_STARS = "12-14"
    FUTURE_LEADERS = "15-17"

    @classmethod
    def for_age(cls, age: int) -> "AgeGroup":
        if age <= 7:
            return cls.LITTLE_EXPLORERS
        if age <= 11:
            return cls.JUNIOR_ACHIEVERS
        if age <= 14:
            return cls.RISING_STARS
        return cls.FUTURE_LEADERS


class BadgeType(str, Enum):
    ACHIEVEMENT = "achievement"
    MASCOT = "mascot"


@dataclass(slots=True)
class Badge:
    """A badge earned by a child."""

    badge_id: str
    name: str
    type: BadgeType = BadgeType.ACHIEVEMENT
    description: str = ""
    earned_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(slots=True)
class Proof:
    """Evidence a child attaches when submitting a task."""

    photo_ref: Optional[str] = None
    timer_seconds: Optional[int] = None

    def __post_init__(self) -> None:
        if self.photo_ref is not None and not self.photo_ref.strip():
            self.photo_ref = None
        if self.timer_seconds is not None and self.timer_seconds < 0:
            raise ValueError("timer_seconds cannot be negative.")

    @property
    def is_empty(self) -> bool:
        return self.photo_ref is None and self.timer_seconds is None


@dataclass(slots=True)
class VerificationResult:
    """Advisory outcome returned by the proof verification service.

    It is stored on the task for parents to read; it never credits points.
    """

    is_verified: bool
    confidence: float
    feedback: str = ""
    suggestions: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        self.confidence = min(1.0, max(0.0, float(self.confidence)))
        self.suggestions = tuple(self.suggestions)


@dataclass(slots=True)
class ShippingAddress:
    street: str
    city: str
    state: str
    zip_code: str
    country: str = "US"


@dataclass(slots=True)
class Task:
    """A single assignment owned by exactly one child."""

    task_id: str
    child_id: str
    title: str
    points: int
    due_date: date
    origin: TaskOrigin
    description: str = ""
    category: TaskCategory = TaskCategory.GENERAL
    status: TaskStatus = TaskStatus.PENDING
    completed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    proof: Optional[Proof] = None
    verification: Optional[VerificationResult] = None
    awarded_points: Optional[int] = None
    rejection_count: int = 0
    no_points_reason: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        if self.points < 0:
            raise ValueError("Task points cannot be negative.")
        if not self.title.strip():
            raise ValueError("Task title cannot be empty.")

    @property
    def is_custom(self) -> bool:
        return self.origin is TaskOrigin.CUSTOM


@dataclass(slots=True)
class Child:
    """A child profile together with its progression state and tasks."""

    child_id: str
    account_id: str
    name: str
    age: int
    avatar: str = "dog"
    points: int = 0
    total_points: int = 0
    level: int = 1
    streak_days: int = 0
    last_completed_date: Optional[date] = None
    mail_meter_progress: float = 0.0
    mail_rewards_unlocked: int = 0
    badges: List[Badge] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def age_group(self) -> AgeGroup:
        return AgeGroup.for_age(self.age)

    def has_badge(self, badge_id: str) -> bool:
        return any(badge.badge_id == badge_id for badge in self.badges)

    def tasks_due(self, day: date) -> Sequence[Task]:
        return tuple(task for task in self.tasks if task.due_date == day)

    def approved_task_count(self) -> int:
        return sum(1 for task in self.tasks if task.status is TaskStatus.APPROVED)


@dataclass(slots=True)
class Account:
    """One parent identity and the children it owns."""

    account_id: str
    email: str
    name: str
    passcode_hash: str
    tier: SubscriptionTier = SubscriptionTier.FREE
    shipping_address: Optional[ShippingAddress] = None
    children: List[Child] = field(default_factory=list)
    email_verified: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        self.email = self.email.strip().lower()

    def child(self, child_id: str) -> Optional[Child]:
        for child in self.children:
            if child.child_id == child_id:
                return child
        return None

    def completed_tasks(self) -> Sequence[Task]:
        return tuple(
            task
            for child in self.children
            for task in child.tasks
            if task.status is TaskStatus.COMPLETED
        )


@dataclass(slots=True)
class DailyProgress:
    """Per-day roll-up shown on the child dashboard."""

    day: date
    total_tasks: int
    completed_tasks: int
    approved_tasks: int
    points_earned: int


@dataclass(slots=True)
class AuditEvent:
    """Represents an auditable parent, child or system action."""

    actor: str
    action: str
    target: str
    account_id: str = ""
    timestamp: datetime = field(default_factory=datetime.utcnow)
    details: dict = field(default_factory=dict)


__all__ = [
    "MAX_CHILD_AGE",
    "MIN_CHILD_AGE",
    "Account",
    "AgeGroup",
    "AuditEvent",
    "Badge",
    "BadgeType",
    "Child",
    "DailyProgress",
    "Proof",
    "ShippingAddress",
    "SubscriptionTier",
    "Task",
    "TaskCategory",
    "TaskOrigin",
    "TaskStatus",
    "VerificationResult",
]
