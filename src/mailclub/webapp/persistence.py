"""Persistence and SQLModel definitions for the MailClub web service."""
from __future__ import annotations

import json
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, Session, SQLModel, create_engine, select

from ..models import (
    Account,
    Badge,
    BadgeType,
    Child,
    Proof,
    ShippingAddress,
    SubscriptionTier,
    Task,
    TaskCategory,
    TaskOrigin,
    TaskStatus,
    VerificationResult,
)
from ..proofs import result_from_payload, result_to_payload

# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------


class AccountRecord(SQLModel, table=True):
    __tablename__ = "accounts"

    account_id: str = Field(primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str
    passcode_hash: str
    tier: str = SubscriptionTier.FREE.value
    email_verified: bool = False
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ChildRecord(SQLModel, table=True):
    __tablename__ = "children"

    child_id: str = Field(primary_key=True)
    account_id: str = Field(index=True)
    position: int = 0
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
    created_at: datetime = Field(default_factory=datetime.utcnow)


class TaskRecord(SQLModel, table=True):
    __tablename__ = "tasks"

    task_id: str = Field(primary_key=True)
    child_id: str = Field(index=True)
    position: int = 0
    title: str
    description: str = ""
    category: str = TaskCategory.GENERAL.value
    points: int
    status: str = TaskStatus.PENDING.value  # pending|completed|approved|rejected
    due_date: date
    origin: str  # daily_generated|custom_parent_added
    completed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    photo_ref: Optional[str] = None
    timer_seconds: Optional[int] = None
    verification: Optional[str] = None  # JSON
    awarded_points: Optional[int] = None
    rejection_count: int = 0
    no_points_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class BadgeRecord(SQLModel, table=True):
    __tablename__ = "badges"

    id: str = Field(primary_key=True)  # <child_id>:<badge_id>
    child_id: str = Field(index=True)
    badge_id: str
    name: str
    type: str = BadgeType.ACHIEVEMENT.value
    description: str = ""
    earned_at: datetime = Field(default_factory=datetime.utcnow)


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------
def make_engine(sqlite_file: Optional[str] = None) -> Engine:
    """Return an engine for ``sqlite_file``; ``None`` or ``:memory:`` is in-memory."""

    if not sqlite_file or sqlite_file == ":memory:":
        return create_engine(
            "sqlite://",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        f"sqlite:///{sqlite_file}",
        echo=False,
        connect_args={"check_same_thread": False},
    )


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


# ---------------------------------------------------------------------------
# Record conversion
# ---------------------------------------------------------------------------
def _verification_to_json(result: Optional[VerificationResult]) -> Optional[str]:
    if result is None:
        return None
    return json.dumps(result_to_payload(result))


def _verification_from_json(payload: Optional[str]) -> Optional[VerificationResult]:
    if not payload:
        return None
    return result_from_payload(json.loads(payload))


def _task_record(task: Task, position: int) -> TaskRecord:
    return TaskRecord(
        task_id=task.task_id,
        child_id=task.child_id,
        position=position,
        title=task.title,
        description=task.description,
        category=task.category.value,
        points=task.points,
        status=task.status.value,
        due_date=task.due_date,
        origin=task.origin.value,
        completed_at=task.completed_at,
        approved_at=task.approved_at,
        rejected_at=task.rejected_at,
        photo_ref=task.proof.photo_ref if task.proof else None,
        timer_seconds=task.proof.timer_seconds if task.proof else None,
        verification=_verification_to_json(task.verification),
        awarded_points=task.awarded_points,
        rejection_count=task.rejection_count,
        no_points_reason=task.no_points_reason,
        created_at=task.created_at,
    )


def _task_from_record(record: TaskRecord) -> Task:
    proof = None
    if record.photo_ref is not None or record.timer_seconds is not None:
        proof = Proof(photo_ref=record.photo_ref, timer_seconds=record.timer_seconds)
    return Task(
        task_id=record.task_id,
        child_id=record.child_id,
        title=record.title,
        points=record.points,
        due_date=record.due_date,
        origin=TaskOrigin(record.origin),
        description=record.description,
        category=TaskCategory(record.category),
        status=TaskStatus(record.status),
        completed_at=record.completed_at,
        approved_at=record.approved_at,
        rejected_at=record.rejected_at,
        proof=proof,
        verification=_verification_from_json(record.verification),
        awarded_points=record.awarded_points,
        rejection_count=record.rejection_count,
        no_points_reason=record.no_points_reason,
        created_at=record.created_at,
    )


class SqlAccountStore:
    """Durable account store backed by SQLModel tables."""

    def __init__(self, engine: Engine, *, create_tables: bool = True) -> None:
        self.engine = engine
        if create_tables:
            create_db_and_tables(engine)

    def save(self, account: Account) -> None:
        address = account.shipping_address
        with Session(self.engine) as session:
            session.merge(
                AccountRecord(
                    account_id=account.account_id,
                    email=account.email,
                    name=account.name,
                    passcode_hash=account.passcode_hash,
                    tier=account.tier.value,
                    email_verified=account.email_verified,
                    street=address.street if address else None,
                    city=address.city if address else None,
                    state=address.state if address else None,
                    zip_code=address.zip_code if address else None,
                    country=address.country if address else None,
                    created_at=account.created_at,
                )
            )
            for position, child in enumerate(account.children):
                session.merge(
                    ChildRecord(
                        child_id=child.child_id,
                        account_id=account.account_id,
                        position=position,
                        name=child.name,
                        age=child.age,
                        avatar=child.avatar,
                        points=child.points,
                        total_points=child.total_points,
                        level=child.level,
                        streak_days=child.streak_days,
                        last_completed_date=child.last_completed_date,
                        mail_meter_progress=child.mail_meter_progress,
                        mail_rewards_unlocked=child.mail_rewards_unlocked,
                        created_at=child.created_at,
                    )
                )
                for task_position, task in enumerate(child.tasks):
                    session.merge(_task_record(task, task_position))
                # regenerated tasks leave rows behind
                current = {task.task_id for task in child.tasks}
                for record in session.exec(select(TaskRecord).where(TaskRecord.child_id == child.child_id)).all():
                    if record.task_id not in current:
                        session.delete(record)
                for badge in child.badges:
                    session.merge(
                        BadgeRecord(
                            id=f"{child.child_id}:{badge.badge_id}",
                            child_id=child.child_id,
                            badge_id=badge.badge_id,
                            name=badge.name,
                            type=badge.type.value,
                            description=badge.description,
                            earned_at=badge.earned_at,
                        )
                    )
            session.commit()

    def load_all(self) -> Iterable[Account]:
        accounts: List[Account] = []
        with Session(self.engine) as session:
            for record in session.exec(select(AccountRecord).order_by(AccountRecord.created_at)).all():
                address = None
                if record.street is not None:
                    address = ShippingAddress(
                        street=record.street,
                        city=record.city or "",
                        state=record.state or "",
                        zip_code=record.zip_code or "",
                        country=record.country or "US",
                    )
                account = Account(
                    account_id=record.account_id,
                    email=record.email,
                    name=record.name,
                    passcode_hash=record.passcode_hash,
                    tier=SubscriptionTier(record.tier),
                    shipping_address=address,
                    email_verified=record.email_verified,
                    created_at=record.created_at,
                )
                children = session.exec(
                    select(ChildRecord)
                    .where(ChildRecord.account_id == record.account_id)
                    .order_by(ChildRecord.position)
                ).all()
                for child_record in children:
                    account.children.append(self._load_child(session, child_record))
                accounts.append(account)
        return tuple(accounts)

    def _load_child(self, session: Session, record: ChildRecord) -> Child:
        tasks = session.exec(
            select(TaskRecord).where(TaskRecord.child_id == record.child_id).order_by(TaskRecord.position)
        ).all()
        badges = session.exec(
            select(BadgeRecord).where(BadgeRecord.child_id == record.child_id).order_by(BadgeRecord.earned_at)
        ).all()
        return Child(
            child_id=record.child_id,
            account_id=record.account_id,
            name=record.name,
            age=record.age,
            avatar=record.avatar,
            points=record.points,
            total_points=record.total_points,
            level=record.level,
            streak_days=record.streak_days,
            last_completed_date=record.last_completed_date,
            mail_meter_progress=record.mail_meter_progress,
            mail_rewards_unlocked=record.mail_rewards_unlocked,
            badges=[
                Badge(
                    badge_id=badge.badge_id,
                    name=badge.name,
                    type=BadgeType(badge.type),
                    description=badge.description,
                    earned_at=badge.earned_at,
                )
                for badge in badges
            ],
            tasks=[_task_from_record(task) for task in tasks],
            created_at=record.created_at,
        )


__all__ = [
    "AccountRecord",
    "BadgeRecord",
    "ChildRecord",
    "SqlAccountStore",
    "TaskRecord",
    "create_db_and_tables",
    "make_engine",
]
