"""Task state machine.

A task moves ``pending -> completed -> approved`` on the happy path and
``completed -> rejected -> pending`` when a parent sends it back. All moves go
through :func:`transition`, which checks the source state and returns a
:class:`TransitionResult` instead of raising; the registry turns failures into
exceptions at its public boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from .models import Badge, Child, Proof, Task, TaskStatus, VerificationResult
from .progression import (
    MAIL_METER_PERCENT_PER_POINT,
    advance_mail_meter,
    level_for,
    new_badges,
    next_streak,
    tier_for,
)


class TaskEvent(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REOPEN = "reopen"


class TransitionError(str, Enum):
    """Why a transition was refused."""

    WRONG_STATE = "wrong_state"
    NOT_OWNED = "not_owned"
    NOT_DUE = "not_due"


# event -> (required source state, resulting state)
TRANSITIONS: Dict[TaskEvent, Tuple[TaskStatus, TaskStatus]] = {
    TaskEvent.SUBMIT: (TaskStatus.PENDING, TaskStatus.COMPLETED),
    TaskEvent.APPROVE: (TaskStatus.COMPLETED, TaskStatus.APPROVED),
    TaskEvent.REJECT: (TaskStatus.COMPLETED, TaskStatus.REJECTED),
    TaskEvent.REOPEN: (TaskStatus.REJECTED, TaskStatus.PENDING),
}


@dataclass(frozen=True, slots=True)
class ApprovalReceipt:
    """What an approval credited to the child."""

    task_id: str
    child_id: str
    base_points: int
    multiplier: int
    awarded_points: int
    total_points: int
    level: int
    previous_level: int
    streak_days: int
    mail_meter_progress: float
    mail_rewards_unlocked: int
    badges: Tuple[Badge, ...] = ()

    @property
    def leveled_up(self) -> bool:
        return self.level > self.previous_level


@dataclass(frozen=True, slots=True)
class TransitionResult:
    ok: bool
    event: TaskEvent
    status: TaskStatus
    error: Optional[TransitionError] = None
    message: str = ""
    receipt: Optional[ApprovalReceipt] = None

    @classmethod
    def refused(cls, task: Task, event: TaskEvent, error: TransitionError, message: str) -> "TransitionResult":
        return cls(ok=False, event=event, status=task.status, error=error, message=message)


def transition(
    task: Task,
    child: Child,
    event: TaskEvent,
    *,
    now: datetime,
    today: Optional[date] = None,
    actor_child_id: Optional[str] = None,
    proof: Optional[Proof] = None,
    verification: Optional[VerificationResult] = None,
) -> TransitionResult:
    """Apply ``event`` to ``task`` owned by ``child``.

    On success the task, and for approvals the child, are updated in place.
    On failure nothing is touched.
    """

    today = today or now.date()
    if task.child_id != child.child_id:
        return TransitionResult.refused(
            task, event, TransitionError.NOT_OWNED, f"Task '{task.task_id}' does not belong to this child."
        )
    if event is TaskEvent.SUBMIT and actor_child_id is not None and actor_child_id != task.child_id:
        return TransitionResult.refused(
            task, event, TransitionError.NOT_OWNED, "Only the child who owns a task can submit it."
        )
    source, target = TRANSITIONS[event]
    if task.status is not source:
        return TransitionResult.refused(
            task,
            event,
            TransitionError.WRONG_STATE,
            f"Cannot {event.value} a task that is {task.status.value}.",
        )

    if event is TaskEvent.SUBMIT:
        if task.due_date > today:
            return TransitionResult.refused(
                task, event, TransitionError.NOT_DUE, f"Task is not due until {task.due_date.isoformat()}."
            )
        task.status = target
        task.completed_at = now
        task.proof = proof if proof is not None and not proof.is_empty else None
        task.verification = verification
        return TransitionResult(ok=True, event=event, status=task.status)

    if event is TaskEvent.APPROVE:
        receipt = _credit(task, child, now=now, today=today)
        task.status = target
        task.approved_at = now
        return TransitionResult(ok=True, event=event, status=task.status, receipt=receipt)

    if event is TaskEvent.REJECT:
        task.status = target
        task.rejected_at = now
        task.rejection_count += 1
        return TransitionResult(ok=True, event=event, status=task.status)

    task.status = target
    task.completed_at = None
    task.proof = None
    task.verification = None
    return TransitionResult(ok=True, event=event, status=task.status)


def _credit(task: Task, child: Child, *, now: datetime, today: date) -> ApprovalReceipt:
    multiplier = tier_for(child.total_points)
    awarded = task.points * multiplier
    previous_level = child.level

    child.points += awarded
    child.total_points += awarded
    child.level = max(child.level, level_for(child.total_points))
    child.streak_days = next_streak(child.streak_days, child.last_completed_date, today)
    child.last_completed_date = today
    meter = advance_mail_meter(child.mail_meter_progress, awarded, scale=MAIL_METER_PERCENT_PER_POINT)
    child.mail_meter_progress = meter.progress
    child.mail_rewards_unlocked += meter.unlocked
    task.awarded_points = awarded

    # Badge counts include this task, so flip the status before evaluating.
    task.status = TaskStatus.APPROVED
    earned = tuple(new_badges(child))
    for badge in earned:
        badge.earned_at = now
        child.badges.append(badge)

    return ApprovalReceipt(
        task_id=task.task_id,
        child_id=child.child_id,
        base_points=task.points,
        multiplier=multiplier,
        awarded_points=awarded,
        total_points=child.total_points,
        level=child.level,
        previous_level=previous_level,
        streak_days=child.streak_days,
        mail_meter_progress=child.mail_meter_progress,
        mail_rewards_unlocked=meter.unlocked,
        badges=earned,
    )


__all__ = [
    "ApprovalReceipt",
    "TRANSITIONS",
    "TaskEvent",
    "TransitionError",
    "TransitionResult",
    "transition",
]
