from datetime import date, datetime, timedelta

import pytest

from mailclub.lifecycle import TaskEvent, TransitionError, transition
from mailclub.models import Child, Proof, Task, TaskOrigin, TaskStatus, VerificationResult

NOW = datetime(2024, 3, 10, 17, 30)
TODAY = NOW.date()


def make_child(**overrides) -> Child:
    values = dict(child_id="c1", account_id="a1", name="Ava", age=9)
    values.update(overrides)
    return Child(**values)


def make_task(child: Child, *, points: int = 20, due: date = TODAY, status: TaskStatus = TaskStatus.PENDING) -> Task:
    task = Task(
        task_id=f"t{len(child.tasks) + 1}",
        child_id=child.child_id,
        title=f"Task {len(child.tasks) + 1}",
        points=points,
        due_date=due,
        origin=TaskOrigin.DAILY_GENERATED,
        status=status,
    )
    child.tasks.append(task)
    return task


def test_submit_marks_task_completed_with_proof() -> None:
    child = make_child()
    task = make_task(child)
    advice = VerificationResult(is_verified=True, confidence=0.9, feedback="Nice!")

    result = transition(
        task,
        child,
        TaskEvent.SUBMIT,
        now=NOW,
        actor_child_id="c1",
        proof=Proof(photo_ref="photos/1.jpg", timer_seconds=600),
        verification=advice,
    )

    assert result.ok
    assert task.status is TaskStatus.COMPLETED
    assert task.completed_at == NOW
    assert task.proof is not None and task.proof.timer_seconds == 600
    assert task.verification is advice
    assert child.total_points == 0


def test_submit_allows_overdue_but_not_future_tasks() -> None:
    child = make_child()
    overdue = make_task(child, due=TODAY - timedelta(days=2))
    future = make_task(child, due=TODAY + timedelta(days=1))

    assert transition(overdue, child, TaskEvent.SUBMIT, now=NOW).ok
    refused = transition(future, child, TaskEvent.SUBMIT, now=NOW)
    assert not refused.ok
    assert refused.error is TransitionError.NOT_DUE
    assert future.status is TaskStatus.PENDING


def test_submit_by_another_child_is_not_owned() -> None:
    child = make_child()
    task = make_task(child)

    result = transition(task, child, TaskEvent.SUBMIT, now=NOW, actor_child_id="someone-else")

    assert result.error is TransitionError.NOT_OWNED
    assert task.status is TaskStatus.PENDING


def test_task_must_belong_to_child() -> None:
    child = make_child()
    other = make_child(child_id="c2")
    task = make_task(other)

    assert transition(task, child, TaskEvent.SUBMIT, now=NOW).error is TransitionError.NOT_OWNED


def test_pending_task_cannot_be_approved_directly() -> None:
    child = make_child()
    task = make_task(child)

    result = transition(task, child, TaskEvent.APPROVE, now=NOW)

    assert not result.ok
    assert result.error is TransitionError.WRONG_STATE
    assert task.status is TaskStatus.PENDING
    assert child.total_points == 0


def test_approval_credits_multiplied_points_once() -> None:
    child = make_child(total_points=2500, points=100, level=6)
    task = make_task(child, points=30, status=TaskStatus.COMPLETED)

    result = transition(task, child, TaskEvent.APPROVE, now=NOW)

    assert result.ok and result.receipt is not None
    assert result.receipt.multiplier == 2
    assert result.receipt.awarded_points == 60
    assert child.total_points == 2560
    assert child.points == 160
    assert task.status is TaskStatus.APPROVED
    assert task.approved_at == NOW
    assert task.awarded_points == 60

    again = transition(task, child, TaskEvent.APPROVE, now=NOW)
    assert again.error is TransitionError.WRONG_STATE
    assert child.total_points == 2560


def test_approval_updates_streak_level_and_meter() -> None:
    child = make_child(
        total_points=490,
        streak_days=3,
        last_completed_date=TODAY - timedelta(days=1),
        mail_meter_progress=95.0,
    )
    task = make_task(child, points=20, status=TaskStatus.COMPLETED)

    receipt = transition(task, child, TaskEvent.APPROVE, now=NOW).receipt

    assert receipt is not None
    assert child.streak_days == 4
    assert child.last_completed_date == TODAY
    assert child.level == 2
    assert receipt.leveled_up
    assert receipt.mail_rewards_unlocked == 1
    assert child.mail_meter_progress == pytest.approx(15.0)
    assert child.mail_rewards_unlocked == 1
    badge_ids = {badge.badge_id for badge in receipt.badges}
    assert {"first_task", "points_500", "level_2", "mail_unlocked", "mascot-level-2"} <= badge_ids


def test_two_approvals_same_day_count_streak_once() -> None:
    child = make_child(streak_days=5, last_completed_date=TODAY - timedelta(days=1))
    first = make_task(child, status=TaskStatus.COMPLETED)
    second = make_task(child, status=TaskStatus.COMPLETED)

    transition(first, child, TaskEvent.APPROVE, now=NOW)
    transition(second, child, TaskEvent.APPROVE, now=NOW)

    assert child.streak_days == 6


def test_reject_then_reopen_returns_task_to_pending() -> None:
    child = make_child(total_points=40)
    task = make_task(child, status=TaskStatus.COMPLETED)
    task.completed_at = NOW
    task.proof = Proof(photo_ref="photos/blurry.jpg")

    rejected = transition(task, child, TaskEvent.REJECT, now=NOW)
    assert rejected.ok and task.status is TaskStatus.REJECTED
    reopened = transition(task, child, TaskEvent.REOPEN, now=NOW)

    assert reopened.ok
    assert task.status is TaskStatus.PENDING
    assert task.completed_at is None
    assert task.proof is None
    assert task.rejected_at == NOW
    assert task.rejection_count == 1
    assert child.total_points == 40


def test_approved_is_terminal() -> None:
    child = make_child()
    task = make_task(child, status=TaskStatus.APPROVED)

    for event in TaskEvent:
        assert not transition(task, child, event, now=NOW).ok
    assert task.status is TaskStatus.APPROVED
