from datetime import date, timedelta

import pytest

from mailclub.models import BadgeType, Child, Task, TaskOrigin, TaskStatus
from mailclub.progression import (
    advance_mail_meter,
    effective_reward,
    level_for,
    mascot_badge,
    new_badges,
    next_streak,
    tier_for,
)


@pytest.mark.parametrize(
    ("total", "expected"),
    [(0, 1), (2499, 1), (2500, 2), (4999, 2), (5000, 3), (25_000, 3)],
)
def test_tier_thresholds(total: int, expected: int) -> None:
    assert tier_for(total) == expected


def test_tier_is_non_decreasing() -> None:
    tiers = [tier_for(total) for total in range(0, 7000, 50)]
    assert tiers == sorted(tiers)


def test_effective_reward_uses_total_before_credit() -> None:
    # 2490 + 20 would cross 2500, but the multiplier comes from the pre-credit total.
    assert effective_reward(20, 2490) == 20
    assert effective_reward(20, 2500) == 40


def test_level_steps_every_five_hundred_points() -> None:
    assert level_for(0) == 1
    assert level_for(499) == 1
    assert level_for(500) == 2
    assert level_for(7250) == 15


def test_streak_continues_from_yesterday() -> None:
    today = date(2024, 3, 10)
    assert next_streak(4, today - timedelta(days=1), today) == 5


def test_streak_unchanged_when_already_counted_today() -> None:
    today = date(2024, 3, 10)
    assert next_streak(4, today, today) == 4


def test_streak_resets_after_gap_or_first_completion() -> None:
    today = date(2024, 3, 10)
    assert next_streak(9, today - timedelta(days=2), today) == 1
    assert next_streak(0, None, today) == 1


def test_mail_meter_carries_overflow() -> None:
    update = advance_mail_meter(90, 20)
    assert update.unlocked == 1
    assert update.did_unlock
    assert update.progress == pytest.approx(10)


def test_mail_meter_without_crossing() -> None:
    update = advance_mail_meter(10, 45)
    assert update.unlocked == 0
    assert update.progress == pytest.approx(55)


def test_mail_meter_large_credit_unlocks_repeatedly() -> None:
    update = advance_mail_meter(50, 260)
    assert update.unlocked == 3
    assert update.progress == pytest.approx(10)


def test_mail_meter_honours_scale() -> None:
    update = advance_mail_meter(0, 40, scale=2.5)
    assert update.unlocked == 1
    assert update.progress == pytest.approx(0)


def test_mascot_badges_cycle_through_mascots() -> None:
    first = mascot_badge(1)
    fifth = mascot_badge(5)
    assert first is not None and first.badge_id == "mascot-level-1"
    assert first.type is BadgeType.MASCOT
    assert first.name.startswith("Posty")
    assert fifth is not None and fifth.name.startswith("Posty")
    assert mascot_badge(16) is None


def test_new_badges_skips_held_badges() -> None:
    child = Child(child_id="c1", account_id="a1", name="Ava", age=9, total_points=120, level=1)
    child.tasks.append(
        Task(
            task_id="t1",
            child_id="c1",
            title="Reading Time",
            points=20,
            due_date=date(2024, 3, 10),
            origin=TaskOrigin.DAILY_GENERATED,
            status=TaskStatus.APPROVED,
        )
    )

    earned = {badge.badge_id for badge in new_badges(child)}
    assert earned == {"first_task", "points_100", "mascot-level-1"}

    child.badges.extend(new_badges(child))
    assert new_badges(child) == ()
