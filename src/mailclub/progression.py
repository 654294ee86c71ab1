"""Points, streak and mail meter rules for MailClub."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from .models import Badge, BadgeType, Child

# (minimum lifetime points, multiplier), highest threshold first.
TIER_THRESHOLDS: Tuple[Tuple[int, int], ...] = ((5000, 3), (2500, 2), (0, 1))
POINTS_PER_LEVEL = 500
MAIL_METER_PERCENT_PER_POINT = 1.0
MAIL_METER_FULL = 100.0


def tier_for(total_points: int) -> int:
    """Return the reward multiplier unlocked by ``total_points``."""

    for threshold, multiplier in TIER_THRESHOLDS:
        if total_points >= threshold:
            return multiplier
    return 1


def effective_reward(points: int, total_points_before: int) -> int:
    """Points actually credited for a task.

    The multiplier is read before the credit lands so a task cannot lift
    itself into a higher tier.
    """

    return points * tier_for(total_points_before)


def level_for(total_points: int) -> int:
    return max(0, total_points) // POINTS_PER_LEVEL + 1


def next_streak(streak: int, last_completed: Optional[date], today: date) -> int:
    if last_completed == today:
        return max(streak, 1)
    if last_completed is not None and today - last_completed == timedelta(days=1):
        return streak + 1
    return 1


@dataclass(frozen=True, slots=True)
class MailMeterUpdate:
    progress: float
    unlocked: int

    @property
    def did_unlock(self) -> bool:
        return self.unlocked > 0


def advance_mail_meter(
    current: float,
    points_delta: int,
    *,
    scale: float = MAIL_METER_PERCENT_PER_POINT,
) -> MailMeterUpdate:
    """Add ``points_delta`` to the meter, carrying any overflow past 100."""

    progress = max(0.0, current) + max(0, points_delta) * scale
    unlocked = 0
    while progress >= MAIL_METER_FULL:
        progress -= MAIL_METER_FULL
        unlocked += 1
    return MailMeterUpdate(progress=round(progress, 4), unlocked=unlocked)


@dataclass(frozen=True, slots=True)
class Achievement:
    achievement_id: str
    name: str
    description: str
    target: int
    check: str  # tasks|streak|points|level|mail


ACHIEVEMENTS: Tuple[Achievement, ...] = (
    Achievement("first_task", "First Task", "Complete your first task", 1, "tasks"),
    Achievement("task_10", "Getting Started", "Complete 10 tasks", 10, "tasks"),
    Achievement("task_25", "Task Master", "Complete 25 tasks", 25, "tasks"),
    Achievement("task_50", "Super Achiever", "Complete 50 tasks", 50, "tasks"),
    Achievement("task_100", "Century Champion", "Complete 100 tasks", 100, "tasks"),
    Achievement("streak_3", "Consistency", "3 day streak", 3, "streak"),
    Achievement("streak_7", "Week Warrior", "7 day streak", 7, "streak"),
    Achievement("streak_14", "Two Week Champion", "14 day streak", 14, "streak"),
    Achievement("streak_30", "Monthly Master", "30 day streak", 30, "streak"),
    Achievement("points_100", "Century Club", "Earn 100 points", 100, "points"),
    Achievement("points_500", "Point Collector", "Earn 500 points", 500, "points"),
    Achievement("points_1000", "Point Master", "Earn 1,000 points", 1000, "points"),
    Achievement("points_5000", "Point Legend", "Earn 5,000 points", 5000, "points"),
    Achievement("level_2", "Level Up!", "Reach Level 2", 2, "level"),
    Achievement("level_5", "Rising Star", "Reach Level 5", 5, "level"),
    Achievement("level_10", "Expert", "Reach Level 10", 10, "level"),
    Achievement("level_15", "Master", "Reach Level 15", 15, "level"),
    Achievement("mail_unlocked", "Mail Time!", "Unlock your first mail", 1, "mail"),
)

MASCOTS: Tuple[str, ...] = ("posty", "rosie", "milo", "skye")
MASCOT_TITLES: Dict[int, str] = {1: "Starter", 2: "Friend", 3: "Explorer", 4: "Flyer"}
MAX_MASCOT_LEVEL = 15


def _achievement_value(child: Child, check: str) -> int:
    if check == "tasks":
        return child.approved_task_count()
    if check == "streak":
        return child.streak_days
    if check == "points":
        return child.total_points
    if check == "level":
        return child.level
    if check == "mail":
        return child.mail_rewards_unlocked
    raise ValueError(f"Unknown achievement check '{check}'.")


def mascot_badge(level: int) -> Optional[Badge]:
    """Sticker handed out when a child reaches ``level`` (1–15)."""

    if level < 1 or level > MAX_MASCOT_LEVEL:
        return None
    mascot = MASCOTS[(level - 1) % len(MASCOTS)]
    if level <= 4:
        title = MASCOT_TITLES[level]
    elif level <= 8:
        title = "Star" if level == 5 else ("Helper", "Adventurer", "Traveler")[level - 6]
    elif level <= 12:
        title = "Champion"
    else:
        title = "Legend"
    return Badge(
        badge_id=f"mascot-level-{level}",
        name=f"{mascot.title()} {title}",
        type=BadgeType.MASCOT,
        description="Welcome to the club!" if level == 1 else f"Level {level} achieved!",
    )


def new_badges(child: Child) -> Sequence[Badge]:
    """Return badges ``child`` has earned but does not hold yet."""

    earned: List[Badge] = []
    for achievement in ACHIEVEMENTS:
        if child.has_badge(achievement.achievement_id):
            continue
        if _achievement_value(child, achievement.check) >= achievement.target:
            earned.append(
                Badge(
                    badge_id=achievement.achievement_id,
                    name=achievement.name,
                    type=BadgeType.ACHIEVEMENT,
                    description=achievement.description,
                )
            )
    sticker = mascot_badge(child.level)
    if sticker is not None and not child.has_badge(sticker.badge_id):
        earned.append(sticker)
    return tuple(earned)


__all__ = [
    "ACHIEVEMENTS",
    "Achievement",
    "MAIL_METER_FULL",
    "MAIL_METER_PERCENT_PER_POINT",
    "MailMeterUpdate",
    "POINTS_PER_LEVEL",
    "TIER_THRESHOLDS",
    "advance_mail_meter",
    "effective_reward",
    "level_for",
    "mascot_badge",
    "new_badges",
    "next_streak",
    "tier_for",
]
