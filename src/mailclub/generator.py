"""Daily task generation for children."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import AbstractSet, Callable, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from .models import AgeGroup, Child, Task, TaskCategory, TaskOrigin, TaskStatus

DAILY_TASK_COUNT = 5
REWARDED_REGENERATIONS = 3
REGENERATION_NO_POINTS_REASON = "Daily task regeneration limit exceeded; these tasks earn no points."


@dataclass(frozen=True, slots=True)
class TaskTemplate:
    title: str
    description: str
    category: TaskCategory
    points: int

    @property
    def template_id(self) -> str:
        return re.sub(r"[^a-z0-9]+", "-", self.title.lower()).strip("-")


def _templates(*rows: Tuple[str, str, str, int]) -> Tuple[TaskTemplate, ...]:
    return tuple(TaskTemplate(title, description, TaskCategory(category), points) for title, description, category, points in rows)


TASKS_BY_AGE_GROUP: Dict[AgeGroup, Tuple[TaskTemplate, ...]] = {
    AgeGroup.LITTLE_EXPLORERS: _templates(
        ("Coloring Time", "Complete a coloring page with your favorite colors", "creativity", 10),
        ("Reading with Parent", "Read a story together with mom or dad for 15 minutes", "reading", 15),
        ("Toy Cleanup", "Put all your toys back in their places", "chores", 10),
        ("Gratitude Drawing", "Draw something you are thankful for today", "kindness", 15),
        ("Brush Teeth", "Brush your teeth for 2 minutes", "chores", 5),
        ("Make Your Bed", "Make your bed nice and neat", "chores", 10),
        ("Help Set Table", "Help put plates and cups on the table", "chores", 10),
        ("Say Thank You", "Say thank you to someone who helps you today", "kindness", 10),
        ("Learn New Word", "Learn one new word and use it in a sentence", "learning", 15),
        ("Dance Party", "Dance to your favorite song for 5 minutes", "fitness", 10),
    ),
    AgeGroup.JUNIOR_ACHIEVERS: _templates(
        ("Reading Time", "Read a book for 20 minutes", "reading", 20),
        ("Room Cleanup", "Clean and organize your room", "chores", 15),
        ("Writing Prompt", "Write a short story or journal entry (5+ sentences)", "creativity", 20),
        ("Kindness Challenge", "Do something kind for a family member without being asked", "kindness", 20),
        ("Math Practice", "Complete 10 math problems", "learning", 15),
        ("Help with Dishes", "Help wash or dry the dishes after a meal", "chores", 15),
        ("Exercise Time", "Do 20 jumping jacks and 10 push-ups", "fitness", 15),
        ("Learn Something New", "Watch an educational video and share what you learned", "learning", 20),
        ("Creative Project", "Work on an art or craft project", "creativity", 20),
        ("Help Sibling", "Help your sibling with something they need", "kindness", 15),
    ),
    AgeGroup.RISING_STARS: _templates(
        ("Journaling", "Write in your journal about your day and feelings", "mindset", 25),
        ("Fitness Challenge", "Complete a 15-minute workout routine", "fitness", 25),
        ("Mindset Prompt", "Write about a challenge you overcame and what you learned", "mindset", 30),
        ("Focus Challenge", "Work on homework for 30 minutes without distractions", "learning", 30),
        ("Reading Goal", "Read for 30 minutes", "reading", 25),
        ("Household Chore", "Complete a household chore (vacuum, laundry, etc.)", "chores", 20),
        ("Goal Setting", "Write down 3 goals for the week", "goals", 25),
        ("Gratitude List", "Write 5 things you are grateful for today", "kindness", 20),
        ("Learn a Skill", "Spend 20 minutes learning something new online", "learning", 25),
        ("Help Others", "Volunteer to help with a family task", "kindness", 20),
    ),
    AgeGroup.FUTURE_LEADERS: _templates(
        ("Goal Planning", "Review and update your weekly/monthly goals", "goals", 35),
        ("Budget Exercise", "Track expenses or create a simple budget", "entrepreneur", 40),
        ("Entrepreneur Challenge", "Brainstorm a business idea and write a mini plan", "entrepreneur", 45),
        ("Discipline Habit", "Complete your morning routine before 8 AM", "mindset", 30),
        ("Deep Work Session", "Work on an important project for 45 minutes", "learning", 40),
        ("Fitness Routine", "Complete a 30-minute workout", "fitness", 35),
        ("Reading Hour", "Read a non-fiction book for 30+ minutes", "reading", 35),
        ("Reflection Journal", "Write about your progress toward your goals", "mindset", 30),
        ("Skill Building", "Practice a skill you want to improve", "learning", 35),
        ("Network Challenge", "Reach out to someone you admire and ask a question", "entrepreneur", 40),
    ),
}


def templates_for(age_group: AgeGroup, category: TaskCategory | None = None) -> Sequence[TaskTemplate]:
    templates = TASKS_BY_AGE_GROUP[age_group]
    if category is None:
        return templates
    return tuple(template for template in templates if template.category is category)


@dataclass(frozen=True, slots=True)
class DailyRefresh:
    """Outcome of a refresh: the day's generated tasks and whether they are new."""

    day: date
    tasks: Tuple[Task, ...]
    created: bool


@dataclass(frozen=True, slots=True)
class Regeneration:
    """Outcome of replacing a child's pending generated tasks for a day."""

    day: date
    tasks: Tuple[Task, ...]
    replaced: Tuple[str, ...]
    attempt: int

    @property
    def rewarded(self) -> bool:
        return self.attempt <= REWARDED_REGENERATIONS


class DailyTaskGenerator:
    """Assign one set of age-appropriate tasks per child per calendar day.

    The ledger maps ``(child_id, day)`` to the generated task ids and counts
    regenerations under the same key. It lives only as long as the process;
    after a restart the child's stored tasks keep the refresh idempotent.
    """

    def __init__(
        self,
        *,
        count: int = DAILY_TASK_COUNT,
        rng: random.Random | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        if count <= 0:
            raise ValueError("Daily task count must be positive.")
        self._count = count
        self._rng = rng or random.Random()
        self._id_factory = id_factory or (lambda: str(uuid4()))
        self._ledger: Dict[Tuple[str, date], Tuple[str, ...]] = {}
        self._regenerations: Dict[Tuple[str, date], int] = {}

    @property
    def count(self) -> int:
        return self._count

    def ledger_entry(self, child_id: str, day: date) -> Optional[Tuple[str, ...]]:
        return self._ledger.get((child_id, day))

    def regenerations(self, child_id: str, day: date) -> int:
        return self._regenerations.get((child_id, day), 0)

    def can_regenerate_with_points(self, child_id: str, day: date) -> bool:
        return self.regenerations(child_id, day) < REWARDED_REGENERATIONS

    def checkpoint(self, child_id: str, day: date) -> Tuple[Optional[Tuple[str, ...]], int]:
        key = (child_id, day)
        return self._ledger.get(key), self._regenerations.get(key, 0)

    def restore(
        self,
        child_id: str,
        day: date,
        checkpoint: Tuple[Optional[Tuple[str, ...]], int] = (None, 0),
    ) -> None:
        """Put the ledger entry for ``(child_id, day)`` back to a checkpoint."""

        key = (child_id, day)
        task_ids, regenerations = checkpoint
        if task_ids is None:
            self._ledger.pop(key, None)
        else:
            self._ledger[key] = task_ids
        if regenerations:
            self._regenerations[key] = regenerations
        else:
            self._regenerations.pop(key, None)

    def clear(self) -> None:
        self._ledger.clear()
        self._regenerations.clear()

    def refresh(self, child: Child, today: date, *, now: datetime | None = None) -> DailyRefresh:
        existing = _generated_on(child, today)
        key = (child.child_id, today)
        if existing or key in self._ledger:
            self._ledger.setdefault(key, tuple(task.task_id for task in existing))
            return DailyRefresh(day=today, tasks=existing, created=False)

        tasks = self._build(child, today, self._choose(child, today), now=now)
        child.tasks.extend(tasks)
        self._ledger[key] = tuple(task.task_id for task in tasks)
        return DailyRefresh(day=today, tasks=tasks, created=True)

    def regenerate(self, child: Child, today: date, *, now: datetime | None = None) -> Regeneration:
        """Swap today's still-pending generated tasks for a fresh set.

        Submitted, approved and custom tasks stay. Past
        ``REWARDED_REGENERATIONS`` calls on the same day, the new tasks are
        worth 0 points.
        """

        key = (child.child_id, today)
        attempt = self._regenerations.get(key, 0) + 1
        stale = [
            task
            for task in _generated_on(child, today)
            if task.status is TaskStatus.PENDING
        ]
        kept = [task for task in _generated_on(child, today) if task.status is not TaskStatus.PENDING]
        chosen = self._choose(
            child,
            today,
            avoid={task.title for task in stale},
            exclude={task.title for task in kept},
        )
        tasks = self._build(child, today, chosen[: max(0, self._count - len(kept))], now=now)
        if attempt > REWARDED_REGENERATIONS:
            for task in tasks:
                task.points = 0
                task.no_points_reason = REGENERATION_NO_POINTS_REASON
        stale_ids = {task.task_id for task in stale}
        child.tasks[:] = [task for task in child.tasks if task.task_id not in stale_ids]
        child.tasks.extend(tasks)
        self._ledger[key] = tuple(task.task_id for task in kept) + tuple(task.task_id for task in tasks)
        self._regenerations[key] = attempt
        return Regeneration(day=today, tasks=tasks, replaced=tuple(task.task_id for task in stale), attempt=attempt)

    def _build(
        self,
        child: Child,
        today: date,
        templates: Sequence[TaskTemplate],
        *,
        now: datetime | None = None,
    ) -> Tuple[Task, ...]:
        created_at = now or datetime.utcnow()
        return tuple(
            Task(
                task_id=self._id_factory(),
                child_id=child.child_id,
                title=template.title,
                description=template.description,
                category=template.category,
                points=template.points,
                due_date=today,
                origin=TaskOrigin.DAILY_GENERATED,
                created_at=created_at,
            )
            for template in templates
        )

    def _choose(
        self,
        child: Child,
        today: date,
        *,
        avoid: AbstractSet[str] = frozenset(),
        exclude: AbstractSet[str] = frozenset(),
    ) -> List[TaskTemplate]:
        templates = [template for template in TASKS_BY_AGE_GROUP[child.age_group] if template.title not in exclude]
        yesterday = {task.title for task in _generated_on(child, today - timedelta(days=1))} | set(avoid)
        fresh = [template for template in templates if template.title not in yesterday]
        repeats = [template for template in templates if template.title in yesterday]
        self._rng.shuffle(fresh)
        self._rng.shuffle(repeats)
        return (fresh + repeats)[: self._count]


def _generated_on(child: Child, day: date) -> Tuple[Task, ...]:
    return tuple(
        task for task in child.tasks if task.due_date == day and task.origin is TaskOrigin.DAILY_GENERATED
    )


__all__ = [
    "DAILY_TASK_COUNT",
    "DailyRefresh",
    "DailyTaskGenerator",
    "REGENERATION_NO_POINTS_REASON",
    "REWARDED_REGENERATIONS",
    "Regeneration",
    "TASKS_BY_AGE_GROUP",
    "TaskTemplate",
    "templates_for",
]
