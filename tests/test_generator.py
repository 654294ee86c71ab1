import random
from datetime import date, timedelta

from mailclub.generator import (
    DAILY_TASK_COUNT,
    REGENERATION_NO_POINTS_REASON,
    REWARDED_REGENERATIONS,
    TASKS_BY_AGE_GROUP,
    DailyTaskGenerator,
    templates_for,
)
from mailclub.models import AgeGroup, Child, Task, TaskCategory, TaskOrigin, TaskStatus

TODAY = date(2024, 3, 10)


def make_child(age: int = 9) -> Child:
    return Child(child_id="c1", account_id="a1", name="Ava", age=age)


def test_every_age_group_has_enough_templates() -> None:
    for group in AgeGroup:
        assert len(TASKS_BY_AGE_GROUP[group]) >= DAILY_TASK_COUNT


def test_templates_filter_by_category() -> None:
    reading = templates_for(AgeGroup.FUTURE_LEADERS, TaskCategory.READING)
    assert [template.title for template in reading] == ["Reading Hour"]


def test_refresh_creates_daily_set_for_age_group() -> None:
    child = make_child(age=6)
    generator = DailyTaskGenerator(rng=random.Random(7))

    refresh = generator.refresh(child, TODAY)

    assert refresh.created
    assert len(refresh.tasks) == DAILY_TASK_COUNT
    titles = {template.title for template in TASKS_BY_AGE_GROUP[AgeGroup.LITTLE_EXPLORERS]}
    assert {task.title for task in refresh.tasks} <= titles
    assert len({task.title for task in refresh.tasks}) == DAILY_TASK_COUNT
    assert all(task.origin is TaskOrigin.DAILY_GENERATED and task.due_date == TODAY for task in refresh.tasks)
    assert generator.ledger_entry("c1", TODAY) == tuple(task.task_id for task in refresh.tasks)


def test_refresh_is_idempotent_per_day() -> None:
    child = make_child()
    generator = DailyTaskGenerator(rng=random.Random(1))

    first = generator.refresh(child, TODAY)
    second = generator.refresh(child, TODAY)

    assert not second.created
    assert [task.task_id for task in second.tasks] == [task.task_id for task in first.tasks]
    assert len(child.tasks_due(TODAY)) == DAILY_TASK_COUNT


def test_refresh_after_restart_uses_stored_tasks() -> None:
    child = make_child()
    DailyTaskGenerator(rng=random.Random(1)).refresh(child, TODAY)

    fresh_generator = DailyTaskGenerator(rng=random.Random(2))
    refresh = fresh_generator.refresh(child, TODAY)

    assert not refresh.created
    assert len(child.tasks) == DAILY_TASK_COUNT


def test_custom_tasks_do_not_block_generation() -> None:
    child = make_child()
    child.tasks.append(
        Task(
            task_id="custom",
            child_id="c1",
            title="Walk the dog",
            points=10,
            due_date=TODAY,
            origin=TaskOrigin.CUSTOM,
        )
    )

    refresh = DailyTaskGenerator().refresh(child, TODAY)

    assert refresh.created
    assert len(child.tasks_due(TODAY)) == DAILY_TASK_COUNT + 1


def test_next_day_prefers_templates_not_used_yesterday() -> None:
    child = make_child()
    generator = DailyTaskGenerator(rng=random.Random(3))

    yesterday = generator.refresh(child, TODAY - timedelta(days=1))
    today = generator.refresh(child, TODAY)

    # Ten templates per group: five fresh ones are always available.
    assert today.created
    assert not {task.title for task in yesterday.tasks} & {task.title for task in today.tasks}


def test_regenerate_replaces_only_pending_generated_tasks() -> None:
    child = make_child()
    generator = DailyTaskGenerator(rng=random.Random(3))
    first = generator.refresh(child, TODAY).tasks
    first[0].status = TaskStatus.COMPLETED
    first[1].status = TaskStatus.APPROVED
    custom = Task(
        task_id="custom-1",
        child_id="c1",
        title="Feed the fish",
        points=10,
        due_date=TODAY,
        origin=TaskOrigin.CUSTOM,
    )
    child.tasks.append(custom)

    regeneration = generator.regenerate(child, TODAY)

    assert regeneration.attempt == 1 and regeneration.rewarded
    assert set(regeneration.replaced) == {task.task_id for task in first[2:]}
    assert first[0] in child.tasks and first[1] in child.tasks and custom in child.tasks
    assert all(task not in child.tasks for task in first[2:])
    assert len(regeneration.tasks) == DAILY_TASK_COUNT - 2
    titles = [task.title for task in child.tasks if task.origin is TaskOrigin.DAILY_GENERATED]
    assert len(titles) == len(set(titles)) == DAILY_TASK_COUNT
    assert generator.ledger_entry("c1", TODAY) == (first[0].task_id, first[1].task_id) + tuple(
        task.task_id for task in regeneration.tasks
    )


def test_fourth_regeneration_earns_no_points() -> None:
    child = make_child()
    generator = DailyTaskGenerator(rng=random.Random(5))
    generator.refresh(child, TODAY)

    for attempt in range(1, REWARDED_REGENERATIONS + 1):
        assert generator.can_regenerate_with_points("c1", TODAY)
        regeneration = generator.regenerate(child, TODAY)
        assert regeneration.attempt == attempt
        assert all(task.points > 0 and task.no_points_reason is None for task in regeneration.tasks)

    assert not generator.can_regenerate_with_points("c1", TODAY)
    fourth = generator.regenerate(child, TODAY)

    assert not fourth.rewarded
    assert all(task.points == 0 for task in fourth.tasks)
    assert all(task.no_points_reason == REGENERATION_NO_POINTS_REASON for task in fourth.tasks)
    assert generator.regenerations("c1", TODAY) == 4
    assert generator.can_regenerate_with_points("c1", TODAY + timedelta(days=1))


def test_checkpoint_restore_rewinds_ledger() -> None:
    child = make_child()
    generator = DailyTaskGenerator()
    checkpoint = generator.checkpoint("c1", TODAY)

    generator.refresh(child, TODAY)
    generator.regenerate(child, TODAY)
    generator.restore("c1", TODAY, checkpoint)

    assert generator.ledger_entry("c1", TODAY) is None
    assert generator.regenerations("c1", TODAY) == 0
