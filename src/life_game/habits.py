from __future__ import annotations

import logging
from datetime import datetime

from life_game.constants import HABIT_CADENCES
from life_game.errors import NotFoundError, ValidationError
from life_game.models import Habit, HabitToggle, Snapshot
from life_game.progression import _effective_tuning, add_xp
from life_game.time_utils import time_based_id

logger = logging.getLogger(__name__)


def find_habit(snapshot: Snapshot, habit_id: int) -> Habit:
    for habit in snapshot.habits:
        if habit.id == habit_id:
            return habit
    raise NotFoundError(f"Habit {habit_id} not found")


def create_habit(
    snapshot: Snapshot,
    title: str,
    category_id: str,
    now: datetime,
    xp_value: int | None = None,
    cadence: str = "daily",
    tuning: dict[str, int] | None = None,
) -> Habit:
    if not title or not title.strip():
        raise ValidationError("Habit title is required")
    if cadence not in HABIT_CADENCES:
        raise ValidationError(f"Unknown cadence: {cadence}")
    if category_id not in {c.id for c in snapshot.categories}:
        raise ValidationError(f"Unknown category: {category_id}")

    default_xp = int(_effective_tuning(tuning)["default_task_xp"])
    habit = Habit(
        id=time_based_id(now, {h.id for h in snapshot.habits}),
        title=title.strip(),
        category_id=category_id,
        xp_value=xp_value if xp_value and xp_value > 0 else default_xp,
        cadence=cadence,
        created_at=now,
    )
    snapshot.habits.append(habit)
    return habit


def toggle_habit(snapshot: Snapshot, habit_id: int, tuning: dict[str, int] | None = None) -> HabitToggle:
    habit = find_habit(snapshot, habit_id)
    habit.completed_today = not habit.completed_today
    stats = snapshot.stats

    grant = None
    if habit.completed_today:
        grant = add_xp(snapshot, habit.xp_value, f"Habit: {habit.title}", tuning=tuning)
        stats.total_habit_completions += 1
    else:
        stats.total_habit_completions = max(0, stats.total_habit_completions - 1)
    return HabitToggle(habit_id=habit.id, completed=habit.completed_today, xp_grant=grant)


def delete_habit(snapshot: Snapshot, habit_id: int) -> Habit:
    habit = find_habit(snapshot, habit_id)
    snapshot.habits.remove(habit)
    logger.info("habit deleted: %s", habit_id)
    return habit
