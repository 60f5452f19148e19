from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from life_game.constants import ACHIEVEMENT_CATALOGS
from life_game.models import Achievement, Snapshot

logger = logging.getLogger(__name__)

PROJECT_COMPLETED = "project_completed"

FIRST_STEP = 1
WEEK_STREAK = 2
PROJECT_COMPLETE = 3
HABIT_MASTER = 4
LEVEL_FIVE = 5
MONTH_STREAK = 6
LEVEL_TEN = 7

AchievementRule = Callable[[Snapshot, frozenset[str]], bool]

ACHIEVEMENT_RULES: dict[int, AchievementRule] = {
    FIRST_STEP: lambda s, events: s.stats.completed_tasks_count == 1,
    WEEK_STREAK: lambda s, events: s.user.streak >= 7,
    PROJECT_COMPLETE: lambda s, events: PROJECT_COMPLETED in events,
    HABIT_MASTER: lambda s, events: (
        s.stats.total_habit_completions > 0 and s.stats.total_habit_completions % 7 == 0
    ),
    LEVEL_FIVE: lambda s, events: s.user.level >= 5,
    MONTH_STREAK: lambda s, events: s.user.streak >= 30,
    LEVEL_TEN: lambda s, events: s.user.level >= 10,
}


def catalog_achievements(version: int) -> list[Achievement]:
    return [
        Achievement(id=achievement_id, title=meta["title"], description=meta["description"], icon=meta["icon"])
        for achievement_id, meta in sorted(ACHIEVEMENT_CATALOGS[version].items())
    ]


def unlock_achievement(snapshot: Snapshot, achievement_id: int, now: datetime) -> Achievement | None:
    """Unlock one achievement; returns it only when this call flipped the flag."""
    for achievement in snapshot.achievements:
        if achievement.id != achievement_id:
            continue
        if achievement.unlocked:
            return None
        achievement.unlocked = True
        achievement.unlocked_at = now
        logger.info("achievement unlocked: %s (%s)", achievement.id, achievement.title)
        return achievement
    return None


def evaluate(snapshot: Snapshot, now: datetime, events: Iterable[str] = ()) -> list[Achievement]:
    raised = frozenset(events)
    unlocked: list[Achievement] = []
    for achievement in snapshot.achievements:
        if achievement.unlocked:
            continue
        rule = ACHIEVEMENT_RULES.get(achievement.id)
        if rule is None or not rule(snapshot, raised):
            continue
        result = unlock_achievement(snapshot, achievement.id, now)
        if result is not None:
            unlocked.append(result)
    return unlocked


def unlocked_count(snapshot: Snapshot) -> int:
    return sum(1 for a in snapshot.achievements if a.unlocked)
