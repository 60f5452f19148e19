from __future__ import annotations

import logging
from datetime import date, timedelta

from life_game.constants import DEFAULT_TUNING, LEVEL_UP_COINS_PER_LEVEL, XP_PER_LEVEL
from life_game.errors import ValidationError
from life_game.models import DailyResetResult, LevelUpEvent, Snapshot, UserProfile, XpGrant

logger = logging.getLogger(__name__)


def _effective_tuning(tuning: dict[str, int] | None = None) -> dict[str, int]:
    if not tuning:
        return dict(DEFAULT_TUNING)
    merged = dict(DEFAULT_TUNING)
    merged.update(tuning)
    return merged


def xp_to_next_level(level: int) -> int:
    return max(1, level) * XP_PER_LEVEL


def level_up_coins(level: int) -> int:
    return level * LEVEL_UP_COINS_PER_LEVEL


def passive_coins(amount: int, tuning: dict[str, int] | None = None) -> int:
    divisor = max(1, int(_effective_tuning(tuning)["passive_coin_divisor"]))
    return max(0, amount) // divisor


def add_xp(
    snapshot: Snapshot,
    amount: int,
    source: str | None = None,
    tuning: dict[str, int] | None = None,
) -> XpGrant:
    """Grant XP and normalize leveling.

    Several level-ups can fire for a single large grant. No deduplication
    happens here: callers grant exactly once per completion edge.
    """
    if amount < 0:
        raise ValidationError("XP amount must not be negative")

    user = snapshot.user
    user.xp += amount
    user.total_xp += amount

    events: list[LevelUpEvent] = []
    while user.xp >= user.xp_to_next_level:
        user.xp -= user.xp_to_next_level
        # Reward and next threshold are both priced by the level being left.
        coins = level_up_coins(user.level)
        user.xp_to_next_level = xp_to_next_level(user.level)
        user.level += 1
        user.coins += coins
        events.append(LevelUpEvent(level=user.level, coins_awarded=coins))
        logger.info("level up: %s (+%s coins)", user.level, coins)

    earned = passive_coins(amount, tuning=tuning)
    user.coins += earned
    return XpGrant(amount=amount, source=source, passive_coins=earned, level_ups=events)


def level_progress(user: UserProfile) -> float:
    return user.xp / max(1, user.xp_to_next_level)


def _same_iso_week(a: date, b: date) -> bool:
    return a.isocalendar()[:2] == b.isocalendar()[:2]


def check_daily_reset(snapshot: Snapshot, today: date) -> DailyResetResult | None:
    """Reconcile the streak and habit flags with ``today``.

    Safe to call on every access: returns None when the snapshot is already
    current (or when the clock reads earlier than the last active date).
    """
    user = snapshot.user
    previous = user.last_active_date
    if previous is not None and previous >= today:
        return None

    continued = previous == today - timedelta(days=1)
    if continued:
        user.streak += 1
    else:
        user.streak = 1
    user.max_streak = max(user.max_streak, user.streak)

    user.last_active_date = today
    snapshot.stats.total_days_active += 1

    reset = 0
    new_week = previous is None or not _same_iso_week(previous, today)
    for habit in snapshot.habits:
        if not habit.completed_today:
            continue
        if habit.cadence == "daily" or (habit.cadence == "weekly" and new_week):
            habit.completed_today = False
            reset += 1

    logger.info("daily reset: %s -> %s, streak=%s", previous, today, user.streak)
    return DailyResetResult(
        previous_date=previous,
        today=today,
        streak=user.streak,
        streak_continued=continued,
        habits_reset=reset,
    )
