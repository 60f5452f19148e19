from __future__ import annotations

from datetime import date, datetime
from typing import Any

from life_game.constants import CURRENT_SCHEMA_VERSION, DEFAULT_CATEGORIES, XP_PER_LEVEL
from life_game.errors import ParseError
from life_game.models import (
    Achievement,
    Category,
    Habit,
    Project,
    Snapshot,
    Stats,
    Subtask,
    Task,
    UserProfile,
)


def _date_or_none(value: Any) -> date | None:
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


def _datetime_or_none(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _created_at(raw: dict[str, Any]) -> datetime:
    parsed = _datetime_or_none(raw.get("createdAt"))
    if parsed is not None:
        return parsed
    # Ids are millisecond timestamps.
    try:
        return datetime.fromtimestamp(int(raw["id"]) / 1000)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"Id {raw['id']!r} is not a valid timestamp") from exc


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dict_to_user(raw: dict[str, Any]) -> UserProfile:
    level = max(1, int(raw.get("level", 1)))
    return UserProfile(
        level=level,
        xp=max(0, int(raw.get("xp", 0))),
        total_xp=max(0, int(raw.get("totalXP", 0))),
        xp_to_next_level=max(1, int(raw.get("xpToNextLevel", max(1, level - 1) * XP_PER_LEVEL))),
        coins=max(0, int(raw.get("coins", 0))),
        streak=max(0, int(raw.get("streak", 0))),
        max_streak=max(0, int(raw.get("maxStreak", 0))),
        last_active_date=_date_or_none(raw.get("lastActiveDate")),
        theme=str(raw.get("theme") or "light"),
    )


def _dict_to_category(raw: dict[str, Any]) -> Category:
    return Category(id=str(raw["id"]), display_name=str(raw["displayName"]), color=str(raw["color"]))


def _dict_to_subtask(raw: dict[str, Any]) -> Subtask:
    return Subtask(
        title=str(raw["title"]),
        xp_value=int(raw["xpValue"]),
        completed=bool(raw.get("completed", False)),
    )


def _dict_to_task(raw: dict[str, Any]) -> Task:
    return Task(
        title=str(raw["title"]),
        xp_value=int(raw["xpValue"]),
        completed=bool(raw.get("completed", False)),
        subtasks=[_dict_to_subtask(s) for s in raw.get("subtasks") or []],
    )


def _dict_to_project(raw: dict[str, Any]) -> Project:
    return Project(
        id=int(raw["id"]),
        title=str(raw["title"]),
        description=str(raw.get("description") or ""),
        category_id=str(raw["categoryId"]),
        deadline=_date_or_none(raw.get("deadline")),
        created_at=_created_at(raw),
        completed=bool(raw.get("completed", False)),
        tasks=[_dict_to_task(t) for t in raw.get("tasks") or []],
    )


def _dict_to_habit(raw: dict[str, Any]) -> Habit:
    return Habit(
        id=int(raw["id"]),
        title=str(raw["title"]),
        category_id=str(raw["categoryId"]),
        xp_value=int(raw["xpValue"]),
        cadence=str(raw.get("cadence") or "daily"),
        created_at=_created_at(raw),
        completed_today=bool(raw.get("completedToday", False)),
    )


def _dict_to_achievement(raw: dict[str, Any]) -> Achievement:
    return Achievement(
        id=int(raw["id"]),
        title=str(raw["title"]),
        description=str(raw.get("description") or ""),
        icon=str(raw.get("icon") or ""),
        unlocked=bool(raw.get("unlocked", False)),
        unlocked_at=_datetime_or_none(raw.get("unlockedAt")),
    )


def _dict_to_stats(raw: dict[str, Any]) -> Stats:
    return Stats(
        total_days_active=max(0, int(raw.get("totalDaysActive", 0))),
        completed_tasks_count=max(0, int(raw.get("completedTasksCount", 0))),
        completed_projects_count=max(0, int(raw.get("completedProjectsCount", 0))),
        total_habit_completions=max(0, int(raw.get("totalHabitCompletions", 0))),
    )


def snapshot_from_dict(raw: dict[str, Any]) -> Snapshot:
    """Build a snapshot from a current-generation JSON object.

    Older generations must go through ``life_game.migrations.migrate`` first.
    """
    if not isinstance(raw, dict):
        raise ParseError("Snapshot must be a JSON object")
    try:
        snapshot = Snapshot(
            schema_version=int(raw.get("schemaVersion", CURRENT_SCHEMA_VERSION)),
            user=_dict_to_user(raw.get("user") or {}),
            categories=[_dict_to_category(c) for c in raw.get("categories") or []],
            projects=[_dict_to_project(p) for p in raw.get("projects") or []],
            habits=[_dict_to_habit(h) for h in raw.get("habits") or []],
            achievements=[_dict_to_achievement(a) for a in raw.get("achievements") or []],
            stats=_dict_to_stats(raw.get("stats") or {}),
        )
    except (KeyError, TypeError, ValueError, OverflowError, AttributeError) as exc:
        raise ParseError(f"Malformed snapshot: {exc}") from exc

    if not snapshot.categories:
        snapshot.categories = [_dict_to_category(c) for c in DEFAULT_CATEGORIES]
    user = snapshot.user
    user.max_streak = max(user.max_streak, user.streak)
    return snapshot


def _task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "title": task.title,
        "xpValue": task.xp_value,
        "completed": task.completed,
        "subtasks": [
            {"title": s.title, "xpValue": s.xp_value, "completed": s.completed}
            for s in task.subtasks
        ],
    }


def project_to_dict(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "title": project.title,
        "description": project.description,
        "categoryId": project.category_id,
        "deadline": _iso(project.deadline),
        "completed": project.completed,
        "createdAt": _iso(project.created_at),
        "tasks": [_task_to_dict(t) for t in project.tasks],
    }


def habit_to_dict(habit: Habit) -> dict[str, Any]:
    return {
        "id": habit.id,
        "title": habit.title,
        "categoryId": habit.category_id,
        "xpValue": habit.xp_value,
        "cadence": habit.cadence,
        "completedToday": habit.completed_today,
        "createdAt": _iso(habit.created_at),
    }


def achievement_to_dict(achievement: Achievement) -> dict[str, Any]:
    return {
        "id": achievement.id,
        "title": achievement.title,
        "description": achievement.description,
        "icon": achievement.icon,
        "unlocked": achievement.unlocked,
        "unlockedAt": _iso(achievement.unlocked_at),
    }


def snapshot_to_dict(snapshot: Snapshot) -> dict[str, Any]:
    user = snapshot.user
    stats = snapshot.stats
    return {
        "schemaVersion": snapshot.schema_version,
        "user": {
            "level": user.level,
            "xp": user.xp,
            "totalXP": user.total_xp,
            "xpToNextLevel": user.xp_to_next_level,
            "coins": user.coins,
            "streak": user.streak,
            "maxStreak": user.max_streak,
            "lastActiveDate": _iso(user.last_active_date),
            "theme": user.theme,
        },
        "categories": [
            {"id": c.id, "displayName": c.display_name, "color": c.color}
            for c in snapshot.categories
        ],
        "projects": [project_to_dict(p) for p in snapshot.projects],
        "habits": [habit_to_dict(h) for h in snapshot.habits],
        "achievements": [achievement_to_dict(a) for a in snapshot.achievements],
        "stats": {
            "totalDaysActive": stats.total_days_active,
            "completedTasksCount": stats.completed_tasks_count,
            "completedProjectsCount": stats.completed_projects_count,
            "totalHabitCompletions": stats.total_habit_completions,
        },
    }
