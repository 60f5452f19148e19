from __future__ import annotations

import json
import logging
from typing import Any, Callable

from life_game.achievements import catalog_achievements
from life_game.constants import (
    ACHIEVEMENT_CATALOGS,
    CURRENT_SCHEMA_VERSION,
    DEFAULT_CATEGORIES,
    XP_PER_LEVEL,
)
from life_game.converters import _dict_to_category, snapshot_from_dict
from life_game.errors import MigrationError, ParseError
from life_game.models import Snapshot, Stats, UserProfile

logger = logging.getLogger(__name__)

V1_USER_DEFAULTS: dict[str, Any] = {
    "level": 1,
    "xp": 0,
    "totalXP": 0,
    "xpToNextLevel": XP_PER_LEVEL,
    "coins": 0,
    "streak": 0,
    "maxStreak": 0,
    "lastActive": None,
}

V1_STATS_DEFAULTS: dict[str, int] = {
    "totalDays": 1,
    "completedTasks": 0,
    "completedProjects": 0,
    "totalHabits": 0,
}


def default_snapshot() -> Snapshot:
    return Snapshot(
        schema_version=CURRENT_SCHEMA_VERSION,
        user=UserProfile(),
        categories=[_dict_to_category(c) for c in DEFAULT_CATEGORIES],
        projects=[],
        habits=[],
        achievements=catalog_achievements(CURRENT_SCHEMA_VERSION),
        stats=Stats(),
    )


def decode_payload(raw: bytes | str | dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MigrationError(f"Snapshot is not UTF-8 text: {exc}") from exc
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MigrationError(f"Snapshot is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MigrationError("Snapshot must be a JSON object")
    return payload


def detect_version(payload: dict[str, Any]) -> int | None:
    # The first generation tagged itself with "version".
    raw = payload.get("schemaVersion", payload.get("version"))
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError) as exc:
        raise MigrationError(f"Unreadable schema version: {raw!r}") from exc


def _with_defaults(value: Any, defaults: dict[str, Any]) -> dict[str, Any]:
    merged = dict(defaults)
    if isinstance(value, dict):
        merged.update({k: v for k, v in value.items() if v is not None or k not in defaults})
    return merged


def _list_of_dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def reseed_achievements(old: Any, version: int, old_flag: str = "unlocked", flag_key: str = "unlocked") -> list[dict[str, Any]]:
    """Rebuild the catalog of ``version`` keeping unlock flags by numeric id."""
    previous: dict[int, dict[str, Any]] = {}
    for item in _list_of_dicts(old):
        try:
            previous[int(item["id"])] = item
        except (KeyError, TypeError, ValueError, OverflowError):
            continue

    seeded: list[dict[str, Any]] = []
    for achievement_id, meta in sorted(ACHIEVEMENT_CATALOGS[version].items()):
        prior = previous.get(achievement_id, {})
        unlocked = bool(prior.get(old_flag))
        entry = {"id": achievement_id, **meta, flag_key: unlocked}
        if flag_key == "unlocked":
            entry["unlockedAt"] = prior.get("unlockedAt") if unlocked else None
        seeded.append(entry)

    dropped = set(previous) - set(ACHIEVEMENT_CATALOGS[version])
    if dropped:
        logger.info("dropping achievements absent from v%s catalog: %s", version, sorted(dropped))
    return seeded


def _normalize_v1(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "version": 1,
        "user": _with_defaults(payload.get("user"), V1_USER_DEFAULTS),
        "projects": _list_of_dicts(payload.get("projects")),
        "habits": _list_of_dicts(payload.get("habits")),
        "achievements": reseed_achievements(payload.get("achievements"), 1, old_flag="earned", flag_key="earned"),
        "stats": _with_defaults(payload.get("stats"), V1_STATS_DEFAULTS),
        "categories": _list_of_dicts(payload.get("categories")),
    }


def _v1_task(task: dict[str, Any]) -> dict[str, Any]:
    return {
        "title": str(task.get("title") or ""),
        "xpValue": int(task.get("xp") or 10),
        "completed": bool(task.get("completed", False)),
        "subtasks": [],
    }


def _v1_project(project: dict[str, Any]) -> dict[str, Any]:
    tasks = [_v1_task(t) for t in _list_of_dicts(project.get("tasks"))]
    completed = bool(project.get("completed", False))
    if completed:
        # Projects could be finished by hand with tasks still open; close them.
        for task in tasks:
            task["completed"] = True
    elif tasks and all(t["completed"] for t in tasks):
        completed = True
    return {
        "id": project.get("id"),
        "title": project.get("title") or "",
        "description": project.get("description") or "",
        "categoryId": project.get("category") or DEFAULT_CATEGORIES[0]["id"],
        "deadline": project.get("deadline"),
        "completed": completed,
        "createdAt": project.get("createdAt"),
        "tasks": tasks,
    }


def _v1_habit(habit: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": habit.get("id"),
        "title": habit.get("title") or "",
        "categoryId": habit.get("category") or DEFAULT_CATEGORIES[0]["id"],
        "xpValue": int(habit.get("xp") or 10),
        "cadence": habit.get("type") if habit.get("type") in ("daily", "weekly") else "daily",
        "completedToday": bool(habit.get("completed", False)),
        "createdAt": habit.get("createdAt"),
    }


def _v1_category(category: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": category.get("id"),
        "displayName": category.get("displayName") or category.get("name") or category.get("id"),
        "color": category.get("color") or DEFAULT_CATEGORIES[0]["color"],
    }


def _migrate_v1_to_v2(data: dict[str, Any]) -> dict[str, Any]:
    user = data["user"]
    stats = data["stats"]
    return {
        "schemaVersion": 2,
        "user": {
            "level": user["level"],
            "xp": user["xp"],
            "totalXP": user["totalXP"],
            "xpToNextLevel": user["xpToNextLevel"],
            "coins": user["coins"],
            "streak": user["streak"],
            "maxStreak": user["maxStreak"],
            "lastActiveDate": user.get("lastActive"),
            "theme": "light",
        },
        "categories": [_v1_category(c) for c in data["categories"]] or [dict(c) for c in DEFAULT_CATEGORIES],
        "projects": [_v1_project(p) for p in data["projects"] if p.get("id") is not None],
        "habits": [_v1_habit(h) for h in data["habits"] if h.get("id") is not None],
        "achievements": reseed_achievements(data["achievements"], 2, old_flag="earned"),
        "stats": {
            "totalDaysActive": stats["totalDays"],
            "completedTasksCount": stats["completedTasks"],
            "completedProjectsCount": stats["completedProjects"],
            "totalHabitCompletions": stats["totalHabits"],
        },
    }


MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    1: _migrate_v1_to_v2,
}


def migrate(raw: bytes | str | dict[str, Any]) -> Snapshot:
    payload = decode_payload(raw)
    version = detect_version(payload)
    if version is None or version <= 1:
        data = _normalize_v1(payload)
        version = 1
    else:
        data = payload

    if version > CURRENT_SCHEMA_VERSION:
        raise MigrationError(f"Snapshot version {version} is newer than supported {CURRENT_SCHEMA_VERSION}")

    start = version
    try:
        while version < CURRENT_SCHEMA_VERSION:
            data = MIGRATIONS[version](data)
            version += 1
        snapshot = snapshot_from_dict(data)
    except ParseError as exc:
        raise MigrationError(str(exc)) from exc
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        raise MigrationError(f"Cannot migrate snapshot from v{start}: {exc}") from exc

    if start != CURRENT_SCHEMA_VERSION:
        logger.info("migrated snapshot from v%s to v%s", start, CURRENT_SCHEMA_VERSION)
    snapshot.schema_version = CURRENT_SCHEMA_VERSION
    return snapshot
