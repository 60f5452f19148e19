from __future__ import annotations

from typing import Any

CURRENT_SCHEMA_VERSION = 2

STORAGE_KEY = "lifeGameData"
BACKUP_PREFIX = "lifeGameBackup"
EXPORT_PRODUCT = "life-game"

XP_PER_LEVEL = 100
LEVEL_UP_COINS_PER_LEVEL = 10

# The first generation paid one coin per 5 XP.
PASSIVE_COIN_DIVISOR = 10

DEFAULT_TUNING: dict[str, int] = {
    "passive_coin_divisor": PASSIVE_COIN_DIVISOR,
    "project_bonus_per_task": 20,
    "manual_project_bonus_per_task": 30,
    "default_task_xp": 10,
    "max_backups": 7,
}

HABIT_CADENCES = ("daily", "weekly")
THEMES = ("light", "dark")

DEFAULT_CATEGORIES: list[dict[str, str]] = [
    {"id": "work", "displayName": "Work", "color": "#007AFF"},
    {"id": "health", "displayName": "Health", "color": "#34C759"},
    {"id": "learning", "displayName": "Learning", "color": "#AF52DE"},
    {"id": "personal", "displayName": "Personal", "color": "#FF9500"},
]

DEFAULT_CATEGORY_COLOR = "#007AFF"

# Achievement catalogs per schema generation, keyed by numeric id.
ACHIEVEMENT_CATALOGS: dict[int, dict[int, dict[str, Any]]] = {
    1: {
        1: {"title": "First step", "description": "Complete your first task", "icon": "\U0001f680"},
        2: {"title": "Unbroken week", "description": "7 days in a row with activity", "icon": "\U0001f525"},
        3: {"title": "Project complete", "description": "Finish your first project", "icon": "\U0001f3c6"},
        4: {"title": "Habit master", "description": "Keep up your habits for a week", "icon": "\U0001f4aa"},
        5: {"title": "Level 5", "description": "Reach level 5", "icon": "⭐"},
    },
    2: {
        1: {"title": "First step", "description": "Complete your first task", "icon": "\U0001f680"},
        2: {"title": "Unbroken week", "description": "7 days in a row with activity", "icon": "\U0001f525"},
        3: {"title": "Project complete", "description": "Finish a project", "icon": "\U0001f3c6"},
        4: {"title": "Habit master", "description": "Every 7th habit completion", "icon": "\U0001f4aa"},
        5: {"title": "Level 5", "description": "Reach level 5", "icon": "⭐"},
        6: {"title": "Unbroken month", "description": "30 days in a row with activity", "icon": "\U0001f30b"},
        7: {"title": "Level 10", "description": "Reach level 10", "icon": "\U0001f31f"},
    },
}
