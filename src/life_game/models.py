from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from life_game.constants import CURRENT_SCHEMA_VERSION, XP_PER_LEVEL


@dataclass
class UserProfile:
    level: int = 1
    xp: int = 0
    total_xp: int = 0
    xp_to_next_level: int = XP_PER_LEVEL
    coins: int = 0
    streak: int = 0
    max_streak: int = 0
    last_active_date: date | None = None
    theme: str = "light"


@dataclass
class Category:
    id: str
    display_name: str
    color: str


@dataclass
class Subtask:
    title: str
    xp_value: int
    completed: bool = False


@dataclass
class Task:
    title: str
    xp_value: int
    completed: bool = False
    subtasks: list[Subtask] = field(default_factory=list)


@dataclass
class Project:
    id: int
    title: str
    description: str
    category_id: str
    deadline: date | None
    created_at: datetime
    completed: bool = False
    tasks: list[Task] = field(default_factory=list)


@dataclass
class Habit:
    id: int
    title: str
    category_id: str
    xp_value: int
    cadence: str
    created_at: datetime
    completed_today: bool = False


@dataclass
class Achievement:
    id: int
    title: str
    description: str
    icon: str
    unlocked: bool = False
    unlocked_at: datetime | None = None


@dataclass
class Stats:
    total_days_active: int = 0
    completed_tasks_count: int = 0
    completed_projects_count: int = 0
    total_habit_completions: int = 0


@dataclass
class Snapshot:
    user: UserProfile
    categories: list[Category]
    projects: list[Project]
    habits: list[Habit]
    achievements: list[Achievement]
    stats: Stats
    schema_version: int = CURRENT_SCHEMA_VERSION


@dataclass(frozen=True)
class LevelUpEvent:
    level: int
    coins_awarded: int


@dataclass(frozen=True)
class XpGrant:
    amount: int
    source: str | None
    passive_coins: int
    level_ups: list[LevelUpEvent]


@dataclass(frozen=True)
class DailyResetResult:
    previous_date: date | None
    today: date
    streak: int
    streak_continued: bool
    habits_reset: int


@dataclass(frozen=True)
class ProgressDelta:
    project_id: int
    completed: bool
    progress: int
    xp_grants: list[XpGrant]
    project_completed: bool = False
    project_reopened: bool = False
    unlocked: list[Achievement] = field(default_factory=list)

    @property
    def level_ups(self) -> list[LevelUpEvent]:
        return [event for grant in self.xp_grants for event in grant.level_ups]


@dataclass(frozen=True)
class HabitToggle:
    habit_id: int
    completed: bool
    xp_grant: XpGrant | None
    unlocked: list[Achievement] = field(default_factory=list)
