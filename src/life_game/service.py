from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable, Iterable, Sequence

from life_game import achievements, categories, habits, progression, tracker
from life_game.constants import THEMES
from life_game.errors import ValidationError
from life_game.migrations import default_snapshot
from life_game.models import (
    Achievement,
    Category,
    DailyResetResult,
    Habit,
    HabitToggle,
    Project,
    ProgressDelta,
    Snapshot,
    Task,
    XpGrant,
)
from life_game.storage import ExportFile, SnapshotGateway, export_snapshot, parse_import
from life_game.time_utils import DEFAULT_TZ, now_local

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class XpOutcome:
    grant: XpGrant
    unlocked: list[Achievement]


@dataclass(frozen=True)
class ResetOutcome:
    reset: DailyResetResult
    unlocked: list[Achievement]


@dataclass(frozen=True)
class ProjectView:
    id: int
    title: str
    category_id: str
    progress: int
    completed: bool
    overdue: bool
    due_soon: bool
    tasks_done: int
    tasks_total: int


@dataclass(frozen=True)
class StatusView:
    level: int
    xp: int
    xp_to_next_level: int
    xp_progress_ratio: float
    total_xp: int
    coins: int
    streak: int
    max_streak: int
    completed_tasks: int
    completed_projects: int
    active_projects: int
    total_days_active: int
    achievements_unlocked: int
    achievements_total: int
    projects: list[ProjectView]


class GameService:
    """Single-user engine facade.

    Every mutation runs the pure core functions on the in-memory snapshot,
    re-checks achievements and writes the snapshot through the gateway
    before returning. Not thread-safe: one logical writer.
    """

    def __init__(
        self,
        gateway: SnapshotGateway,
        tz: str = DEFAULT_TZ,
        tuning: dict[str, int] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.gateway = gateway
        self.tz = tz
        self.tuning = tuning
        self._clock = clock or (lambda: now_local(self.tz))
        self.snapshot: Snapshot = gateway.load()

    @classmethod
    def open(
        cls,
        gateway: SnapshotGateway,
        tz: str = DEFAULT_TZ,
        tuning: dict[str, int] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> GameService:
        service = cls(gateway, tz=tz, tuning=tuning, clock=clock)
        if service.check_daily_reset() is None:
            service._commit()
        return service

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self.now().date()

    def _commit(self, events: Iterable[str] = ()) -> list[Achievement]:
        unlocked = achievements.evaluate(self.snapshot, self.now(), events)
        self.gateway.save(self.snapshot, self.today())
        return unlocked

    def _reconcile(self) -> None:
        # Sessions that stay open across midnight still roll the day over.
        result = progression.check_daily_reset(self.snapshot, self.today())
        if result is not None:
            self._commit()

    def check_daily_reset(self) -> ResetOutcome | None:
        result = progression.check_daily_reset(self.snapshot, self.today())
        if result is None:
            return None
        return ResetOutcome(reset=result, unlocked=self._commit())

    def add_xp(self, amount: int, source: str | None = None) -> XpOutcome:
        if amount <= 0:
            raise ValidationError("XP amount must be positive")
        self._reconcile()
        grant = progression.add_xp(self.snapshot, amount, source, tuning=self.tuning)
        return XpOutcome(grant=grant, unlocked=self._commit())

    def create_project(
        self,
        title: str,
        category_id: str,
        tasks: Sequence[Task],
        description: str = "",
        deadline: date | None = None,
    ) -> Project:
        self._reconcile()
        project = tracker.create_project(
            self.snapshot,
            title=title,
            category_id=category_id,
            tasks=tasks,
            now=self.now(),
            description=description,
            deadline=deadline,
        )
        self._commit()
        return project

    def _with_achievements(self, delta: ProgressDelta) -> ProgressDelta:
        events = [achievements.PROJECT_COMPLETED] if delta.project_completed else []
        return replace(delta, unlocked=self._commit(events))

    def toggle_task(self, project_id: int, task_index: int, subtask_index: int | None = None) -> ProgressDelta:
        self._reconcile()
        delta = tracker.toggle_task(self.snapshot, project_id, task_index, subtask_index, tuning=self.tuning)
        return self._with_achievements(delta)

    def complete_project(self, project_id: int) -> ProgressDelta:
        self._reconcile()
        delta = tracker.complete_project(self.snapshot, project_id, tuning=self.tuning)
        return self._with_achievements(delta)

    def reopen_project(self, project_id: int) -> ProgressDelta:
        self._reconcile()
        delta = tracker.reopen_project(self.snapshot, project_id)
        return self._with_achievements(delta)

    def delete_project(self, project_id: int) -> Project:
        self._reconcile()
        project = tracker.delete_project(self.snapshot, project_id)
        self._commit()
        return project

    def create_habit(
        self,
        title: str,
        category_id: str,
        xp_value: int | None = None,
        cadence: str = "daily",
    ) -> Habit:
        self._reconcile()
        habit = habits.create_habit(
            self.snapshot,
            title=title,
            category_id=category_id,
            now=self.now(),
            xp_value=xp_value,
            cadence=cadence,
            tuning=self.tuning,
        )
        self._commit()
        return habit

    def toggle_habit(self, habit_id: int) -> HabitToggle:
        self._reconcile()
        toggle = habits.toggle_habit(self.snapshot, habit_id, tuning=self.tuning)
        return replace(toggle, unlocked=self._commit())

    def delete_habit(self, habit_id: int) -> Habit:
        self._reconcile()
        habit = habits.delete_habit(self.snapshot, habit_id)
        self._commit()
        return habit

    def add_category(self, name: str, color: str | None = None) -> Category:
        category = categories.add_category(self.snapshot, name, color)
        self._commit()
        return category

    def delete_category(self, category_id: str) -> Category:
        category = categories.delete_category(self.snapshot, category_id)
        self._commit()
        return category

    def set_theme(self, theme: str) -> str:
        if theme not in THEMES:
            raise ValidationError(f"Unknown theme: {theme}")
        self.snapshot.user.theme = theme
        self._commit()
        return theme

    def unlock_achievement(self, achievement_id: int) -> Achievement | None:
        achievement = achievements.unlock_achievement(self.snapshot, achievement_id, self.now())
        if achievement is not None:
            self.gateway.save(self.snapshot, self.today())
        return achievement

    def export_snapshot(self) -> ExportFile:
        return export_snapshot(self.snapshot, self.today())

    def import_snapshot(self, data: bytes | str) -> Snapshot:
        # Parsing fails before anything is replaced.
        imported = parse_import(data)
        self.snapshot = imported
        self.gateway.save(self.snapshot, self.today())
        logger.info("snapshot imported: %s projects, %s habits", len(imported.projects), len(imported.habits))
        return imported

    def restore_backup(self, day: date) -> Snapshot:
        self.snapshot = self.gateway.restore_backup(day)
        self.gateway.save(self.snapshot, self.today())
        return self.snapshot

    def reset_all(self) -> Snapshot:
        self.gateway.clear()
        self.snapshot = default_snapshot()
        progression.check_daily_reset(self.snapshot, self.today())
        self._commit()
        logger.info("all data reset")
        return self.snapshot

    def status(self) -> StatusView:
        snap = self.snapshot
        user = snap.user
        today = self.today()
        views = [
            ProjectView(
                id=p.id,
                title=p.title,
                category_id=p.category_id,
                progress=tracker.project_progress(p),
                completed=p.completed,
                overdue=tracker.is_overdue(p, today),
                due_soon=tracker.is_due_soon(p, today),
                tasks_done=tracker.completed_task_count(p),
                tasks_total=len(p.tasks),
            )
            for p in tracker.list_projects(snap)
        ]
        return StatusView(
            level=user.level,
            xp=user.xp,
            xp_to_next_level=user.xp_to_next_level,
            xp_progress_ratio=progression.level_progress(user),
            total_xp=user.total_xp,
            coins=user.coins,
            streak=user.streak,
            max_streak=user.max_streak,
            completed_tasks=snap.stats.completed_tasks_count,
            completed_projects=snap.stats.completed_projects_count,
            active_projects=sum(1 for p in snap.projects if not p.completed),
            total_days_active=snap.stats.total_days_active,
            achievements_unlocked=achievements.unlocked_count(snap),
            achievements_total=len(snap.achievements),
            projects=views,
        )
