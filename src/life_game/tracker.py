from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterator, Sequence

from life_game.errors import NotFoundError, ValidationError
from life_game.models import Project, ProgressDelta, Snapshot, Subtask, Task, XpGrant
from life_game.progression import _effective_tuning, add_xp
from life_game.time_utils import time_based_id

logger = logging.getLogger(__name__)

PROJECT_STATUSES = ("all", "active", "completed")
PROJECT_SORTS = ("deadline", "progress", "name")
DUE_SOON_DAYS = 7


def find_project(snapshot: Snapshot, project_id: int) -> Project:
    for project in snapshot.projects:
        if project.id == project_id:
            return project
    raise NotFoundError(f"Project {project_id} not found")


def iter_leaves(project: Project) -> Iterator[Task | Subtask]:
    # A task with subtasks is a leaf of its own as well.
    for task in project.tasks:
        yield task
        yield from task.subtasks


def project_progress(project: Project) -> int:
    leaves = list(iter_leaves(project))
    if not leaves:
        return 0
    done = sum(1 for leaf in leaves if leaf.completed)
    # Half-up rounding of 100 * done / total.
    return (200 * done + len(leaves)) // (2 * len(leaves))


def all_leaves_completed(project: Project) -> bool:
    leaves = list(iter_leaves(project))
    return bool(leaves) and all(leaf.completed for leaf in leaves)


def completed_task_count(project: Project) -> int:
    return sum(1 for task in project.tasks if task.completed)


def _clean_xp(value: int | None, default_xp: int) -> int:
    if value is None or value <= 0:
        return default_xp
    return int(value)


def build_task(
    title: str,
    xp_value: int | None = None,
    subtasks: Sequence[tuple[str, int | None]] = (),
    default_xp: int = 10,
) -> Task:
    if not title or not title.strip():
        raise ValidationError("Task title is required")
    built_subtasks: list[Subtask] = []
    for sub_title, sub_xp in subtasks:
        if not sub_title or not sub_title.strip():
            raise ValidationError("Subtask title is required")
        built_subtasks.append(Subtask(title=sub_title.strip(), xp_value=_clean_xp(sub_xp, default_xp)))
    return Task(title=title.strip(), xp_value=_clean_xp(xp_value, default_xp), subtasks=built_subtasks)


def create_project(
    snapshot: Snapshot,
    title: str,
    category_id: str,
    tasks: Sequence[Task],
    now: datetime,
    description: str = "",
    deadline: date | None = None,
) -> Project:
    if not title or not title.strip():
        raise ValidationError("Project title is required")
    if category_id not in {c.id for c in snapshot.categories}:
        raise ValidationError(f"Unknown category: {category_id}")

    project = Project(
        id=time_based_id(now, {p.id for p in snapshot.projects}),
        title=title.strip(),
        description=(description or "").strip(),
        category_id=category_id,
        deadline=deadline,
        created_at=now,
        tasks=list(tasks),
    )
    snapshot.projects.append(project)
    logger.info("project created: %s (%s tasks)", project.id, len(project.tasks))
    return project


def _resolve_leaf(project: Project, task_index: int, subtask_index: int | None) -> Task | Subtask:
    if not 0 <= task_index < len(project.tasks):
        raise NotFoundError(f"Task {task_index} not found in project {project.id}")
    task = project.tasks[task_index]
    if subtask_index is None:
        return task
    if not 0 <= subtask_index < len(task.subtasks):
        raise NotFoundError(f"Subtask {task_index}.{subtask_index} not found in project {project.id}")
    return task.subtasks[subtask_index]


def _sync_completion(
    snapshot: Snapshot,
    project: Project,
    leaf_completed: bool,
    grants: list[XpGrant],
    tuning: dict[str, int] | None,
) -> ProgressDelta:
    cfg = _effective_tuning(tuning)
    stats = snapshot.stats
    finished = all_leaves_completed(project)
    completed_now = False
    reopened = False

    if finished and not project.completed:
        project.completed = True
        stats.completed_projects_count += 1
        bonus = len(project.tasks) * int(cfg["project_bonus_per_task"])
        grants.append(add_xp(snapshot, bonus, f"Project complete: {project.title}", tuning=tuning))
        completed_now = True
        logger.info("project completed: %s (+%s XP)", project.id, bonus)
    elif not finished and project.completed:
        project.completed = False
        stats.completed_projects_count = max(0, stats.completed_projects_count - 1)
        reopened = True
        logger.info("project reopened: %s", project.id)

    return ProgressDelta(
        project_id=project.id,
        completed=leaf_completed,
        progress=project_progress(project),
        xp_grants=grants,
        project_completed=completed_now,
        project_reopened=reopened,
    )


def toggle_task(
    snapshot: Snapshot,
    project_id: int,
    task_index: int,
    subtask_index: int | None = None,
    tuning: dict[str, int] | None = None,
) -> ProgressDelta:
    project = find_project(snapshot, project_id)
    leaf = _resolve_leaf(project, task_index, subtask_index)
    leaf.completed = not leaf.completed

    grants: list[XpGrant] = []
    stats = snapshot.stats
    if leaf.completed:
        grants.append(add_xp(snapshot, leaf.xp_value, f"Task: {leaf.title}", tuning=tuning))
        stats.completed_tasks_count += 1
    else:
        # XP already granted stays granted.
        stats.completed_tasks_count = max(0, stats.completed_tasks_count - 1)

    return _sync_completion(snapshot, project, leaf.completed, grants, tuning)


def complete_project(
    snapshot: Snapshot,
    project_id: int,
    tuning: dict[str, int] | None = None,
) -> ProgressDelta:
    """Manually finish a project: closes every open leaf and pays the larger bonus."""
    cfg = _effective_tuning(tuning)
    project = find_project(snapshot, project_id)
    if project.completed:
        raise ValidationError(f"Project {project_id} is already completed")

    stats = snapshot.stats
    for leaf in iter_leaves(project):
        if not leaf.completed:
            leaf.completed = True
            stats.completed_tasks_count += 1

    project.completed = True
    stats.completed_projects_count += 1
    bonus = len(project.tasks) * int(cfg["manual_project_bonus_per_task"])
    grant = add_xp(snapshot, bonus, f"Project complete: {project.title}", tuning=tuning)
    logger.info("project completed manually: %s (+%s XP)", project.id, bonus)
    return ProgressDelta(
        project_id=project.id,
        completed=True,
        progress=project_progress(project),
        xp_grants=[grant],
        project_completed=True,
    )


def reopen_project(snapshot: Snapshot, project_id: int) -> ProgressDelta:
    """Manually reopen a finished project. Every leaf goes back to open; XP stays granted."""
    project = find_project(snapshot, project_id)
    if not project.completed:
        raise ValidationError(f"Project {project_id} is not completed")

    stats = snapshot.stats
    for leaf in iter_leaves(project):
        if leaf.completed:
            leaf.completed = False
            stats.completed_tasks_count = max(0, stats.completed_tasks_count - 1)

    project.completed = False
    stats.completed_projects_count = max(0, stats.completed_projects_count - 1)
    logger.info("project reopened manually: %s", project.id)
    return ProgressDelta(
        project_id=project.id,
        completed=False,
        progress=project_progress(project),
        xp_grants=[],
        project_reopened=True,
    )


def delete_project(snapshot: Snapshot, project_id: int) -> Project:
    project = find_project(snapshot, project_id)
    snapshot.projects.remove(project)
    # Stats and XP earned from this project are kept.
    logger.info("project deleted: %s", project_id)
    return project


def is_overdue(project: Project, today: date) -> bool:
    return project.deadline is not None and not project.completed and project.deadline < today


def is_due_soon(project: Project, today: date) -> bool:
    if project.deadline is None or project.completed:
        return False
    return today < project.deadline < today + timedelta(days=DUE_SOON_DAYS)


def list_projects(
    snapshot: Snapshot,
    category_id: str | None = None,
    status: str = "all",
    sort_by: str = "deadline",
) -> list[Project]:
    if status not in PROJECT_STATUSES:
        raise ValidationError(f"Unknown project status filter: {status}")
    if sort_by not in PROJECT_SORTS:
        raise ValidationError(f"Unknown project sort: {sort_by}")

    projects = [
        p
        for p in snapshot.projects
        if (category_id in (None, "all") or p.category_id == category_id)
        and (status == "all" or p.completed == (status == "completed"))
    ]
    if sort_by == "progress":
        projects.sort(key=project_progress, reverse=True)
    elif sort_by == "name":
        projects.sort(key=lambda p: p.title.casefold())
    else:
        projects.sort(key=lambda p: (p.deadline is None, p.deadline or date.max))
    return projects
