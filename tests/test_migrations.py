from __future__ import annotations

import json

import pytest

from life_game.constants import CURRENT_SCHEMA_VERSION
from life_game.converters import snapshot_to_dict
from life_game.errors import MigrationError
from life_game.migrations import default_snapshot, migrate
from life_game.progression import add_xp
from life_game.tracker import toggle_task


def _v1_payload() -> dict:
    return {
        "version": 1,
        "user": {
            "level": 3,
            "xp": 40,
            "totalXP": 340,
            "xpToNextLevel": 300,
            "coins": 95,
            "streak": 4,
            "maxStreak": 6,
            "lastActive": "2026-02-27",
        },
        "projects": [
            {
                "id": 1760000000000,
                "title": "Garden",
                "description": "",
                "category": "personal",
                "deadline": "2026-04-01",
                "completed": False,
                "createdAt": "2025-10-09T08:53:20.000Z",
                "tasks": [
                    {"title": "Dig", "xp": 15, "completed": True},
                    {"title": "Plant", "xp": 20, "completed": False},
                ],
            }
        ],
        "habits": [
            {
                "id": 1760000000500,
                "title": "Stretch",
                "category": "health",
                "xp": 5,
                "type": "daily",
                "completed": True,
                "createdAt": "2025-10-09T08:53:20.500Z",
            }
        ],
        "achievements": [
            {"id": 1, "title": "First step", "earned": True},
            {"id": 3, "title": "Project complete", "earned": True},
            {"id": 4, "title": "Habit master", "earned": False},
        ],
        "stats": {"totalDays": 12, "completedTasks": 9, "completedProjects": 2, "totalHabits": 5},
    }


def test_v1_snapshot_is_upgraded() -> None:
    snap = migrate(json.dumps(_v1_payload()))
    assert snap.schema_version == CURRENT_SCHEMA_VERSION
    assert snap.user.level == 3
    assert snap.user.total_xp == 340
    assert snap.user.last_active_date.isoformat() == "2026-02-27"
    assert snap.stats.total_days_active == 12
    assert snap.stats.completed_tasks_count == 9
    assert snap.stats.total_habit_completions == 5

    project = snap.projects[0]
    assert project.category_id == "personal"
    assert [t.xp_value for t in project.tasks] == [15, 20]
    assert all(t.subtasks == [] for t in project.tasks)

    habit = snap.habits[0]
    assert habit.cadence == "daily"
    assert habit.xp_value == 5
    assert habit.completed_today is True


def test_achievement_flags_follow_numeric_ids() -> None:
    snap = migrate(_v1_payload())
    by_id = {a.id: a for a in snap.achievements}
    assert by_id[1].unlocked is True
    assert by_id[3].unlocked is True
    assert by_id[4].unlocked is False
    # Introduced in the second generation.
    assert by_id[6].unlocked is False
    assert by_id[7].unlocked is False


def test_dropped_achievements_disappear() -> None:
    payload = _v1_payload()
    payload["achievements"].append({"id": 42, "title": "Retired", "earned": True})
    snap = migrate(payload)
    assert 42 not in {a.id for a in snap.achievements}


def test_unversioned_payload_gets_defaults() -> None:
    snap = migrate(b'{"projects": [], "user": {"level": 2, "xp": 10}}')
    assert snap.schema_version == CURRENT_SCHEMA_VERSION
    assert snap.user.level == 2
    assert snap.user.xp == 10
    assert snap.user.coins == 0
    assert snap.stats.total_days_active == 1
    assert len(snap.categories) == 4
    assert len(snap.achievements) == 7


def test_current_version_round_trips() -> None:
    snap = default_snapshot()
    snap.user.coins = 7
    again = migrate(json.dumps(snapshot_to_dict(snap)))
    assert again == snap


@pytest.mark.parametrize("raw", [b"not json", "[1, 2]", "\"text\"", b"\xff\xfe"])
def test_unparseable_payload_fails(raw) -> None:
    with pytest.raises(MigrationError):
        migrate(raw)


def test_future_version_fails() -> None:
    with pytest.raises(MigrationError):
        migrate({"schemaVersion": CURRENT_SCHEMA_VERSION + 1})


def test_hand_finished_project_closes_open_tasks() -> None:
    payload = _v1_payload()
    payload["projects"][0]["completed"] = True
    snap = migrate(payload)
    project = snap.projects[0]
    assert project.completed is True
    assert all(t.completed for t in project.tasks)

    delta = toggle_task(snap, project.id, 1)
    assert delta.completed is False
    assert delta.project_reopened is True
    delta = toggle_task(snap, project.id, 1)
    assert delta.project_completed is True
    assert delta.project_reopened is False
    assert snap.stats.completed_projects_count == 2


def test_project_with_every_task_done_is_completed() -> None:
    payload = _v1_payload()
    payload["projects"][0]["tasks"][1]["completed"] = True
    snap = migrate(payload)
    assert snap.projects[0].completed is True


def test_migrated_threshold_kept_until_next_level_up() -> None:
    snap = migrate(_v1_payload())
    assert snap.user.xp_to_next_level == 300

    grant = add_xp(snap, 260)
    assert [e.level for e in grant.level_ups] == [4]
    assert grant.level_ups[0].coins_awarded == 30
    assert snap.user.xp == 0
    assert snap.user.xp_to_next_level == 300
