from __future__ import annotations

import json
from datetime import datetime

from fastapi.testclient import TestClient

from life_game.service import GameService
from life_game.storage import MemoryKeyValueStore, SnapshotGateway
from life_game.web_app import build_app

TOKEN = "secret"


def _client(token: str | None = TOKEN) -> tuple[TestClient, GameService]:
    gateway = SnapshotGateway(MemoryKeyValueStore())
    service = GameService.open(gateway, clock=lambda: datetime(2026, 3, 2, 12, 0))
    client = TestClient(build_app(service, token))
    if token:
        client.headers.update({"x-admin-token": token})
    return client, service


def test_auth_required_when_token_set() -> None:
    client, _ = _client()
    assert client.get("/api/status", headers={"x-admin-token": "wrong"}).status_code == 401
    assert client.get(f"/api/status?token={TOKEN}", headers={"x-admin-token": ""}).status_code == 200


def test_open_access_without_token() -> None:
    client, _ = _client(token=None)
    body = client.get("/api/status").json()
    assert body["status"]["level"] == 1
    assert "Level 1" in body["text"]


def test_add_xp_returns_level_ups() -> None:
    client, service = _client()
    resp = client.post("/api/xp", json={"amount": 250, "source": "bonus"})
    assert resp.status_code == 200
    notifications = resp.json()["notifications"]
    assert notifications[0] == "+250 XP (bonus)"
    assert sum(1 for line in notifications if line.startswith("🎉 Level")) == 2
    assert service.snapshot.user.level == 3


def test_xp_amount_must_be_positive() -> None:
    client, _ = _client()
    assert client.post("/api/xp", json={"amount": 0}).status_code == 422


def test_project_lifecycle() -> None:
    client, _ = _client()
    resp = client.post(
        "/api/projects",
        json={
            "title": "Garden",
            "category_id": "personal",
            "deadline": "2026-03-05",
            "tasks": [{"title": "Dig", "xp_value": 15}, {"title": "Plant", "subtasks": [{"title": "Seeds"}]}],
        },
    )
    assert resp.status_code == 200
    project = resp.json()["project"]
    assert project["categoryId"] == "personal"
    assert project["deadline"] == "2026-03-05"
    assert project["tasks"][1]["subtasks"][0]["xpValue"] == 10

    pid = project["id"]
    first = client.post(f"/api/projects/{pid}/tasks/0/toggle").json()
    assert first["delta"]["progress"] == 33
    assert first["notifications"][0] == "+15 XP (Task: Dig)"
    assert [a["id"] for a in first["delta"]["unlocked"]] == [1]

    client.post(f"/api/projects/{pid}/tasks/1/toggle")
    last = client.post(f"/api/projects/{pid}/tasks/1/toggle?subtask=0").json()
    assert last["delta"]["project_completed"] is True
    assert last["project"]["completed"] is True
    assert any("completed!" in line for line in last["notifications"])

    assert client.delete(f"/api/projects/{pid}").json() == {"ok": True}
    assert client.get("/api/snapshot").json()["projects"] == []


def test_error_status_codes() -> None:
    client, _ = _client()
    assert client.post("/api/projects/42/complete").status_code == 404
    assert client.delete("/api/habits/42").status_code == 404

    bad_category = client.post("/api/projects", json={"title": "X", "category_id": "nope"})
    assert bad_category.status_code == 400
    assert "Unknown category" in bad_category.json()["detail"]

    assert client.post("/api/theme", json={"theme": "neon"}).status_code == 400
    assert client.post("/api/import", content=b"not json").status_code == 422


def test_habit_endpoints() -> None:
    client, _ = _client()
    habit = client.post("/api/habits", json={"title": "Walk", "category_id": "health", "xp_value": 5}).json()["habit"]
    assert habit["cadence"] == "daily"

    on = client.post(f"/api/habits/{habit['id']}/toggle").json()
    assert on["completed"] is True
    assert on["notifications"] == ["+5 XP (Habit: Walk)"]
    off = client.post(f"/api/habits/{habit['id']}/toggle").json()
    assert off["completed"] is False


def test_categories_and_theme() -> None:
    client, service = _client()
    created = client.post("/api/categories", json={"name": "Music", "color": "#abcdef"}).json()
    assert created["category"]["id"] == "music"
    assert client.post("/api/categories", json={"name": "music"}).status_code == 400
    assert client.delete("/api/categories/music").json() == {"ok": True}
    assert client.post("/api/theme", json={"theme": "dark"}).json() == {"theme": "dark"}
    assert service.snapshot.user.theme == "dark"


def test_export_and_import_round_trip() -> None:
    client, service = _client()
    client.post("/api/xp", json={"amount": 40})
    resp = client.get("/api/export")
    assert resp.status_code == 200
    assert resp.headers["content-disposition"] == 'attachment; filename="life-game-backup-2026-03-02.json"'
    exported = resp.content

    client.post("/api/xp", json={"amount": 500})
    result = client.post("/api/import", content=exported)
    assert result.json() == {"ok": True, "projects": 0, "habits": 0}
    assert service.snapshot.user.total_xp == 40


def test_import_rejects_other_schema_version() -> None:
    client, service = _client()
    payload = json.dumps({"version": 1, "user": {"level": 4}})
    resp = client.post("/api/import", content=payload)
    assert resp.status_code == 422
    assert "schema version 1" in resp.json()["detail"]
    assert service.snapshot.user.level == 1


def test_reset_and_backups() -> None:
    client, _ = _client()
    client.post("/api/xp", json={"amount": 40})
    snap = client.post("/api/reset").json()
    assert snap["user"]["totalXP"] == 0
    assert client.get("/api/backups").json() == {"backups": ["lifeGameBackup_2026-03-02"]}


def test_restore_backup_endpoint() -> None:
    client, service = _client()
    client.post("/api/xp", json={"amount": 40})
    restored = client.post("/api/backups/2026-03-02/restore").json()
    assert restored["user"]["totalXP"] == 40
    assert client.post("/api/backups/2026-02-01/restore").status_code == 404
    assert service.snapshot.user.total_xp == 40


def test_reopen_project_endpoint() -> None:
    client, service = _client()
    pid = client.post("/api/projects", json={"title": "Desk", "category_id": "work", "tasks": [{"title": "Sand"}]}).json()["project"]["id"]
    client.post(f"/api/projects/{pid}/complete")
    body = client.post(f"/api/projects/{pid}/reopen").json()
    assert body["delta"]["project_reopened"] is True
    assert body["project"]["completed"] is False
    assert body["notifications"] == ['Project "Desk" reopened']
    assert service.snapshot.stats.completed_projects_count == 0
    assert client.post(f"/api/projects/{pid}/reopen").status_code == 400
