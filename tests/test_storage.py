from __future__ import annotations

import json
from datetime import date, timedelta
from pathlib import Path

import pytest

from life_game.constants import BACKUP_PREFIX, STORAGE_KEY
from life_game.errors import NotFoundError, ParseError
from life_game.migrations import default_snapshot
from life_game.storage import (
    MemoryKeyValueStore,
    SnapshotGateway,
    SqliteKeyValueStore,
    export_snapshot,
    parse_import,
)


def test_sqlite_store_basic_ops(tmp_path: Path) -> None:
    store = SqliteKeyValueStore(tmp_path / "kv.db")
    assert store.get("a") is None
    store.set("a", b"1")
    store.set("a", b"2")
    store.set("b_x", b"3")
    assert store.get("a") == b"2"
    assert store.keys() == ["a", "b_x"]
    assert store.keys("b_") == ["b_x"]
    store.delete("a")
    assert store.get("a") is None

    reopened = SqliteKeyValueStore(tmp_path / "kv.db")
    assert reopened.get("b_x") == b"3"


def test_load_empty_store_returns_default() -> None:
    gateway = SnapshotGateway(MemoryKeyValueStore())
    assert gateway.load() == default_snapshot()


def test_load_corrupt_payload_falls_back_to_default() -> None:
    store = MemoryKeyValueStore()
    store.set(STORAGE_KEY, b"{broken")
    assert SnapshotGateway(store).load() == default_snapshot()


def test_save_then_load(tmp_path: Path) -> None:
    gateway = SnapshotGateway(SqliteKeyValueStore(tmp_path / "kv.db"))
    snap = default_snapshot()
    snap.user.coins = 12
    gateway.save(snap, date(2026, 3, 2))
    assert gateway.load() == snap
    assert gateway.list_backups() == [f"{BACKUP_PREFIX}_2026-03-02"]


def test_backups_keep_seven_most_recent() -> None:
    gateway = SnapshotGateway(MemoryKeyValueStore())
    snap = default_snapshot()
    start = date(2026, 3, 1)
    days = [start + timedelta(days=i) for i in range(10)]
    for day in days:
        gateway.save(snap, day)
    assert gateway.list_backups() == [f"{BACKUP_PREFIX}_{d.isoformat()}" for d in days[3:]]


def test_same_day_saves_share_one_backup() -> None:
    gateway = SnapshotGateway(MemoryKeyValueStore())
    snap = default_snapshot()
    gateway.save(snap, date(2026, 3, 2))
    snap.user.coins = 99
    gateway.save(snap, date(2026, 3, 2))
    assert len(gateway.list_backups()) == 1
    assert gateway.restore_backup(date(2026, 3, 2)).user.coins == 99


def test_first_generation_snapshot_writes_no_backup() -> None:
    gateway = SnapshotGateway(MemoryKeyValueStore())
    snap = default_snapshot()
    snap.schema_version = 1
    gateway.save(snap, date(2026, 3, 2))
    assert gateway.list_backups() == []


def test_restore_missing_backup() -> None:
    gateway = SnapshotGateway(MemoryKeyValueStore())
    with pytest.raises(NotFoundError):
        gateway.restore_backup(date(2026, 3, 2))


def test_clear_removes_everything() -> None:
    store = MemoryKeyValueStore()
    gateway = SnapshotGateway(store)
    gateway.save(default_snapshot(), date(2026, 3, 2))
    gateway.clear()
    assert store.keys() == []


def test_export_file_name_and_content() -> None:
    snap = default_snapshot()
    export = export_snapshot(snap, date(2026, 3, 2))
    assert export.filename == "life-game-backup-2026-03-02.json"
    data = json.loads(export.content)
    assert data["schemaVersion"] == 2
    assert [c["id"] for c in data["categories"]] == ["work", "health", "learning", "personal"]


def test_import_accepts_current_export() -> None:
    snap = default_snapshot()
    snap.user.coins = 5
    export = export_snapshot(snap, date(2026, 3, 2))
    assert parse_import(export.content) == snap


def test_import_rejects_other_versions_and_garbage() -> None:
    with pytest.raises(ParseError):
        parse_import(json.dumps({"version": 1, "user": {}}))
    with pytest.raises(ParseError):
        parse_import(b"{not json")
    with pytest.raises(ParseError):
        parse_import(json.dumps({"schemaVersion": 2, "projects": [{"title": "no id"}]}))


@pytest.mark.parametrize(
    "raw",
    [
        b'{"schemaVersion": Infinity}',
        b'{"version": -Infinity}',
        b'{"schemaVersion": 2, "user": {"xp": Infinity}}',
        b'{"projects": [{"id": 1, "title": "Garden", "tasks": [{"title": "Dig", "xp": Infinity}]}]}',
    ],
)
def test_load_out_of_range_numbers_falls_back_to_default(raw: bytes) -> None:
    store = MemoryKeyValueStore()
    store.set(STORAGE_KEY, raw)
    assert SnapshotGateway(store).load() == default_snapshot()


def test_load_project_id_beyond_timestamp_range_falls_back_to_default() -> None:
    store = MemoryKeyValueStore()
    payload = {"schemaVersion": 2, "projects": [{"id": 10**30, "title": "Far", "categoryId": "work"}]}
    store.set(STORAGE_KEY, json.dumps(payload).encode("utf-8"))
    assert SnapshotGateway(store).load() == default_snapshot()


def test_import_rejects_out_of_range_numbers() -> None:
    with pytest.raises(ParseError):
        parse_import('{"schemaVersion": Infinity}')
    with pytest.raises(ParseError):
        parse_import('{"schemaVersion": 2, "user": {"xp": Infinity}}')
    with pytest.raises(ParseError):
        parse_import(json.dumps({"schemaVersion": 2, "habits": [{"id": 10**30, "title": "Run", "categoryId": "health", "xpValue": 5}]}))
    with pytest.raises(ParseError):
        parse_import(json.dumps({"schemaVersion": 2, "projects": [{"id": 10**30, "title": "Far", "categoryId": "work"}]}))
