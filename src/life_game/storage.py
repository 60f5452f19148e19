from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Protocol

from life_game.constants import (
    BACKUP_PREFIX,
    CURRENT_SCHEMA_VERSION,
    DEFAULT_TUNING,
    EXPORT_PRODUCT,
    STORAGE_KEY,
)
from life_game.converters import snapshot_from_dict, snapshot_to_dict
from life_game.errors import MigrationError, NotFoundError, ParseError
from life_game.migrations import decode_payload, default_snapshot, detect_version, migrate
from life_game.models import Snapshot

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> bytes | None: ...
    def set(self, key: str, value: bytes) -> None: ...
    def delete(self, key: str) -> None: ...
    def keys(self, prefix: str = "") -> list[str]: ...


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class SqliteKeyValueStore:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, str] = {
                1: """
                    CREATE TABLE kv_store (
                        key TEXT PRIMARY KEY,
                        value BLOB NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                """,
            }
            for version, sql in sorted(migrations.items()):
                if version in current:
                    continue
                conn.executescript(sql)
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(timezone.utc).isoformat()),
                )

    def get(self, key: str) -> bytes | None:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return bytes(row["value"]) if row else None

    def set(self, key: str, value: bytes) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_store(key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, sqlite3.Binary(value), datetime.now(timezone.utc).isoformat()),
            )

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def keys(self, prefix: str = "") -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key ASC",
                (len(prefix), prefix),
            ).fetchall()
        return [str(row["key"]) for row in rows]


@dataclass(frozen=True)
class ExportFile:
    filename: str
    content: str


def backup_key(day: date) -> str:
    return f"{BACKUP_PREFIX}_{day.isoformat()}"


def export_filename(day: date) -> str:
    return f"{EXPORT_PRODUCT}-backup-{day.isoformat()}.json"


def encode_snapshot(snapshot: Snapshot) -> bytes:
    return json.dumps(snapshot_to_dict(snapshot), ensure_ascii=False).encode("utf-8")


class SnapshotGateway:
    """Reads and writes the snapshot and its dated backups in a key-value store."""

    def __init__(self, store: KeyValueStore, max_backups: int = DEFAULT_TUNING["max_backups"]) -> None:
        self.store = store
        self.max_backups = max(1, max_backups)

    def load(self) -> Snapshot:
        raw = self.store.get(STORAGE_KEY)
        if not raw:
            logger.info("no stored snapshot, starting fresh")
            return default_snapshot()
        try:
            return migrate(raw)
        except MigrationError as exc:
            # Corrupt data never blocks the user; it is replaced by defaults.
            logger.warning("stored snapshot unreadable, starting fresh: %s", exc)
            return default_snapshot()

    def save(self, snapshot: Snapshot, today: date) -> None:
        payload = encode_snapshot(snapshot)
        self.store.set(STORAGE_KEY, payload)
        if snapshot.schema_version >= 2:
            self.store.set(backup_key(today), payload)
            self.prune_backups()

    def list_backups(self) -> list[str]:
        return self.store.keys(f"{BACKUP_PREFIX}_")

    def prune_backups(self) -> list[str]:
        keys = self.list_backups()
        stale = keys[: max(0, len(keys) - self.max_backups)]
        for key in stale:
            self.store.delete(key)
        if stale:
            logger.info("pruned %s old backups", len(stale))
        return stale

    def restore_backup(self, day: date) -> Snapshot:
        raw = self.store.get(backup_key(day))
        if raw is None:
            raise NotFoundError(f"No backup for {day.isoformat()}")
        return migrate(raw)

    def clear(self) -> None:
        self.store.delete(STORAGE_KEY)
        for key in self.list_backups():
            self.store.delete(key)


def export_snapshot(snapshot: Snapshot, today: date) -> ExportFile:
    content = json.dumps(snapshot_to_dict(snapshot), ensure_ascii=False, indent=2)
    return ExportFile(filename=export_filename(today), content=content)


def parse_import(data: bytes | str) -> Snapshot:
    """Parse an export file. Unlike load, a different schema version is rejected."""
    try:
        payload = decode_payload(data)
        version = detect_version(payload)
    except MigrationError as exc:
        raise ParseError(f"Cannot read import file: {exc}") from exc
    if version != CURRENT_SCHEMA_VERSION:
        raise ParseError(
            f"Import file has schema version {version}, expected {CURRENT_SCHEMA_VERSION}"
        )
    return snapshot_from_dict(payload)
