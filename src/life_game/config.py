from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from life_game.constants import DEFAULT_TUNING
from life_game.time_utils import DEFAULT_TZ

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    database_path: Path
    tz: str
    tuning_path: Path
    export_dir: Path
    admin_panel_token: str | None
    admin_host: str
    admin_port: int
    log_level: str


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def load_tuning(path: Path) -> dict[str, int]:
    tuning = dict(DEFAULT_TUNING)
    if not path.exists():
        return tuning

    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        logger.warning("tuning file %s is not a mapping, using defaults", path)
        return tuning
    for key, value in raw.items():
        if key not in DEFAULT_TUNING:
            continue
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            continue
        if parsed > 0:
            tuning[key] = parsed
    return tuning


def load_settings() -> Settings:
    _load_env_file(Path(".env"))

    admin_port_raw = os.getenv("ADMIN_PORT", "8080")
    try:
        admin_port = int(admin_port_raw)
    except ValueError:
        admin_port = 8080

    return Settings(
        database_path=Path(os.getenv("LIFE_GAME_DATABASE_PATH", "./data/life_game.db")),
        tz=os.getenv("TZ", DEFAULT_TZ),
        tuning_path=Path(os.getenv("LIFE_GAME_TUNING", "./tuning.yaml")),
        export_dir=Path(os.getenv("LIFE_GAME_EXPORT_DIR", "./exports")),
        admin_panel_token=os.getenv("ADMIN_PANEL_TOKEN"),
        admin_host=os.getenv("ADMIN_HOST", "127.0.0.1"),
        admin_port=admin_port,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
