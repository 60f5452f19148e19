from __future__ import annotations

import logging

from life_game.config import Settings, load_tuning
from life_game.messages import daily_reset_message, status_message
from life_game.service import GameService
from life_game.storage import SnapshotGateway, SqliteKeyValueStore

logger = logging.getLogger(__name__)

JOB_NAMES = ("daily_reset", "export", "backup")


def build_service(settings: Settings) -> GameService:
    tuning = load_tuning(settings.tuning_path)
    gateway = SnapshotGateway(SqliteKeyValueStore(settings.database_path), max_backups=tuning["max_backups"])
    return GameService(gateway, tz=settings.tz, tuning=tuning)


def run_daily_reset(service: GameService) -> None:
    outcome = service.check_daily_reset()
    if outcome is None:
        logger.info("daily reset: already current")
        return
    logger.info(daily_reset_message(outcome.reset))
    for achievement in outcome.unlocked:
        logger.info("achievement unlocked during reset: %s", achievement.title)


def run_export(service: GameService, settings: Settings) -> None:
    export = service.export_snapshot()
    settings.export_dir.mkdir(parents=True, exist_ok=True)
    path = settings.export_dir / export.filename
    path.write_text(export.content, encoding="utf-8")
    logger.info("snapshot exported to %s", path)


def run_backup(service: GameService) -> None:
    service.gateway.save(service.snapshot, service.today())
    logger.info("backup written, %s kept", len(service.gateway.list_backups()))


def run_job(job_name: str, settings: Settings) -> None:
    if job_name not in JOB_NAMES:
        raise SystemExit(f"Unknown job: {job_name}")
    service = build_service(settings)
    if job_name == "daily_reset":
        run_daily_reset(service)
    elif job_name == "export":
        run_export(service, settings)
    else:
        run_backup(service)
    logger.debug(status_message(service.status()))
