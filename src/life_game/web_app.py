from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from life_game.config import load_settings, load_tuning
from life_game.converters import achievement_to_dict, habit_to_dict, project_to_dict, snapshot_to_dict
from life_game.errors import NotFoundError, ParseError, ValidationError
from life_game.logging_setup import setup_logging
from life_game.messages import achievement_message, grant_notifications, progress_notifications, status_message
from life_game.service import GameService
from life_game.storage import SnapshotGateway, SqliteKeyValueStore
from life_game.tracker import build_task, find_project


def _require_auth(request: Request, token: str | None) -> None:
    if not token:
        return
    header = request.headers.get("x-admin-token")
    query = request.query_params.get("token")
    if header == token or query == token:
        return
    raise HTTPException(status_code=401, detail="Unauthorized")


class XpRequest(BaseModel):
    amount: int = Field(gt=0)
    source: str | None = None


class SubtaskPayload(BaseModel):
    title: str
    xp_value: int | None = None


class TaskPayload(BaseModel):
    title: str
    xp_value: int | None = None
    subtasks: list[SubtaskPayload] = Field(default_factory=list)


class ProjectRequest(BaseModel):
    title: str
    category_id: str
    description: str = ""
    deadline: date | None = None
    tasks: list[TaskPayload] = Field(default_factory=list)


class HabitRequest(BaseModel):
    title: str
    category_id: str
    xp_value: int | None = None
    cadence: str = "daily"


class CategoryRequest(BaseModel):
    name: str
    color: str | None = None


class ThemeRequest(BaseModel):
    theme: str


def build_app(service: GameService, admin_token: str | None) -> FastAPI:
    app = FastAPI(title="Life Game", version="2.0.0")
    default_xp = int((service.tuning or {}).get("default_task_xp", 10))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ParseError)
    async def parse_handler(request: Request, exc: ParseError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/api/status")
    async def api_status(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        view = service.status()
        return {"status": asdict(view), "text": status_message(view)}

    @app.get("/api/snapshot")
    async def api_snapshot(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return snapshot_to_dict(service.snapshot)

    @app.post("/api/xp")
    async def api_add_xp(request: Request, payload: XpRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        outcome = service.add_xp(payload.amount, payload.source)
        notifications = grant_notifications([outcome.grant])
        notifications.extend(achievement_message(a) for a in outcome.unlocked)
        return {"grant": asdict(outcome.grant), "notifications": notifications}

    @app.post("/api/projects")
    async def api_create_project(request: Request, payload: ProjectRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        tasks = [
            build_task(
                t.title,
                t.xp_value,
                [(s.title, s.xp_value) for s in t.subtasks],
                default_xp=default_xp,
            )
            for t in payload.tasks
        ]
        project = service.create_project(
            title=payload.title,
            category_id=payload.category_id,
            tasks=tasks,
            description=payload.description,
            deadline=payload.deadline,
        )
        return {"project": project_to_dict(project)}

    @app.delete("/api/projects/{project_id}")
    async def api_delete_project(project_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        service.delete_project(project_id)
        return {"ok": True}

    @app.post("/api/projects/{project_id}/complete")
    async def api_complete_project(project_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        delta = service.complete_project(project_id)
        project = find_project(service.snapshot, project_id)
        return {
            "delta": asdict(delta),
            "project": project_to_dict(project),
            "notifications": progress_notifications(delta, project.title),
        }

    @app.post("/api/projects/{project_id}/reopen")
    async def api_reopen_project(project_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        delta = service.reopen_project(project_id)
        project = find_project(service.snapshot, project_id)
        return {
            "delta": asdict(delta),
            "project": project_to_dict(project),
            "notifications": progress_notifications(delta, project.title),
        }

    @app.post("/api/projects/{project_id}/tasks/{task_index}/toggle")
    async def api_toggle_task(
        project_id: int,
        task_index: int,
        request: Request,
        subtask: int | None = None,
    ) -> dict[str, Any]:
        _require_auth(request, admin_token)
        delta = service.toggle_task(project_id, task_index, subtask)
        project = find_project(service.snapshot, project_id)
        return {
            "delta": asdict(delta),
            "project": project_to_dict(project),
            "notifications": progress_notifications(delta, project.title),
        }

    @app.post("/api/habits")
    async def api_create_habit(request: Request, payload: HabitRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        habit = service.create_habit(
            title=payload.title,
            category_id=payload.category_id,
            xp_value=payload.xp_value,
            cadence=payload.cadence,
        )
        return {"habit": habit_to_dict(habit)}

    @app.post("/api/habits/{habit_id}/toggle")
    async def api_toggle_habit(habit_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        toggle = service.toggle_habit(habit_id)
        notifications = grant_notifications([toggle.xp_grant]) if toggle.xp_grant else []
        notifications.extend(achievement_message(a) for a in toggle.unlocked)
        return {
            "completed": toggle.completed,
            "unlocked": [achievement_to_dict(a) for a in toggle.unlocked],
            "notifications": notifications,
        }

    @app.delete("/api/habits/{habit_id}")
    async def api_delete_habit(habit_id: int, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        service.delete_habit(habit_id)
        return {"ok": True}

    @app.post("/api/categories")
    async def api_add_category(request: Request, payload: CategoryRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        category = service.add_category(payload.name, payload.color)
        return {"category": asdict(category)}

    @app.delete("/api/categories/{category_id}")
    async def api_delete_category(category_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        service.delete_category(category_id)
        return {"ok": True}

    @app.post("/api/theme")
    async def api_theme(request: Request, payload: ThemeRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return {"theme": service.set_theme(payload.theme)}

    @app.get("/api/export")
    async def api_export(request: Request) -> Response:
        _require_auth(request, admin_token)
        export = service.export_snapshot()
        return Response(
            content=export.content,
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
        )

    @app.post("/api/import")
    async def api_import(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        body = await request.body()
        snapshot = service.import_snapshot(body)
        return {"ok": True, "projects": len(snapshot.projects), "habits": len(snapshot.habits)}

    @app.post("/api/reset")
    async def api_reset(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return snapshot_to_dict(service.reset_all())

    @app.get("/api/backups")
    async def api_backups(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return {"backups": service.gateway.list_backups()}

    @app.post("/api/backups/{day}/restore")
    async def api_restore_backup(day: date, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return snapshot_to_dict(service.restore_backup(day))

    return app


def run_app() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    tuning = load_tuning(settings.tuning_path)
    gateway = SnapshotGateway(SqliteKeyValueStore(settings.database_path), max_backups=tuning["max_backups"])
    service = GameService.open(gateway, tz=settings.tz, tuning=tuning)
    app = build_app(service, settings.admin_panel_token)
    uvicorn.run(app, host=settings.admin_host, port=settings.admin_port)
