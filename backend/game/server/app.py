from __future__ import annotations

import contextlib
import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from game.messaging.router import MessageRouter
from game.server.settings import GameServerSettings
from game.server.types import SoloResultRequest
from game.server.websocket import websocket_endpoint
from game.session.manager import SessionManager
from shared.dal.models import MatchRecord
from shared.logging import setup_logging
from shared.storage import JsonlHistoryStorage, clamp_limit

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from shared.dal.history_repository import HistoryRepository


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    return JSONResponse(
        {
            "status": "ok",
            "connections": session_manager.connection_count,
            "players": len(session_manager.registry),
            "rooms": len(session_manager.rooms),
            "pending_timers": session_manager.timer_manager.pending_count,
        },
    )


_MAX_REQUEST_BODY_SIZE = 4096


def _parse_limit(request: Request) -> int:
    """Read ?limit=, falling back to the configured default on bad input."""
    settings: GameServerSettings = request.app.state.settings
    raw = request.query_params.get("limit")
    if raw is None:
        return settings.default_history_limit
    try:
        return clamp_limit(int(raw))
    except ValueError:
        return settings.default_history_limit


def _history_repository(request: Request) -> HistoryRepository | None:
    session_manager: SessionManager = request.app.state.session_manager
    return session_manager.history


async def list_match_history(request: Request) -> JSONResponse:
    history = _history_repository(request)
    if history is None:
        return JSONResponse([])
    records = await history.get_recent_matches(_parse_limit(request))
    return JSONResponse([r.model_dump(mode="json") for r in records])


async def submit_solo_result(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager

    try:
        raw_body = await request.body()
        if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
            return JSONResponse({"error": "Request body too large"}, status_code=413)
        body = json.loads(raw_body)
        result = SoloResultRequest(**body)
    except (ValueError, TypeError, json.JSONDecodeError, UnicodeDecodeError, ValidationError):  # fmt: skip
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    record = MatchRecord(
        recorded_at=datetime.now(UTC),
        room_name=result.room_name,
        winner_name=result.winner_name,
        loser_name=result.loser_name,
        mode=result.mode.value,
        source="solo",
    )
    await session_manager.record_match(record)
    return JSONResponse(record.model_dump(mode="json"), status_code=201)


async def list_user_history(request: Request) -> JSONResponse:
    history = _history_repository(request)
    if history is None:
        return JSONResponse([])
    events = await history.get_recent_user_events(_parse_limit(request))
    return JSONResponse([e.model_dump(mode="json") for e in events])


def create_app(
    settings: GameServerSettings | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = GameServerSettings()

    if session_manager is None:
        session_manager = SessionManager(
            history=JsonlHistoryStorage(settings.history_dir),
            timings=settings.match_timings(),
        )

    if message_router is None:
        message_router = MessageRouter(session_manager)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router, settings.inbound_limits())

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/api/history", list_match_history, methods=["GET"]),
        Route("/api/history", submit_solo_result, methods=["POST"]),
        Route("/api/users", list_user_history, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        session_manager.cancel_all_timers()
        await session_manager.wait_for_background_tasks()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager

    logger.info("game server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = GameServerSettings()
    setup_logging(_settings.log_dir)
    return create_app(settings=_settings)
