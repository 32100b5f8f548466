"""FastAPI application for meeting invitations and WebRTC signaling."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .core.config import Settings, get_settings
from .routers import meetings as meetings_router
from .routers import signaling as signaling_router
from .services.meeting_store import InMemoryMeetingStore, MeetingStore
from .services.notifications import build_notifier
from .services.registry import MeetingRegistry, run_expiry_sweeper, stop_task
from .services.signaling import SignalingManager
from .services.tokens import TokenGenerator

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> MeetingStore:
    """Return the meeting store selected by ``settings.meeting_store``."""

    if settings.meeting_store == "database":
        from .db.session import build_engine, build_sessionmaker
        from .repositories.meetings import SqlMeetingStore

        engine = build_engine(settings.database_url)
        return SqlMeetingStore(build_sessionmaker(engine), engine)
    return InMemoryMeetingStore()


def build_registry(settings: Settings, store: MeetingStore | None = None) -> MeetingRegistry:
    return MeetingRegistry(
        store or build_store(settings),
        generator=TokenGenerator(settings.token_length, settings.token_max_attempts),
        ttl=timedelta(minutes=settings.meeting_ttl_minutes),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    await app.state.registry.store.open()
    sweeper: asyncio.Task[None] | None = None
    if settings.sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(
            run_expiry_sweeper(
                app.state.registry,
                interval_seconds=settings.sweep_interval_seconds,
                retention=timedelta(minutes=settings.meeting_retention_minutes),
            )
        )
    try:
        yield
    finally:
        await stop_task(sweeper)
        await app.state.registry.store.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API with its registry, notifier and signaling manager on ``app.state``."""

    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Meeting Invitations API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = build_registry(settings)
    app.state.notifier = build_notifier(settings)
    app.state.signaling = SignalingManager(
        room_capacity=settings.signaling_room_capacity,
        require_shared_room=settings.signaling_require_shared_room,
        notify_peer_left=settings.signaling_notify_peer_left,
    )

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(meetings_router.router, prefix="/api/meetings", tags=["meetings"])
    app.include_router(signaling_router.router, prefix="/api", tags=["signaling"])

    @app.get("/api/health", tags=["meta"])
    async def health() -> dict[str, str]:
        """Simple liveness probe."""

        return {"status": "ok"}

    @app.head("/api/health", tags=["meta"])
    async def health_head() -> Response:
        """Allow HEAD for uptime monitors that only need the status code."""

        return Response(status_code=200)

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""

    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())
