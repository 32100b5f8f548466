"""FastAPI dependencies resolving the services stored on ``app.state``."""
from __future__ import annotations

from fastapi import Request, WebSocket

from .core.config import Settings
from .services.notifications import InvitationNotifier
from .services.registry import MeetingRegistry
from .services.signaling import SignalingManager


def get_registry(request: Request) -> MeetingRegistry:
    return request.app.state.registry


def get_notifier(request: Request) -> InvitationNotifier:
    return request.app.state.notifier


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_signaling_manager(websocket: WebSocket) -> SignalingManager:
    return websocket.app.state.signaling
