"""
FastAPI dependencies: settings, Graph client and session lookup from app state.
"""

from typing import Awaitable, Callable, Optional

from fastapi import Request

from pulse.api.graph_client import GraphClient
from pulse.auth.session_store import SESSION_COOKIE_NAME, SessionStore
from pulse.models.session import DashboardSession
from pulse.utils.config import Settings


def get_session_token(request: Request) -> Optional[str]:
    """Extract session token from request (cookie or Authorization header)"""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_graph_client(request: Request) -> GraphClient:
    return request.app.state.graph_client


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_current_session(request: Request) -> Optional[DashboardSession]:
    """Dashboard session for this request, or None (never raises)"""
    return get_session_store(request).get(get_session_token(request))


def get_disconnect_check(request: Request) -> Callable[[], Awaitable[bool]]:
    """Coroutine the event stream polls to notice a closed client connection"""
    return request.is_disconnected
