"""API route handlers for the Social Pulse relay"""

from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from pulse.api.graph_client import GraphClient
from pulse.auth.session_store import SESSION_COOKIE_NAME, SessionStore
from pulse.models.session import DashboardSession
from pulse.services import metrics_relay
from pulse.services.auth_service import connect_facebook
from pulse.utils.config import Settings
from pulse.utils.exceptions import AuthSetupError, GraphAPIError
from pulse.utils.logger import get_logger

from .deps import (
    get_current_session,
    get_disconnect_check,
    get_graph_client,
    get_session_store,
    get_session_token,
    get_settings,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class FacebookAuthRequest(BaseModel):
    token: Optional[str] = None


@router.get("/health")
async def health_check():
    """Health check endpoint for deployment platforms"""
    return {
        "status": "healthy",
        "service": "social-pulse",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/status")
async def status(
    session: Optional[DashboardSession] = Depends(get_current_session),
    settings: Settings = Depends(get_settings),
):
    """Whether a usable session (or static configuration) is active"""
    authed = bool(session and session.has_page_credentials)
    return {
        "authenticated": authed,
        "token_mode": settings.token_mode.active,
        "demo_mode": settings.demo.enabled,
        "user": session.public_user() if authed else None,
        "page": session.public_page() if authed else None,
    }


@router.post("/auth/facebook")
async def auth_facebook(
    request: Request,
    body: Optional[FacebookAuthRequest] = None,
    settings: Settings = Depends(get_settings),
    client: GraphClient = Depends(get_graph_client),
    store: SessionStore = Depends(get_session_store),
):
    """
    Exchange a short-lived Facebook user token and set up the dashboard session.

    Request (JSON):
        {"token": "<short-lived user access token>"}

    Response:
        {"success": true, "user": {"id", "name"}, "page": {"id", "name", "ig_user_id"}}
    """
    short_token = body.token if body else None
    try:
        user, page = await run_in_threadpool(
            connect_facebook,
            short_token,
            app_id=settings.facebook.app_id,
            app_secret=settings.facebook.app_secret,
            client=client,
        )
    except AuthSetupError as e:
        logger.info("Facebook login rejected", reason=str(e))
        return JSONResponse(status_code=e.status_code, content={"error": str(e)})
    except GraphAPIError as e:
        logger.warning("Facebook login failed", error=str(e), error_code=e.error_code)
        return JSONResponse(status_code=500, content={"error": "Auth/Setup failed", "details": str(e)})

    # Re-login replaces whatever session this browser had
    store.destroy(get_session_token(request))
    session = store.new_session(user, page)
    token = store.create(session)

    response = JSONResponse(
        {"success": True, "user": session.public_user(), "page": session.public_page()}
    )
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=int(store.expiry.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.post("/logout")
async def logout(request: Request, store: SessionStore = Depends(get_session_store)):
    """Logout and clear session"""
    store.destroy(get_session_token(request))
    response = JSONResponse({"success": True})
    response.delete_cookie(key=SESSION_COOKIE_NAME)
    return response


@router.get("/stream")
async def stream(
    interval: Optional[str] = None,
    session: Optional[DashboardSession] = Depends(get_current_session),
    settings: Settings = Depends(get_settings),
    client: GraphClient = Depends(get_graph_client),
    is_disconnected: Callable[[], Awaitable[bool]] = Depends(get_disconnect_check),
):
    """Server-Sent Events stream of follower counts (``message`` / ``error`` events)"""
    target = metrics_relay.resolve_poll_target(session, settings)
    if target is not None:
        poll = metrics_relay.make_graph_poller(client, target)
    elif settings.demo.enabled:
        poll = metrics_relay.make_demo_poller(settings.demo)
    else:
        return StreamingResponse(
            metrics_relay.error_event_stream(metrics_relay.NOT_AUTHENTICATED_MESSAGE),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    interval_ms = metrics_relay.clamp_interval_ms(interval, settings.relay)
    logger.info(
        "Metrics stream opened",
        page_id=target.page_id if target else "demo",
        interval_ms=interval_ms,
    )
    events = metrics_relay.metrics_event_stream(
        poll,
        interval_seconds=interval_ms / 1000,
        is_disconnected=is_disconnected,
        keepalive_seconds=settings.relay.keepalive_seconds,
    )
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)
