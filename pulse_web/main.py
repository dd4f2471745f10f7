"""FastAPI main application for the Social Pulse relay"""

import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from pulse import __version__
from pulse.api.graph_client import GraphClient
from pulse.auth.session_store import SessionStore
from pulse.utils.config import Settings, load_settings, validate_settings
from pulse.utils.logger import get_logger

from .api import router as api_router

logger = get_logger(__name__)


class AccessLogMiddlewareASGI:
    """Raw ASGI access log; a streaming response is logged when its headers go out."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return
        started = time.perf_counter()

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                logger.info(
                    "HTTP request",
                    method=scope.get("method"),
                    path=scope.get("path"),
                    status_code=message.get("status"),
                    duration_ms=round((time.perf_counter() - started) * 1000, 1),
                )
            await send(message)

        await self.app(scope, receive, send_wrapper)


def create_app(
    settings: Optional[Settings] = None,
    graph_client: Optional[GraphClient] = None,
) -> FastAPI:
    """Build the relay app; tests inject settings and a fake Graph client."""
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for warning in validate_settings(settings):
            logger.warning("Configuration warning", warning=warning)
        logger.info(
            "Social Pulse started",
            environment=settings.app.environment,
            token_mode=settings.token_mode.active,
            demo_mode=settings.demo.enabled,
        )
        yield
        app.state.graph_client.close()
        logger.info("Social Pulse stopped")

    app = FastAPI(
        title="Social Pulse",
        description="Live follower counts relayed from the Meta Graph API",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.graph_client = graph_client or GraphClient(
        api_base_url=settings.graph.api_base_url,
        api_version=settings.graph.api_version,
        timeout=settings.graph.timeout_seconds,
    )
    app.state.session_store = SessionStore(expiry_hours=settings.server.session_expiry_hours)

    # Credentialed CORS cannot use "*"; reflect the request origin instead
    origins = settings.server.cors_origin_list()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins if origins != ["*"] else [],
        allow_origin_regex=".*" if origins == ["*"] else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AccessLogMiddlewareASGI)

    app.include_router(api_router)

    # Dashboard frontend, if one is deployed next to the relay (mounted last so /api wins)
    if settings.server.static_dir:
        static_path = Path(settings.server.static_dir)
        if static_path.is_dir():
            app.mount("/", StaticFiles(directory=static_path, html=True), name="static")
        else:
            logger.warning("Static directory not found", path=str(static_path))

    return app

