"""
Metrics relay: poll Page and Instagram counts and push them as Server-Sent Events.

Each connected stream owns one polling loop. A poll issues up to two Graph reads
concurrently (Page insights, Instagram insights), merges them into one payload and
hands it to the client. A failing branch is replaced by ``{"error": ...}`` so the
other branch is still delivered. Nothing is retried; the next tick simply polls again.
"""

import asyncio
import json
import re
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from fastapi.concurrency import run_in_threadpool

from ..api.graph_client import GraphClient
from ..models.session import DashboardSession, PollTarget
from ..utils.config import DemoSettings, RelaySettings, Settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

NOT_AUTHENTICATED_MESSAGE = "Not authenticated and no token mode configured"
NO_IG_LINKED = "No IG linked"

# Upper bound on how long the loop sleeps before re-checking for a disconnect
DISCONNECT_CHECK_SECONDS = 1.0

Poller = Callable[[], Awaitable[Dict[str, Any]]]

# Leading base-10 integer; the rest of the value is ignored ("4500.5" -> 4500, "5000ms" -> 5000)
_LEADING_INT = re.compile(r"\s*([+-]?\d+)", re.ASCII)


def resolve_poll_target(session: Optional[DashboardSession], settings: Settings) -> Optional[PollTarget]:
    """Session credentials first, then static token mode; None when neither resolves."""
    if session is not None and session.has_page_credentials:
        page = session.page
        return PollTarget(
            page_id=page.page_id,
            page_access_token=page.page_access_token,
            ig_user_id=page.ig_user_id,
            # Page tokens work for IG Graph calls when instagram_basic is granted
            ig_access_token=page.page_access_token,
        )
    token_mode = settings.token_mode
    if token_mode.active:
        return PollTarget(
            page_id=token_mode.page_id,
            page_access_token=token_mode.page_access_token,
            ig_user_id=token_mode.ig_user_id,
            ig_access_token=token_mode.ig_access_token or token_mode.page_access_token,
        )
    return None


def clamp_interval_ms(raw: Optional[str], relay: RelaySettings) -> int:
    """Parse the ``interval`` query value (ms); missing/zero/garbage -> default, then clamp."""
    match = _LEADING_INT.match(raw) if raw is not None else None
    value = int(match.group(1)) if match else 0
    if not value:
        value = relay.default_interval_ms
    return max(relay.min_interval_ms, min(relay.max_interval_ms, value))


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _error_message(exc: Exception, fallback: str) -> str:
    return str(exc) or fallback


def build_payload(
    target: PollTarget,
    fb: Optional[Dict[str, Any]],
    ig: Optional[Dict[str, Any]],
    ts: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Merge the two branch results into one payload.

    ``fb`` / ``ig`` are raw Graph objects, ``{"error": msg}`` on failure, and for
    ``ig`` None when no Instagram account is linked.
    """
    if fb is not None and not fb.get("error"):
        facebook: Dict[str, Any] = {
            "page_id": target.page_id,
            "page_name": fb.get("name"),
            "followers": fb.get("followers_count"),
            "likes": fb.get("fan_count"),
        }
    else:
        facebook = {"error": (fb or {}).get("error") or "FB error"}

    if ig is None:
        instagram: Dict[str, Any] = {"info": NO_IG_LINKED}
    elif not ig.get("error"):
        instagram = {
            "ig_user_id": target.ig_user_id,
            "username": ig.get("username"),
            "followers": ig.get("followers_count"),
            "posts": ig.get("media_count"),
        }
    else:
        instagram = {"error": ig.get("error") or "IG error"}

    return {
        "ts": ts or _utc_timestamp(),
        "facebook": facebook,
        "instagram": instagram,
        "total_followers": (facebook.get("followers") or 0) + (instagram.get("followers") or 0),
    }


def _fetch_facebook(client: GraphClient, target: PollTarget) -> Dict[str, Any]:
    try:
        return client.get_page_insights(target.page_id, target.page_access_token)
    except Exception as e:
        logger.warning("Page insights poll failed", page_id=target.page_id, error=str(e))
        return {"error": _error_message(e, "FB error")}


def _fetch_instagram(client: GraphClient, target: PollTarget) -> Optional[Dict[str, Any]]:
    if not target.ig_user_id:
        return None
    try:
        return client.get_instagram_insights(target.ig_user_id, target.ig_access_token)
    except Exception as e:
        logger.warning("Instagram insights poll failed", ig_user_id=target.ig_user_id, error=str(e))
        return {"error": _error_message(e, "IG error")}


async def poll_metrics(client: GraphClient, target: PollTarget) -> Dict[str, Any]:
    """One tick: both Graph reads concurrently, merged into one payload."""
    fb, ig = await asyncio.gather(
        run_in_threadpool(_fetch_facebook, client, target),
        run_in_threadpool(_fetch_instagram, client, target),
    )
    return build_payload(target, fb, ig)


def make_graph_poller(client: GraphClient, target: PollTarget) -> Poller:
    async def poll() -> Dict[str, Any]:
        return await poll_metrics(client, target)

    return poll


def make_demo_poller(demo: DemoSettings) -> Poller:
    """Fixed figures from the ``demo`` settings; no upstream calls."""
    target = PollTarget(page_id="demo", ig_user_id="demo")

    async def poll() -> Dict[str, Any]:
        fb = {"name": "Demo Page", "followers_count": demo.facebook.followers, "fan_count": demo.facebook.likes}
        ig = {"username": "demo", "followers_count": demo.instagram.followers, "media_count": demo.instagram.posts}
        return build_payload(target, fb, ig)

    return poll


def format_sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def _poll_frame(poll: Poller) -> str:
    try:
        payload = await poll()
    except Exception as e:
        logger.exception("Metrics poll failed", error=str(e))
        return format_sse("error", {"error": _error_message(e, "Unknown polling error")})
    return format_sse("message", payload)


async def metrics_event_stream(
    poll: Poller,
    interval_seconds: float,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_seconds: float = 30,
) -> AsyncIterator[str]:
    """
    Yield SSE frames: one ``message`` right away, then one per interval, plus
    ``: ping`` comments every ``keepalive_seconds``. Ends when the client goes away.
    """
    loop = asyncio.get_running_loop()
    yield await _poll_frame(poll)

    next_poll = loop.time() + interval_seconds
    next_ping = loop.time() + keepalive_seconds
    while True:
        if await is_disconnected():
            logger.debug("Stream client disconnected")
            return
        now = loop.time()
        wake_at = min(next_poll, next_ping)
        if wake_at > now:
            await asyncio.sleep(min(wake_at - now, DISCONNECT_CHECK_SECONDS))
            continue
        if now >= next_poll:
            yield await _poll_frame(poll)
            next_poll += interval_seconds
            if next_poll <= loop.time():
                next_poll = loop.time() + interval_seconds
        if now >= next_ping:
            yield ": ping\n\n"
            next_ping = now + keepalive_seconds


async def error_event_stream(message: str) -> AsyncIterator[str]:
    yield format_sse("error", {"error": message})
