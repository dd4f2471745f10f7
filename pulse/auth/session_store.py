"""
In-memory dashboard session store.

Sessions live only in process memory: a restart logs everyone out.
Tokens are opaque and travel in the ``pulse_session`` cookie.
"""

import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from ..models.session import DashboardSession, FacebookUser, PageSelection
from ..utils.logger import get_logger

logger = get_logger(__name__)

SESSION_COOKIE_NAME = "pulse_session"


class SessionStore:
    """Thread-safe token -> DashboardSession map with expiry"""

    def __init__(self, expiry_hours: int = 24):
        self.expiry = timedelta(hours=expiry_hours)
        self._sessions: Dict[str, DashboardSession] = {}
        self._lock = threading.Lock()

    def new_session(self, user: FacebookUser, page: PageSelection) -> DashboardSession:
        now = datetime.now(timezone.utc)
        return DashboardSession(user=user, page=page, created_at=now, expires_at=now + self.expiry)

    def create(self, session: DashboardSession) -> str:
        """Store a session and return its token; sweeps expired sessions first"""
        dropped = self.cleanup_expired()
        if dropped:
            logger.info("Expired sessions removed", count=dropped)
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = session
        logger.info("Session created", user_id=session.user.id, page_id=session.page.page_id)
        return token

    def get(self, token: Optional[str]) -> Optional[DashboardSession]:
        if not token:
            return None
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if datetime.now(timezone.utc) > session.expires_at:
                del self._sessions[token]
                logger.info("Session expired", user_id=session.user.id)
                return None
            return session

    def destroy(self, token: Optional[str]) -> None:
        if not token:
            return
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is not None:
            logger.info("Session destroyed", user_id=session.user.id)

    def cleanup_expired(self) -> int:
        """Remove expired sessions; returns how many were dropped"""
        now = datetime.now(timezone.utc)
        with self._lock:
            expired = [t for t, s in self._sessions.items() if now > s.expires_at]
            for token in expired:
                del self._sessions[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
