"""
Pytest configuration and fixtures for Social Pulse tests.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Make the project root importable without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from pulse.utils.config import Settings
from pulse.utils.exceptions import GraphAPIError


class FakeGraphClient:
    """Stands in for GraphClient; records calls, returns canned Graph objects."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.pages: List[Dict[str, Any]] = [
            {
                "id": "page-1",
                "name": "Corner Bakery",
                "access_token": "page-token-1",
                "instagram_business_account": {"id": "ig-1"},
            }
        ]
        self.linked_instagram: Optional[str] = None
        self.page_insights: Dict[str, Any] = {"name": "Corner Bakery", "fan_count": 120, "followers_count": 150}
        self.ig_insights: Dict[str, Any] = {"username": "cornerbakery", "followers_count": 80, "media_count": 12}
        self.fail: Dict[str, Exception] = {}
        self.closed = False

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail:
            raise self.fail[name]

    def exchange_for_long_lived_token(self, app_id, app_secret, short_lived_token):
        self.calls.append(("exchange", short_lived_token))
        self._maybe_fail("exchange")
        return {"access_token": "long-user-token", "token_type": "bearer", "expires_in": 5183944}

    def get_me(self, access_token):
        self.calls.append(("me", access_token))
        self._maybe_fail("me")
        return {"id": "user-1", "name": "Dana Example"}

    def get_pages(self, access_token):
        self.calls.append(("pages", access_token))
        self._maybe_fail("pages")
        return list(self.pages)

    def get_instagram_for_page(self, page_id, page_access_token):
        self.calls.append(("ig_for_page", page_id))
        self._maybe_fail("ig_for_page")
        return self.linked_instagram

    def get_page_insights(self, page_id, page_access_token):
        self.calls.append(("page_insights", page_id, page_access_token))
        self._maybe_fail("page_insights")
        return dict(self.page_insights)

    def get_instagram_insights(self, ig_user_id, access_token):
        self.calls.append(("ig_insights", ig_user_id, access_token))
        if not ig_user_id:
            return None
        self._maybe_fail("ig_insights")
        return dict(self.ig_insights)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_graph():
    return FakeGraphClient()


@pytest.fixture
def settings():
    """Settings with app credentials, no token mode, no demo."""
    return Settings(facebook={"app_id": "app-123", "app_secret": "shh"})


@pytest.fixture
def graph_error():
    return GraphAPIError("Invalid OAuth access token. (code=190)", error_code=190)
