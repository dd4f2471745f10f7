"""Dashboard session data models"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class FacebookUser(BaseModel):
    """Facebook user who completed the token handoff"""
    id: str
    name: Optional[str] = None
    long_lived_token: str


class PageSelection(BaseModel):
    """Page chosen for the dashboard, with its delegated page credential"""
    page_id: str
    page_name: Optional[str] = None
    page_access_token: str
    ig_user_id: Optional[str] = None  # linked Instagram business account


class DashboardSession(BaseModel):
    user: FacebookUser
    page: PageSelection
    created_at: datetime
    expires_at: datetime

    @property
    def has_page_credentials(self) -> bool:
        return bool(self.page.page_id and self.page.page_access_token)

    def public_user(self) -> Dict[str, Any]:
        return {"id": self.user.id, "name": self.user.name}

    def public_page(self) -> Dict[str, Any]:
        return {"id": self.page.page_id, "name": self.page.page_name, "ig_user_id": self.page.ig_user_id}


class PollTarget(BaseModel):
    """What one metrics stream polls, and with which credentials"""
    page_id: str
    page_access_token: Optional[str] = None
    ig_user_id: Optional[str] = None
    ig_access_token: Optional[str] = None
