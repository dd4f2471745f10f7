"""
Token handoff: short-lived user token -> dashboard session.

Flow:
- exchange short token -> long-lived user token
- read /me
- list the user's Pages and pick one (first with a linked IG account, else first)
- resolve the Page's Instagram business account (from the list, else one lookup)
"""

from typing import Any, Dict, List, Optional, Tuple

from ..api.graph_client import GraphClient
from ..models.session import FacebookUser, PageSelection
from ..utils.exceptions import AuthSetupError
from ..utils.logger import get_logger

logger = get_logger(__name__)

NO_PAGES_MESSAGE = (
    "No Facebook Pages available for this user. Ensure pages_show_list permission is granted."
)
NO_PAGE_TOKEN_MESSAGE = (
    "Missing Page access token. Ensure pages_read_engagement/pages_show_list are granted."
)


def _linked_instagram_id(page: Dict[str, Any]) -> Optional[str]:
    ig = page.get("instagram_business_account")
    if isinstance(ig, dict) and ig.get("id"):
        return ig["id"]
    return None


def select_page(pages: List[Dict[str, Any]]) -> Dict[str, Any]:
    """First Page with a linked Instagram business account, else the first Page."""
    if not pages:
        raise AuthSetupError(NO_PAGES_MESSAGE)
    return next((p for p in pages if p.get("instagram_business_account")), pages[0])


def connect_facebook(
    short_token: Optional[str],
    *,
    app_id: Optional[str],
    app_secret: Optional[str],
    client: GraphClient,
) -> Tuple[FacebookUser, PageSelection]:
    """
    Resolve a short-lived user token into (FacebookUser, PageSelection).

    Raises:
        AuthSetupError: missing app credentials, missing token, no Pages, or no Page token
        GraphAPIError: an upstream call failed
    """
    if not app_id or not app_secret:
        raise AuthSetupError("Server is missing FB_APP_ID/FB_APP_SECRET")
    if not short_token:
        raise AuthSetupError("Missing token")

    long_lived = client.exchange_for_long_lived_token(app_id, app_secret, short_token)
    long_user_token = long_lived["access_token"]

    me = client.get_me(long_user_token)

    pages = client.get_pages(long_user_token)
    selected = select_page(pages)

    page_token = selected.get("access_token")
    if not page_token:
        raise AuthSetupError(NO_PAGE_TOKEN_MESSAGE)

    page_id = selected.get("id")
    ig_user_id = _linked_instagram_id(selected)
    if not ig_user_id:
        ig_user_id = client.get_instagram_for_page(page_id, page_token)

    logger.info(
        "Facebook login resolved",
        user_id=me.get("id"),
        page_id=page_id,
        page_count=len(pages),
        has_instagram=bool(ig_user_id),
    )

    user = FacebookUser(id=str(me.get("id")), name=me.get("name"), long_lived_token=long_user_token)
    page = PageSelection(
        page_id=str(page_id),
        page_name=selected.get("name"),
        page_access_token=page_token,
        ig_user_id=ig_user_id,
    )
    return user, page
