"""Meta Graph API client (read-only calls used by the relay)"""

from typing import Any, Dict, List, Optional

import requests

from ..utils.exceptions import GraphAPIError
from ..utils.logger import get_logger

logger = get_logger(__name__)

PAGE_LIST_FIELDS = "id,name,access_token,instagram_business_account"
PAGE_INSIGHT_FIELDS = "name,fan_count,followers_count"
IG_INSIGHT_FIELDS = "username,followers_count,media_count"


# Graph error code -> what the dashboard operator can do about it
GRAPH_ERROR_HINTS = {
    190: "Log in again; the access token expired or was revoked.",
    10: "Grant pages_show_list, pages_read_engagement and instagram_basic.",
    200: "Grant pages_show_list, pages_read_engagement and instagram_basic.",
    4: "Rate limited; open the stream with a longer interval.",
    17: "Rate limited; open the stream with a longer interval.",
    32: "Rate limited; open the stream with a longer interval.",
}


def format_graph_error(err: Any) -> str:
    """One-line message for a Graph ``error`` object: ``msg (code=.., subcode=..) Hint: ..``"""
    if not isinstance(err, dict):
        return str(err)
    ids = ", ".join(
        f"{label}={err[key]}"
        for label, key in (("code", "code"), ("subcode", "error_subcode"))
        if err.get(key) is not None
    )
    text = str(err.get("message") or "Meta Graph API error")
    if ids:
        text += f" ({ids})"
    hint = GRAPH_ERROR_HINTS.get(err.get("code"))
    if hint:
        text += f" Hint: {hint}"
    return text


class GraphClient:
    """Thin wrapper over requests.Session for the Graph endpoints the relay reads"""

    def __init__(
        self,
        api_base_url: str = "https://graph.facebook.com",
        api_version: str = "v18.0",
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = f"{api_base_url.rstrip('/')}/{api_version}"
        self.timeout = timeout
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        GET a Graph endpoint and return the decoded body.

        Raises:
            GraphAPIError: on transport failure, non-JSON body, an ``error``
                object in the body (any status) or an HTTP error status
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Graph API request failed", endpoint=endpoint, error=str(e))
            raise GraphAPIError(f"Graph API request failed: {e}")

        logger.debug("Graph API response", endpoint=endpoint, status_code=response.status_code)

        try:
            result = response.json()
        except ValueError:
            raise GraphAPIError(
                f"Graph API returned a non-JSON response (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        if isinstance(result, dict) and "error" in result:
            error = result["error"]
            code = error.get("code") if isinstance(error, dict) else None
            subcode = error.get("error_subcode") if isinstance(error, dict) else None
            logger.warning(
                "Graph API error",
                endpoint=endpoint,
                status_code=response.status_code,
                error_code=code,
                error_subcode=subcode,
            )
            raise GraphAPIError(
                format_graph_error(error),
                error_code=code,
                error_subcode=subcode,
                status_code=response.status_code,
            )

        if response.status_code >= 400:
            raise GraphAPIError(
                f"Graph API HTTP {response.status_code}",
                status_code=response.status_code,
            )

        if not isinstance(result, dict):
            raise GraphAPIError("Graph API returned an unexpected response shape")
        return result

    def exchange_for_long_lived_token(
        self, app_id: str, app_secret: str, short_lived_token: str
    ) -> Dict[str, Any]:
        """Swap a short-lived user token for a long-lived one ({access_token, token_type, expires_in})."""
        data = self._get(
            "/oauth/access_token",
            {
                "grant_type": "fb_exchange_token",
                "client_id": app_id,
                "client_secret": app_secret,
                "fb_exchange_token": short_lived_token,
            },
        )
        if not data.get("access_token"):
            raise GraphAPIError("Meta did not return a long-lived access_token.")
        return data

    def get_me(self, access_token: str) -> Dict[str, Any]:
        return self._get("/me", {"fields": "id,name", "access_token": access_token})

    def get_pages(self, access_token: str) -> List[Dict[str, Any]]:
        data = self._get("/me/accounts", {"fields": PAGE_LIST_FIELDS, "access_token": access_token})
        return data.get("data") or []

    def get_page_insights(self, page_id: str, page_access_token: str) -> Dict[str, Any]:
        return self._get(f"/{page_id}", {"fields": PAGE_INSIGHT_FIELDS, "access_token": page_access_token})

    def get_instagram_for_page(self, page_id: str, page_access_token: str) -> Optional[str]:
        """Return the Instagram business account linked to a Page, if any."""
        data = self._get(
            f"/{page_id}",
            {"fields": "instagram_business_account", "access_token": page_access_token},
        )
        ig = data.get("instagram_business_account")
        if isinstance(ig, dict) and ig.get("id"):
            return ig["id"]
        return None

    def get_instagram_insights(self, ig_user_id: Optional[str], access_token: str) -> Optional[Dict[str, Any]]:
        if not ig_user_id:
            return None
        return self._get(f"/{ig_user_id}", {"fields": IG_INSIGHT_FIELDS, "access_token": access_token})
