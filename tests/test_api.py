"""HTTP tests for the relay API (status, token handoff, logout, stream)"""

import json

from fastapi.testclient import TestClient

from pulse.auth.session_store import SESSION_COOKIE_NAME
from pulse.utils.config import Settings
from pulse.utils.exceptions import GraphAPIError
from pulse_web.deps import get_disconnect_check
from pulse_web.main import create_app


def create_test_client(settings, fake_graph) -> TestClient:
    app = create_app(settings=settings, graph_client=fake_graph)
    return TestClient(app)


def _login(client):
    return client.post("/api/auth/facebook", json={"token": "short-token"})


def test_health(settings, fake_graph):
    client = create_test_client(settings, fake_graph)
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"


def test_status_without_session(settings, fake_graph):
    client = create_test_client(settings, fake_graph)

    res = client.get("/api/status")

    assert res.status_code == 200
    assert res.json() == {
        "authenticated": False,
        "token_mode": False,
        "demo_mode": False,
        "user": None,
        "page": None,
    }


def test_status_reports_token_mode(fake_graph):
    settings = Settings(token_mode={"page_id": "p", "ig_access_token": "ig-tok"})
    client = create_test_client(settings, fake_graph)

    body = client.get("/api/status").json()

    assert body["authenticated"] is False
    assert body["token_mode"] is True


def test_login_then_status(settings, fake_graph):
    client = create_test_client(settings, fake_graph)

    res = _login(client)

    assert res.status_code == 200, res.text
    body = res.json()
    assert body["success"] is True
    assert body["user"] == {"id": "user-1", "name": "Dana Example"}
    assert body["page"] == {"id": "page-1", "name": "Corner Bakery", "ig_user_id": "ig-1"}
    assert SESSION_COOKIE_NAME in res.cookies
    # Credentials stay on the server
    assert "page-token-1" not in res.text
    assert "long-user-token" not in res.text

    status = client.get("/api/status").json()
    assert status["authenticated"] is True
    assert status["user"]["id"] == "user-1"
    assert status["page"]["id"] == "page-1"


def test_login_without_pages_is_rejected(settings, fake_graph):
    fake_graph.pages = []
    client = create_test_client(settings, fake_graph)

    res = _login(client)

    assert res.status_code == 400
    assert "No Facebook Pages" in res.json()["error"]
    assert client.get("/api/status").json()["authenticated"] is False


def test_login_missing_token(settings, fake_graph):
    client = create_test_client(settings, fake_graph)

    res = client.post("/api/auth/facebook", json={})

    assert res.status_code == 400
    assert res.json() == {"error": "Missing token"}


def test_login_without_app_credentials(fake_graph):
    client = create_test_client(Settings(), fake_graph)

    res = _login(client)

    assert res.status_code == 400
    assert "FB_APP_ID" in res.json()["error"]
    assert fake_graph.calls == []


def test_login_upstream_failure(settings, fake_graph, graph_error):
    fake_graph.fail["exchange"] = graph_error
    client = create_test_client(settings, fake_graph)

    res = _login(client)

    assert res.status_code == 500
    body = res.json()
    assert body["error"] == "Auth/Setup failed"
    assert "code=190" in body["details"]


def test_logout_clears_session(settings, fake_graph):
    client = create_test_client(settings, fake_graph)
    _login(client)
    assert client.get("/api/status").json()["authenticated"] is True

    res = client.post("/api/logout")

    assert res.status_code == 200
    assert res.json() == {"success": True}
    assert client.get("/api/status").json()["authenticated"] is False


def test_logout_without_session(settings, fake_graph):
    client = create_test_client(settings, fake_graph)
    res = client.post("/api/logout")
    assert res.status_code == 200


def test_session_is_per_client(settings, fake_graph):
    app = create_app(settings=settings, graph_client=fake_graph)
    alice = TestClient(app)
    bob = TestClient(app)

    _login(alice)

    assert alice.get("/api/status").json()["authenticated"] is True
    assert bob.get("/api/status").json()["authenticated"] is False


def test_stream_without_session_sends_single_error_event(settings, fake_graph):
    client = create_test_client(settings, fake_graph)

    res = client.get("/api/stream")

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/event-stream")
    assert res.headers["cache-control"] == "no-cache"
    assert res.text == (
        'event: error\ndata: {"error": "Not authenticated and no token mode configured"}\n\n'
    )
    assert fake_graph.calls == []


def test_cors_allows_credentialed_origin(settings, fake_graph):
    client = create_test_client(settings, fake_graph)

    res = client.get("/api/status", headers={"Origin": "http://localhost:5173"})

    assert res.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert res.headers["access-control-allow-credentials"] == "true"


def _parse_frames(text):
    """Split an SSE body into (event, data) pairs, skipping ping comments"""
    frames = []
    for block in text.split("\n\n"):
        if not block.startswith("event: "):
            continue
        event_line, data_line = block.split("\n", 1)
        frames.append((event_line[len("event: "):], json.loads(data_line[len("data: "):])))
    return frames


def create_stream_client(settings, fake_graph) -> TestClient:
    """Client whose streams close right after the first frame"""
    app = create_app(settings=settings, graph_client=fake_graph)

    async def client_gone():
        return True

    app.dependency_overrides[get_disconnect_check] = lambda: client_gone
    return TestClient(app)


def test_stream_with_session_sends_payload_immediately(settings, fake_graph):
    client = create_stream_client(settings, fake_graph)
    _login(client)

    res = client.get("/api/stream", params={"interval": "3600000"})

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/event-stream")
    assert res.headers["x-accel-buffering"] == "no"
    frames = _parse_frames(res.text)
    assert len(frames) == 1
    event, data = frames[0]
    assert event == "message"
    assert data["facebook"] == {"page_id": "page-1", "page_name": "Corner Bakery", "followers": 150, "likes": 120}
    assert data["instagram"]["ig_user_id"] == "ig-1"
    assert data["total_followers"] == 230
    # Session polls with the Page token for both branches
    assert ("page_insights", "page-1", "page-token-1") in fake_graph.calls
    assert ("ig_insights", "ig-1", "page-token-1") in fake_graph.calls


def test_stream_in_token_mode_without_login(fake_graph):
    settings = Settings(token_mode={"page_id": "static-page", "page_access_token": "static-token"})
    client = create_stream_client(settings, fake_graph)

    frames = _parse_frames(client.get("/api/stream").text)

    assert frames[0][0] == "message"
    assert frames[0][1]["facebook"]["page_id"] == "static-page"
    assert frames[0][1]["instagram"] == {"info": "No IG linked"}
    assert fake_graph.calls == [("page_insights", "static-page", "static-token")]


def test_stream_branch_failure_still_delivers_other_branch(settings, fake_graph):
    fake_graph.fail["ig_insights"] = GraphAPIError("IG quota exceeded")
    client = create_stream_client(settings, fake_graph)
    _login(client)

    event, data = _parse_frames(client.get("/api/stream").text)[0]

    assert event == "message"
    assert data["facebook"]["followers"] == 150
    assert data["instagram"] == {"error": "IG quota exceeded"}


def test_stream_in_demo_mode(fake_graph):
    client = create_stream_client(Settings(demo={"enabled": True}), fake_graph)

    event, data = _parse_frames(client.get("/api/stream").text)[0]

    assert event == "message"
    assert data["facebook"]["followers"] == 15420
    assert data["instagram"]["posts"] == 142
    assert fake_graph.calls == []
