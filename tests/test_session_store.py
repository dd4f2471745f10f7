"""Tests for the in-memory session store"""

from datetime import datetime, timedelta, timezone

from pulse.auth.session_store import SessionStore
from pulse.models.session import FacebookUser, PageSelection


def _session(store):
    user = FacebookUser(id="u1", name="Dana", long_lived_token="lt")
    page = PageSelection(page_id="p1", page_name="Bakery", page_access_token="pt", ig_user_id="ig1")
    return store.new_session(user, page)


def test_create_and_get():
    store = SessionStore()
    session = _session(store)
    token = store.create(session)

    assert store.get(token) == session
    assert store.get(token).has_page_credentials
    assert len(store) == 1


def test_unknown_or_empty_token():
    store = SessionStore()
    assert store.get("nope") is None
    assert store.get(None) is None


def test_destroy():
    store = SessionStore()
    token = store.create(_session(store))

    store.destroy(token)
    store.destroy(token)

    assert store.get(token) is None
    assert len(store) == 0


def test_expired_session_is_dropped():
    store = SessionStore(expiry_hours=1)
    session = _session(store)
    session.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    token = store.create(session)

    assert store.get(token) is None
    assert len(store) == 0


def test_cleanup_expired():
    store = SessionStore()
    live = _session(store)
    stale = _session(store)
    stale.expires_at = datetime.now(timezone.utc) - timedelta(minutes=5)
    store.create(live)
    store.create(stale)

    assert store.cleanup_expired() == 1
    assert len(store) == 1


def test_create_sweeps_sessions_that_are_never_looked_up_again():
    store = SessionStore()
    stale = _session(store)
    stale.expires_at = datetime.now(timezone.utc) - timedelta(minutes=5)
    stale_token = store.create(stale)
    assert len(store) == 1

    live_token = store.create(_session(store))

    assert len(store) == 1
    assert store.get(live_token) is not None
    assert store.get(stale_token) is None


def test_tokens_are_unique():
    store = SessionStore()
    assert store.create(_session(store)) != store.create(_session(store))
