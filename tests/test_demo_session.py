"""
Tests for demo session tracking.

Tests cover:
- Session id creation and reuse
- Quota check against the store (remaining analyses, can_proceed)
- Fail-open behavior on store errors
- Usage statistics (time remaining in the window)
"""

import re
from datetime import datetime, timedelta, timezone

from insights.demo_session import (
    SESSION_KEY,
    DemoSessionTracker,
    clear_session,
    generate_session_id,
    get_or_create_session_id,
    is_session_id,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeStore:
    """In-memory stand-in for insights.db (demo quota functions only)."""

    def __init__(self, times=None):
        self.times = {"s1": list(times or [])}
        self.calls = []

    def check_demo_session_limits(self, demo_session_id, max_analyses, window_hours, now=None):
        self.calls.append(("check", demo_session_id, max_analyses, window_hours, now))
        return self.count_demo_analyses(demo_session_id, since=now - timedelta(hours=window_hours)) < max_analyses

    def count_demo_analyses(self, demo_session_id, since=None):
        return sum(1 for t in self.times.get(demo_session_id, []) if since is None or t >= since)

    def list_demo_analysis_times(self, demo_session_id):
        return sorted(self.times.get(demo_session_id, []))


class BrokenStore:
    """Store whose every call fails."""

    def check_demo_session_limits(self, *args, **kwargs):
        raise RuntimeError("database is locked")

    def count_demo_analyses(self, *args, **kwargs):
        raise RuntimeError("database is locked")

    def list_demo_analysis_times(self, *args, **kwargs):
        raise RuntimeError("database is locked")


def _tracker(store, max_analyses=10, hours=24):
    return DemoSessionTracker(store, max_analyses, hours, clock=lambda: NOW)


# ============================================================================
# SESSION IDS
# ============================================================================


def test_generate_session_id_format():
    """Test that ids look like demo_<ms>_<9 chars>."""
    assert re.fullmatch(r"demo_\d+_[0-9a-f]{9}", generate_session_id())


def test_session_ids_are_unique():
    """Test that two ids never collide."""
    assert generate_session_id() != generate_session_id()


def test_get_or_create_reuses_stored_id():
    """Test that the id is created once then reused."""
    storage = {}

    first = get_or_create_session_id(storage)
    second = get_or_create_session_id(storage)

    assert first == second
    assert storage[SESSION_KEY] == first


def test_clear_session_forces_new_id():
    """Test that clearing the session mints a new id next time."""
    storage = {}
    first = get_or_create_session_id(storage)

    clear_session(storage)

    assert SESSION_KEY not in storage
    assert get_or_create_session_id(storage) != first


def test_session_id_survives_page_reload():
    """Test that a reload (fresh session state, cookie sent back) keeps the same id."""
    browser_cookies = {}

    def set_cookie(session_id):
        browser_cookies[SESSION_KEY] = session_id

    first_load = get_or_create_session_id({}, cookies=dict(browser_cookies), persist=set_cookie)
    second_load = get_or_create_session_id({}, cookies=dict(browser_cookies), persist=set_cookie)

    assert first_load == second_load
    assert browser_cookies == {SESSION_KEY: first_load}


def test_cookie_id_is_copied_to_storage_without_persisting():
    """Test that an id read from the cookie is not written again."""
    storage = {}
    cookie_id = generate_session_id()
    persisted = []

    result = get_or_create_session_id(storage, cookies={SESSION_KEY: cookie_id}, persist=persisted.append)

    assert result == cookie_id
    assert storage[SESSION_KEY] == cookie_id
    assert persisted == []


def test_persist_called_once_per_new_id():
    """Test that reruns in the same tab do not rewrite the cookie."""
    storage = {}
    persisted = []

    for _ in range(3):
        get_or_create_session_id(storage, cookies={}, persist=persisted.append)

    assert persisted == [storage[SESSION_KEY]]


def test_malformed_cookie_is_ignored():
    """Test that a tampered cookie value is replaced by a fresh id."""
    result = get_or_create_session_id({}, cookies={SESSION_KEY: "x'; DROP TABLE"})

    assert is_session_id(result)
    assert result != "x'; DROP TABLE"


def test_persist_failure_still_returns_id(caplog):
    """Test that a cookie write error does not block the demo."""

    def broken_persist(session_id):
        raise RuntimeError("component unavailable")

    storage = {}
    result = get_or_create_session_id(storage, cookies={}, persist=broken_persist)

    assert storage[SESSION_KEY] == result
    assert "Could not persist demo session id" in caplog.text


# ============================================================================
# QUOTA CHECK
# ============================================================================


def test_fresh_session_has_full_quota():
    """Test that a session with no analyses may proceed with 10 remaining."""
    limits = _tracker(FakeStore()).check_session_limits("s1")

    assert limits.can_proceed is True
    assert limits.remaining_analyses == 10


def test_remaining_counts_down():
    """Test that remaining = max - analyses in the window."""
    store = FakeStore([NOW - timedelta(hours=h) for h in (1, 2, 3)])

    limits = _tracker(store).check_session_limits("s1")

    assert limits.can_proceed is True
    assert limits.remaining_analyses == 7


def test_quota_exhausted_blocks():
    """Test that the 11th analysis within 24h is refused."""
    store = FakeStore([NOW - timedelta(minutes=m) for m in range(10)])

    limits = _tracker(store).check_session_limits("s1")

    assert limits.can_proceed is False
    assert limits.remaining_analyses == 0


def test_old_analyses_age_out():
    """Test that analyses older than the window no longer count."""
    store = FakeStore([NOW - timedelta(hours=25)] * 10 + [NOW - timedelta(hours=1)])

    limits = _tracker(store).check_session_limits("s1")

    assert limits.can_proceed is True
    assert limits.remaining_analyses == 9


def test_check_passes_configuration_to_store():
    """Test that the tracker forwards max, window and the reference instant."""
    store = FakeStore()

    _tracker(store, max_analyses=5, hours=12).check_session_limits("s1")

    assert store.calls == [("check", "s1", 5, 12, NOW)]


def test_check_fails_open_on_store_error(caplog):
    """Test that a store failure allows the request with the full quota."""
    limits = _tracker(BrokenStore()).check_session_limits("s1")

    assert limits.can_proceed is True
    assert limits.remaining_analyses == 10
    assert "allowing request" in caplog.text


# ============================================================================
# STATS
# ============================================================================


def test_stats_without_analyses():
    """Test that an unused session reports the full window."""
    stats = _tracker(FakeStore()).get_demo_session_stats("s1")

    assert stats.total_analyses == 0
    assert stats.time_remaining == timedelta(hours=24)
    assert stats.created_at is None


def test_stats_counts_from_first_analysis():
    """Test that time remaining runs from the earliest analysis."""
    store = FakeStore([NOW - timedelta(hours=2), NOW - timedelta(hours=5)])

    stats = _tracker(store).get_demo_session_stats("s1")

    assert stats.total_analyses == 2
    assert stats.created_at == NOW - timedelta(hours=5)
    assert stats.time_remaining == timedelta(hours=19)


def test_stats_time_remaining_never_negative():
    """Test that an old first analysis gives zero, not a negative delta."""
    store = FakeStore([NOW - timedelta(hours=30)])

    assert _tracker(store).get_demo_session_stats("s1").time_remaining == timedelta(0)


def test_stats_fail_open_on_store_error():
    """Test that a store failure yields empty stats."""
    stats = _tracker(BrokenStore()).get_demo_session_stats("s1")

    assert stats.total_analyses == 0
    assert stats.created_at is None


def test_get_session_view():
    """Test that get_session reflects the stored analyses."""
    store = FakeStore([NOW - timedelta(hours=1)])

    session = _tracker(store).get_session("s1")

    assert session.id == "s1"
    assert session.analysis_count == 1
    assert session.created_at == NOW - timedelta(hours=1)
