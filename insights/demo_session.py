"""
Demo session tracking for anonymous visitors.

Each browser gets an opaque demo session id, minted once and kept in a
browser cookie so that reloading the page does not reset the quota. Every
analysis it runs is recorded as an analysis_sessions row tagged with that id. The quota is
counted over a sliding look-back window from "now" (not from the first
analysis), so old usage ages out naturally and nothing is ever deleted here.

Design decisions:
- Store is injected (the db module in the app, a fake in tests)
- Fail OPEN on store errors: the demo gate is non-critical, availability wins
  over strictness. Errors are logged.
- remaining = max(0, max_analyses - count_in_window)

Defaults: 10 analyses per 24 hours (settings.demo_max_analyses /
settings.demo_session_hours).
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

logger = logging.getLogger(__name__)

SESSION_KEY = "demo_session_id"
MAX_ANALYSES_PER_SESSION = 10
SESSION_DURATION_HOURS = 24

_SESSION_ID_RE = re.compile(r"demo_\d+_[0-9a-f]{9}")


class DemoSessionStore(Protocol):
    """Subset of insights.db used by the tracker."""

    def check_demo_session_limits(
        self, demo_session_id: str, max_analyses: int, window_hours: int, now: datetime | None = None
    ) -> bool: ...

    def count_demo_analyses(self, demo_session_id: str, since: datetime | None = None) -> int: ...

    def list_demo_analysis_times(self, demo_session_id: str) -> list[datetime]: ...


@dataclass(frozen=True)
class SessionLimits:
    """Result of a quota check."""

    can_proceed: bool
    remaining_analyses: int


@dataclass(frozen=True)
class SessionStats:
    """Usage summary shown in the demo sidebar."""

    total_analyses: int
    time_remaining: timedelta
    created_at: datetime | None


@dataclass(frozen=True)
class DemoSession:
    """An anonymous demo session as seen by the quota logic."""

    id: str
    created_at: datetime | None
    analysis_count: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_id() -> str:
    """Mint a new demo session id: demo_<epoch ms>_<9 random chars>."""
    return f"demo_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def is_session_id(value: Any) -> bool:
    """True for values shaped like generate_session_id() output."""
    return isinstance(value, str) and bool(_SESSION_ID_RE.fullmatch(value))


def get_or_create_session_id(
    storage: MutableMapping[str, Any],
    cookies: Mapping[str, str] | None = None,
    persist: Callable[[str], None] | None = None,
) -> str:
    """
    Return the browser's demo session id, minting one only if none exists.

    Lookup order: storage (current browser tab), then the browser cookie
    (previous page loads), then a fresh id. A fresh id is handed to persist
    so it survives reloads; a malformed cookie value is ignored.

    Args:
        storage: Streamlit session state or similar mutable mapping
        cookies: Cookies sent by the browser (e.g. st.context.cookies)
        persist: Called with a newly minted id to store it browser-side

    Returns:
        The demo session id (never fails)
    """
    session_id = storage.get(SESSION_KEY)
    if session_id:
        return session_id

    cookie_value = (cookies or {}).get(SESSION_KEY)
    if is_session_id(cookie_value):
        storage[SESSION_KEY] = cookie_value
        return cookie_value

    session_id = generate_session_id()
    storage[SESSION_KEY] = session_id
    if persist is not None:
        try:
            persist(session_id)
        except Exception:
            logger.exception(
                "Could not persist demo session id",
                extra={"error_code": "SESSION_PERSIST_ERROR"},
            )
    return session_id


def clear_session(storage: MutableMapping[str, Any]) -> None:
    """Forget the demo session id (next request gets a fresh one)."""
    storage.pop(SESSION_KEY, None)


class DemoSessionTracker:
    """
    Quota bookkeeping for demo sessions.

    Args:
        store: Object exposing the DemoSessionStore functions
        max_analyses: Analyses allowed per window
        session_duration_hours: Look-back window
        clock: Returns the current aware UTC datetime (injectable for tests)
    """

    def __init__(
        self,
        store: DemoSessionStore,
        max_analyses: int = MAX_ANALYSES_PER_SESSION,
        session_duration_hours: int = SESSION_DURATION_HOURS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.max_analyses = max_analyses
        self.session_duration_hours = session_duration_hours
        self._clock = clock

    @property
    def window(self) -> timedelta:
        return timedelta(hours=self.session_duration_hours)

    def check_session_limits(self, session_id: str) -> SessionLimits:
        """
        Check whether the session may run another analysis.

        can_proceed comes from the store's authoritative check;
        remaining_analyses from the count within the window.
        Any store error fails open with the full quota.
        """
        now = self._clock()
        try:
            can_proceed = self.store.check_demo_session_limits(
                session_id, self.max_analyses, self.session_duration_hours, now=now
            )
            count = self.store.count_demo_analyses(session_id, since=now - self.window)
        except Exception:
            logger.exception(
                "Demo session limit check failed, allowing request",
                extra={"error_code": "SESSION_LIMIT_CHECK_ERROR"},
            )
            return SessionLimits(can_proceed=True, remaining_analyses=self.max_analyses)

        remaining = max(0, self.max_analyses - count)
        return SessionLimits(can_proceed=bool(can_proceed), remaining_analyses=remaining)

    def get_demo_session_stats(self, session_id: str) -> SessionStats:
        """
        Usage summary for the session.

        time_remaining counts down from the earliest recorded analysis;
        with no analyses yet it is the full window and created_at is None.
        """
        try:
            times = self.store.list_demo_analysis_times(session_id)
        except Exception:
            logger.exception(
                "Demo session stats failed",
                extra={"error_code": "SESSION_STATS_ERROR"},
            )
            return SessionStats(total_analyses=0, time_remaining=self.window, created_at=None)

        if not times:
            return SessionStats(total_analyses=0, time_remaining=self.window, created_at=None)

        created_at = times[0]
        remaining = max(timedelta(0), created_at + self.window - self._clock())
        return SessionStats(total_analyses=len(times), time_remaining=remaining, created_at=created_at)

    def get_session(self, session_id: str) -> DemoSession:
        """Current view of a demo session."""
        stats = self.get_demo_session_stats(session_id)
        return DemoSession(
            id=session_id, created_at=stats.created_at, analysis_count=stats.total_analyses
        )
