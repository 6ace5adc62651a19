"""
Fixed-window rate limiting for the analysis endpoints.

Design decisions:
- Fixed window per identifier: {count, reset_time}, replaced once the window
  has elapsed. Simple and predictable for visitors ("wait 2 minutes").
- Explicitly owned instances: the runtime layer builds one limiter per policy
  and passes it to the pipeline. No module-level singleton.
- Per-key locking: the read-check-increment sequence runs under a lock for
  that identifier, so N concurrent requests against a limit of N let exactly
  N through.

Policies used by the app (see settings.py):
- analysis: 3 requests / 120s
- demo flow: 20 requests / hour
They are independent counters and must stay separate instances.

Limitations:
- In-memory: lost on server restart (advisory abuse mitigation only)
- Single-node: each process has its own counters
"""

from __future__ import annotations

import hashlib
import math
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass


@dataclass
class RateLimitEntry:
    """Counter state for one identifier."""

    count: int
    reset_time: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of FixedWindowRateLimiter.check_limit()."""

    allowed: bool
    reset_time: float | None = None


class FixedWindowRateLimiter:
    """
    Fixed-window request counter keyed by an opaque client identifier.

    Args:
        max_requests: Requests allowed per window
        window_seconds: Window duration in seconds
        clock: Time source returning epoch seconds (injectable for tests)

    Usage:
        limiter = FixedWindowRateLimiter(3, 120)
        decision = limiter.check_limit(client_id)
        if not decision.allowed:
            st.warning(f"Retry in {limiter.retry_after(decision)}s")
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, identifier: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(identifier)
            if lock is None:
                lock = threading.Lock()
                self._locks[identifier] = lock
            return lock

    def _acquire(self, identifier: str) -> threading.Lock:
        # cleanup() may retire a lock between lookup and acquire: retry until
        # the lock we hold is still the registered one.
        while True:
            lock = self._lock_for(identifier)
            lock.acquire()
            if self._locks.get(identifier) is lock:
                return lock
            lock.release()

    def check_limit(self, identifier: str) -> RateLimitDecision:
        """
        Count a request for identifier and decide whether it may proceed.

        Returns:
            RateLimitDecision(allowed=True) or, when the window is full,
            RateLimitDecision(allowed=False, reset_time=<epoch seconds>)
        """
        lock = self._acquire(identifier)
        try:
            now = self._clock()
            entry = self._entries.get(identifier)

            if entry is None or now > entry.reset_time:
                self._entries[identifier] = RateLimitEntry(
                    count=1, reset_time=now + self.window_seconds
                )
                return RateLimitDecision(allowed=True)

            if entry.count >= self.max_requests:
                return RateLimitDecision(allowed=False, reset_time=entry.reset_time)

            entry.count += 1
            return RateLimitDecision(allowed=True)
        finally:
            lock.release()

    def retry_after(self, decision: RateLimitDecision) -> int:
        """Whole seconds until a denied identifier may retry (at least 1)."""
        if decision.allowed or decision.reset_time is None:
            return 0
        return max(1, math.ceil(decision.reset_time - self._clock()))

    def cleanup(self) -> int:
        """
        Drop entries whose window has elapsed.

        Not needed for correctness (stale entries are replaced on next
        access), only to bound memory.

        Returns:
            Number of entries removed
        """
        removed = 0
        now = self._clock()
        with self._registry_lock:
            for identifier, lock in list(self._locks.items()):
                # Busy keys are in use right now, leave them for next time
                if not lock.acquire(blocking=False):
                    continue
                try:
                    entry = self._entries.get(identifier)
                    if entry is None or now > entry.reset_time:
                        self._entries.pop(identifier, None)
                        del self._locks[identifier]
                        if entry is not None:
                            removed += 1
                finally:
                    lock.release()
        return removed

    def __len__(self) -> int:
        return len(self._entries)


def client_identifier(headers: Mapping[str, str] | None) -> str:
    """
    Derive a stable, anonymous rate-limit key from request headers.

    Combines user agent, accepted languages and the forwarded client address,
    then hashes them so no raw header value is kept in memory.

    Args:
        headers: Request headers (e.g. st.context.headers), may be None

    Returns:
        16-character hex identifier
    """
    headers = headers or {}

    def _get(name: str) -> str:
        for key, value in headers.items():
            if key.lower() == name:
                return value or ""
        return ""

    forwarded = _get("x-forwarded-for").split(",")[0].strip()
    combined = "|".join([_get("user-agent"), _get("accept-language"), forwarded])
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()[:16]
