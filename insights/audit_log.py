"""
Security audit logging with strict allowlist policy.

Records the security-relevant events of the demo (rate limit hits, rejected
URLs, quota blocks, analyses, sign-ins) as JSON lines, separately from the
application log.

Allowlist (what we log):
- request_id, timestamp, event_type
- session_id: demo session id or "user:<username>"
- website_id / analysis_id: record identifiers (not URLs)
- source: "llm" or "fallback"
- latency_ms, model
- error_code: error codes (not messages with user content)

Blocklist (NEVER log):
- website URLs (use website_id instead)
- questions, model answers, suggestions
- request headers or client identifiers

Design decisions:
- Separate audit logger from application logger
- Structured JSON format for machine parsing
- File rotation to prevent unbounded growth
- Explicit function interface to prevent accidental content logging
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import Literal

from .settings import DATA_DIR

AUDIT_LOG_PATH = DATA_DIR / "audit.jsonl"

EventType = Literal["analysis", "rate_limited", "invalid_url", "quota_exceeded", "error", "auth"]


@dataclass(frozen=True)
class AuditEvent:
    """
    Structured audit event with allowlist-only fields.

    All fields are either identifiers, numeric values, or controlled enums.
    No free-text content is allowed.
    """
    event_type: EventType
    request_id: str
    timestamp: str
    session_id: str = ""
    website_id: str = ""
    analysis_id: str = ""
    source: Literal["llm", "fallback", ""] = ""
    latency_ms: int = 0
    model: str = ""
    error_code: str = ""

    def to_json(self) -> str:
        """Serialize to JSON line."""
        return json.dumps(asdict(self), ensure_ascii=False)


def _get_audit_logger() -> logging.Logger:
    """
    Get or create the audit logger with file rotation.

    Separate from application logging to ensure audit events
    are captured even if app logging fails.
    """
    logger = logging.getLogger("audit")

    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    logger.propagate = False

    AUDIT_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)

    # 10MB max, keep 5 backups
    handler = RotatingFileHandler(
        AUDIT_LOG_PATH,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)

    return logger


def generate_request_id() -> str:
    """Generate a unique request ID for tracing."""
    return uuid.uuid4().hex[:16]


def utcnow_iso() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


def _emit(event: AuditEvent) -> None:
    _get_audit_logger().info(event.to_json())


def log_analysis(
    request_id: str,
    session_id: str,
    website_id: str,
    analysis_id: str,
    source: Literal["llm", "fallback"],
    latency_ms: int,
    model: str,
) -> None:
    """
    Log a completed analysis.

    Note: We deliberately do NOT accept the URL, question or answer.
    """
    _emit(
        AuditEvent(
            event_type="analysis",
            request_id=request_id,
            timestamp=utcnow_iso(),
            session_id=session_id,
            website_id=website_id,
            analysis_id=analysis_id,
            source=source,
            latency_ms=latency_ms,
            model=model,
        )
    )


def log_rate_limited(request_id: str, session_id: str, limiter: str) -> None:
    """Log a request rejected by a rate limiter ("analysis" or "demo")."""
    _emit(
        AuditEvent(
            event_type="rate_limited",
            request_id=request_id,
            timestamp=utcnow_iso(),
            session_id=session_id,
            error_code=f"RATE_LIMITED_{limiter.upper()}",
        )
    )


def log_invalid_url(request_id: str, session_id: str) -> None:
    """Log a rejected URL. The URL itself is not recorded."""
    _emit(
        AuditEvent(
            event_type="invalid_url",
            request_id=request_id,
            timestamp=utcnow_iso(),
            session_id=session_id,
            error_code="INVALID_URL",
        )
    )


def log_quota_exceeded(request_id: str, session_id: str) -> None:
    """Log a demo session that hit its analysis quota."""
    _emit(
        AuditEvent(
            event_type="quota_exceeded",
            request_id=request_id,
            timestamp=utcnow_iso(),
            session_id=session_id,
            error_code="DEMO_QUOTA_EXCEEDED",
        )
    )


def log_error(request_id: str, session_id: str, error_code: str) -> None:
    """
    Log an error event.

    Note: We log error_code, not error message (which could contain user input).
    """
    _emit(
        AuditEvent(
            event_type="error",
            request_id=request_id,
            timestamp=utcnow_iso(),
            session_id=session_id,
            error_code=error_code,
        )
    )


def log_auth(
    request_id: str,
    session_id: str,
    action: Literal["login_success", "login_failed", "logout"],
) -> None:
    """
    Log authentication event.

    Note: We log action type, not user details (privacy).
    """
    _emit(
        AuditEvent(
            event_type="auth",
            request_id=request_id,
            timestamp=utcnow_iso(),
            session_id=session_id,
            error_code=action,  # Reuse field for action type
        )
    )


class RequestTimer:
    """Context manager for timing requests."""

    def __init__(self):
        self.start_time: float = 0
        self.elapsed_ms: int = 0

    def __enter__(self) -> RequestTimer:
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.elapsed_ms = int((time.perf_counter() - self.start_time) * 1000)
