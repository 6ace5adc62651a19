"""
Database layer for websites, analyses, conversations and reports.

Design decisions:
- SQLite chosen for demo simplicity (no external DB server required)
- Row factory + dict conversion, JSON columns decoded on read
- PRAGMA foreign_keys=ON for cascade deletes (sessions when a website goes)
- UUID hex for IDs (no collision risk, URL-safe)
- ISO 8601 timestamps in UTC with fixed microsecond precision, so that
  string comparison matches chronological order

Tables:
- websites: URL + product context, owned by a user or a demo session
- analysis_sessions: one row per analysis run (the demo quota counts these)
- conversation_messages: chat history per analysis session
- analysis_reports: compiled recommendations per analysis session

Error policy:
- Reads by id return None when the row is missing
- Writes let sqlite3.Error propagate: a dropped write would corrupt history
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .settings import SQLITE_PATH

MESSAGE_ROLES = frozenset({"user", "assistant", "system"})

_JSON_FIELDS = {
    "websites": (),
    "analysis_sessions": ("session_data",),
    "conversation_messages": ("suggestions", "metadata"),
    "analysis_reports": ("recommendations", "metrics", "export_data"),
}

_UPDATABLE = {
    "websites": {"url", "product_type", "title", "description", "industry"},
    "analysis_sessions": {"current_page", "session_data"},
    "analysis_reports": {"title", "summary", "recommendations", "metrics", "export_data"},
}


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _utcnow() -> str:
    """Get current UTC timestamp in ISO format."""
    return _iso(datetime.now(timezone.utc))


def _id() -> str:
    """Generate a new UUID hex string."""
    return uuid.uuid4().hex


def _dumps(value: Any) -> str | None:
    return None if value is None else json.dumps(value, ensure_ascii=False)


def _to_dict(table: str, row: sqlite3.Row | None) -> dict[str, Any] | None:
    if row is None:
        return None
    out = dict(row)
    for name in _JSON_FIELDS[table]:
        if out.get(name) is not None:
            out[name] = json.loads(out[name])
    return out


def connect() -> sqlite3.Connection:
    """
    Create a database connection with proper configuration.

    Configuration:
    - check_same_thread=False: Allows use from Streamlit's threading model
    - row_factory=sqlite3.Row: Dict-like access to query results
    - PRAGMA foreign_keys=ON: Enables cascade deletes
    """
    SQLITE_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(SQLITE_PATH), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def _session() -> Iterator[sqlite3.Connection]:
    """Connection that commits on success and always closes."""
    conn = connect()
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def init_db() -> None:
    """
    Initialize database schema.

    Idempotent: safe to call multiple times.
    Creates tables and indexes if they don't exist.
    """
    conn = connect()
    cur = conn.cursor()

    cur.execute(
        """
    CREATE TABLE IF NOT EXISTS websites (
        id TEXT PRIMARY KEY,
        url TEXT NOT NULL,
        product_type TEXT,
        title TEXT,
        description TEXT,
        industry TEXT,
        user_id TEXT,
        demo_session_id TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """
    )

    cur.execute(
        """
    CREATE TABLE IF NOT EXISTS analysis_sessions (
        id TEXT PRIMARY KEY,
        website_id TEXT,
        current_page TEXT,
        session_data TEXT,
        user_id TEXT,
        demo_session_id TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY(website_id) REFERENCES websites(id) ON DELETE CASCADE
    );
    """
    )

    cur.execute(
        """
    CREATE TABLE IF NOT EXISTS conversation_messages (
        id TEXT PRIMARY KEY,
        session_id TEXT,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        suggestions TEXT,
        metadata TEXT,
        user_id TEXT,
        demo_session_id TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY(session_id) REFERENCES analysis_sessions(id) ON DELETE CASCADE
    );
    """
    )

    cur.execute(
        """
    CREATE TABLE IF NOT EXISTS analysis_reports (
        id TEXT PRIMARY KEY,
        session_id TEXT,
        title TEXT NOT NULL,
        summary TEXT,
        recommendations TEXT,
        metrics TEXT,
        export_data TEXT,
        user_id TEXT,
        demo_session_id TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY(session_id) REFERENCES analysis_sessions(id) ON DELETE CASCADE
    );
    """
    )

    cur.execute("CREATE INDEX IF NOT EXISTS idx_websites_demo ON websites(demo_session_id);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_websites_user ON websites(user_id);")
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_demo ON analysis_sessions(demo_session_id, created_at);"
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_sessions_website ON analysis_sessions(website_id);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_messages_session ON conversation_messages(session_id);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_reports_session ON analysis_reports(session_id);")

    conn.commit()
    conn.close()


def _update(table: str, row_id: str, updates: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Apply whitelisted column updates and return the fresh row."""
    unknown = set(updates) - _UPDATABLE[table]
    if unknown:
        raise ValueError(f"Cannot update {table} columns: {sorted(unknown)}")

    if updates:
        values = {
            k: _dumps(v) if k in _JSON_FIELDS[table] else v for k, v in updates.items()
        }
        assignments = ", ".join(f"{k}=?" for k in values)
        with _session() as conn:
            conn.execute(
                f"UPDATE {table} SET {assignments}, updated_at=? WHERE id=?",
                (*values.values(), _utcnow(), row_id),
            )

    conn = connect()
    row = conn.execute(f"SELECT * FROM {table} WHERE id=?", (row_id,)).fetchone()
    conn.close()
    return _to_dict(table, row)


# ---------------- websites ----------------

def create_website(
    url: str,
    product_type: str | None = None,
    title: str | None = None,
    description: str | None = None,
    industry: str | None = None,
    user_id: str | None = None,
    demo_session_id: str | None = None,
) -> str:
    """
    Add a website record.

    Args:
        url: Sanitized website URL
        product_type: e.g. "saas", "ecommerce", "blog"
        title: Optional display title
        description: Optional free-text description
        industry: Optional industry label
        user_id: Owner when signed in
        demo_session_id: Owner when anonymous

    Returns:
        Generated website ID
    """
    website_id = _id()
    now = _utcnow()
    with _session() as conn:
        conn.execute(
            """
            INSERT INTO websites(id, url, product_type, title, description, industry,
                                 user_id, demo_session_id, created_at, updated_at)
            VALUES (?,?,?,?,?,?,?,?,?,?)
            """,
            (website_id, url, product_type, title, description, industry,
             user_id, demo_session_id, now, now),
        )
    return website_id


def get_website(website_id: str) -> Optional[dict[str, Any]]:
    """Get a website by ID, or None if not found."""
    conn = connect()
    row = conn.execute("SELECT * FROM websites WHERE id=?", (website_id,)).fetchone()
    conn.close()
    return _to_dict("websites", row)


def find_website(
    url: str, user_id: str | None = None, demo_session_id: str | None = None
) -> Optional[dict[str, Any]]:
    """
    Find the most recent website with this URL for the given owner.

    Exactly one of user_id / demo_session_id is expected; with neither,
    only ownerless rows match.
    """
    conn = connect()
    row = conn.execute(
        """
        SELECT * FROM websites
        WHERE url=? AND user_id IS ? AND demo_session_id IS ?
        ORDER BY created_at DESC, rowid DESC LIMIT 1
        """,
        (url, user_id, demo_session_id),
    ).fetchone()
    conn.close()
    return _to_dict("websites", row)


def list_websites(
    user_id: str | None = None, demo_session_id: str | None = None
) -> list[dict[str, Any]]:
    """
    List websites, most recent first.

    Args:
        user_id: Restrict to this signed-in owner
        demo_session_id: Restrict to this demo session

    Returns:
        List of website dicts
    """
    clauses, params = [], []
    if user_id is not None:
        clauses.append("user_id=?")
        params.append(user_id)
    if demo_session_id is not None:
        clauses.append("demo_session_id=?")
        params.append(demo_session_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    conn = connect()
    rows = conn.execute(
        f"SELECT * FROM websites {where} ORDER BY created_at DESC, rowid DESC", params
    ).fetchall()
    conn.close()
    return [_to_dict("websites", r) for r in rows]


def update_website(website_id: str, **updates: Any) -> Optional[dict[str, Any]]:
    """Update website fields (url, product_type, title, description, industry)."""
    return _update("websites", website_id, updates)


def touch_website(website_id: str) -> None:
    """Record activity on a website (bumps updated_at, used by cleanup_demo_data)."""
    with _session() as conn:
        conn.execute("UPDATE websites SET updated_at=? WHERE id=?", (_utcnow(), website_id))


def delete_website(website_id: str) -> None:
    """
    Delete a website.

    CASCADE delete removes its analysis sessions, their messages and reports.
    """
    with _session() as conn:
        conn.execute("DELETE FROM websites WHERE id=?", (website_id,))


# ---------------- analysis sessions ----------------

def create_analysis_session(
    website_id: str | None,
    current_page: str | None = None,
    session_data: dict[str, Any] | None = None,
    user_id: str | None = None,
    demo_session_id: str | None = None,
) -> str:
    """
    Record an analysis run.

    For anonymous visitors this row is what the demo quota counts.

    Returns:
        Generated analysis session ID
    """
    analysis_id = _id()
    now = _utcnow()
    with _session() as conn:
        conn.execute(
            """
            INSERT INTO analysis_sessions(id, website_id, current_page, session_data,
                                          user_id, demo_session_id, created_at, updated_at)
            VALUES (?,?,?,?,?,?,?,?)
            """,
            (analysis_id, website_id, current_page, _dumps(session_data or {}),
             user_id, demo_session_id, now, now),
        )
    return analysis_id


def get_analysis_session(analysis_id: str) -> Optional[dict[str, Any]]:
    """Get an analysis session by ID, or None if not found."""
    conn = connect()
    row = conn.execute("SELECT * FROM analysis_sessions WHERE id=?", (analysis_id,)).fetchone()
    conn.close()
    return _to_dict("analysis_sessions", row)


def update_analysis_session(analysis_id: str, **updates: Any) -> Optional[dict[str, Any]]:
    """Update analysis session fields (current_page, session_data)."""
    return _update("analysis_sessions", analysis_id, updates)


def list_analysis_sessions(website_id: str) -> list[dict[str, Any]]:
    """List analysis sessions of a website, most recent first."""
    conn = connect()
    rows = conn.execute(
        "SELECT * FROM analysis_sessions WHERE website_id=? ORDER BY created_at DESC, rowid DESC",
        (website_id,),
    ).fetchall()
    conn.close()
    return [_to_dict("analysis_sessions", r) for r in rows]


def count_demo_analyses(demo_session_id: str, since: datetime | None = None) -> int:
    """
    Count analysis sessions recorded for a demo session.

    Args:
        demo_session_id: Anonymous session identifier
        since: Only count rows created at or after this instant

    Returns:
        Number of matching analysis sessions
    """
    conn = connect()
    if since is None:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM analysis_sessions WHERE demo_session_id=?",
            (demo_session_id,),
        ).fetchone()
    else:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM analysis_sessions WHERE demo_session_id=? AND created_at>=?",
            (demo_session_id, _iso(since)),
        ).fetchone()
    conn.close()
    return int(row["n"])


def list_demo_analysis_times(demo_session_id: str) -> list[datetime]:
    """Creation times of a demo session's analyses, oldest first."""
    conn = connect()
    rows = conn.execute(
        "SELECT created_at FROM analysis_sessions WHERE demo_session_id=? ORDER BY created_at ASC",
        (demo_session_id,),
    ).fetchall()
    conn.close()
    return [datetime.fromisoformat(r["created_at"]) for r in rows]


def check_demo_session_limits(
    demo_session_id: str,
    max_analyses: int,
    window_hours: int,
    now: datetime | None = None,
) -> bool:
    """
    Authoritative quota check for a demo session.

    Args:
        demo_session_id: Anonymous session identifier
        max_analyses: Analyses allowed within the window
        window_hours: Look-back window from now
        now: Reference instant (defaults to the current UTC time)

    Returns:
        True if another analysis may be started
    """
    now = now or datetime.now(timezone.utc)
    used = count_demo_analyses(demo_session_id, since=now - timedelta(hours=window_hours))
    return used < max_analyses


def cleanup_demo_data(older_than_hours: int, now: datetime | None = None) -> int:
    """
    Delete demo-owned websites (and, by cascade, their analyses) whose
    last activity is older than the given age.

    Activity is the website's updated_at or its most recent analysis,
    whichever is later: a website with a recent analysis is kept.

    Signed-in users' data is never touched.

    Returns:
        Number of websites removed
    """
    now = now or datetime.now(timezone.utc)
    cutoff = _iso(now - timedelta(hours=older_than_hours))
    with _session() as conn:
        cur = conn.execute(
            """
            DELETE FROM websites
            WHERE demo_session_id IS NOT NULL AND user_id IS NULL AND updated_at<?
              AND NOT EXISTS (
                SELECT 1 FROM analysis_sessions a
                WHERE a.website_id=websites.id AND a.created_at>=?
              )
            """,
            (cutoff, cutoff),
        )
        # Analyses recorded without a website row
        conn.execute(
            "DELETE FROM analysis_sessions WHERE website_id IS NULL AND demo_session_id IS NOT NULL "
            "AND user_id IS NULL AND created_at<?",
            (cutoff,),
        )
        return cur.rowcount


# ---------------- conversation messages ----------------

def add_message(
    session_id: str,
    role: str,
    content: str,
    suggestions: list[str] | None = None,
    metadata: dict[str, Any] | None = None,
    user_id: str | None = None,
    demo_session_id: str | None = None,
) -> str:
    """
    Add a message to an analysis session's conversation.

    Args:
        session_id: Analysis session ID
        role: "user", "assistant" or "system"
        content: Message content
        suggestions: Quick-reply suggestions attached to an assistant message
        metadata: Free-form metadata (source, recommendations, metrics)

    Returns:
        Generated message ID
    """
    if role not in MESSAGE_ROLES:
        raise ValueError(f"Invalid message role: {role!r}")

    msg_id = _id()
    with _session() as conn:
        conn.execute(
            """
            INSERT INTO conversation_messages(id, session_id, role, content, suggestions,
                                              metadata, user_id, demo_session_id, created_at)
            VALUES (?,?,?,?,?,?,?,?,?)
            """,
            (msg_id, session_id, role, content, _dumps(suggestions or []),
             _dumps(metadata or {}), user_id, demo_session_id, _utcnow()),
        )
    return msg_id


def get_conversation_history(session_id: str) -> list[dict[str, Any]]:
    """
    Get all messages of an analysis session.

    Returns:
        List of message dicts in chronological order
    """
    conn = connect()
    rows = conn.execute(
        "SELECT * FROM conversation_messages WHERE session_id=? ORDER BY created_at ASC, rowid ASC",
        (session_id,),
    ).fetchall()
    conn.close()
    return [_to_dict("conversation_messages", r) for r in rows]


# ---------------- analysis reports ----------------

def create_analysis_report(
    session_id: str,
    title: str,
    summary: str | None = None,
    recommendations: list[dict[str, Any]] | None = None,
    metrics: dict[str, Any] | None = None,
    export_data: dict[str, Any] | None = None,
    user_id: str | None = None,
    demo_session_id: str | None = None,
) -> str:
    """
    Store a compiled analysis report.

    Returns:
        Generated report ID
    """
    report_id = _id()
    now = _utcnow()
    with _session() as conn:
        conn.execute(
            """
            INSERT INTO analysis_reports(id, session_id, title, summary, recommendations,
                                         metrics, export_data, user_id, demo_session_id,
                                         created_at, updated_at)
            VALUES (?,?,?,?,?,?,?,?,?,?,?)
            """,
            (report_id, session_id, title, summary, _dumps(recommendations or []),
             _dumps(metrics or {}), _dumps(export_data or {}), user_id, demo_session_id,
             now, now),
        )
    return report_id


def get_analysis_report(report_id: str) -> Optional[dict[str, Any]]:
    """Get a report by ID, or None if not found."""
    conn = connect()
    row = conn.execute("SELECT * FROM analysis_reports WHERE id=?", (report_id,)).fetchone()
    conn.close()
    return _to_dict("analysis_reports", row)


def update_analysis_report(report_id: str, **updates: Any) -> Optional[dict[str, Any]]:
    """Update report fields (title, summary, recommendations, metrics, export_data)."""
    return _update("analysis_reports", report_id, updates)


def list_analysis_reports(
    session_id: str | None = None,
    user_id: str | None = None,
    demo_session_id: str | None = None,
) -> list[dict[str, Any]]:
    """List reports, most recent first, optionally filtered by session or owner."""
    clauses, params = [], []
    for column, value in (
        ("session_id", session_id),
        ("user_id", user_id),
        ("demo_session_id", demo_session_id),
    ):
        if value is not None:
            clauses.append(f"{column}=?")
            params.append(value)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    conn = connect()
    rows = conn.execute(
        f"SELECT * FROM analysis_reports {where} ORDER BY created_at DESC, rowid DESC", params
    ).fetchall()
    conn.close()
    return [_to_dict("analysis_reports", r) for r in rows]
