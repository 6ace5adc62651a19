"""
Centralized configuration for the Website Insights demo.

Design decisions:
- Frozen dataclass: immutable after creation, prevents accidental modification
- Environment variables: 12-factor app compliance, easy deployment configuration
- Sensible defaults: works out of the box for development

Key parameters explained:

LLM:
- gpt-4o at temperature 0.7: insights are advisory copy, some variety is wanted
- max_tokens=1000: enough for 4-6 recommendations with a short overview
- llm_timeout_seconds=30: one attempt, then the canned fallback answers
  (the chat UI favours latency over exhaustiveness, so no retries)

Demo quota:
- 10 analyses per anonymous session, counted over the last 24 hours
- The count check fails open (see demo_session.py)

Rate limiting (fixed window, process memory):
- analysis: 3 requests / 120s per client identifier
- demo flow: 20 requests / hour, a looser guard over the whole flow

Suggestions:
- suggestion_max_length=100: cap applied to extracted suggestions
  (0 disables the cap, matching the unbounded chat-side extractor)

SECURITY:
- The OpenAI key is read from the server environment only (OPENAI_API_KEY).
  It is never requested from, or stored in, the visitor's browser.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
SQLITE_PATH = DATA_DIR / "insights.sqlite"

DATA_DIR.mkdir(parents=True, exist_ok=True)


def _env_bool(name: str, default: bool) -> bool:
    """Parse boolean from environment variable."""
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    """Parse float from environment variable."""
    v = os.getenv(name)
    if v is None:
        return default
    return float(v)


def _env_int(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    v = os.getenv(name)
    if v is None:
        return default
    return int(v)


@dataclass(frozen=True)
class Settings:
    """
    Application settings.

    All settings can be overridden via environment variables.

    Attributes:
        openai_chat_model: Chat model used for website analysis
        openai_temperature: Sampling temperature for the analysis call
        openai_max_tokens: Upper bound on completion length
        llm_timeout_seconds: Timeout for the single completion attempt
        demo_max_analyses: Analyses allowed per demo session and window
        demo_session_hours: Length of the demo quota window
        demo_cookie_days: Lifetime of the browser cookie holding the demo session id
        analysis_rate_limit_max_requests: Analysis calls per window and client
        analysis_rate_limit_window_seconds: Analysis rate limit window
        demo_rate_limit_max_requests: Demo flow requests per window and client
        demo_rate_limit_window_seconds: Demo flow rate limit window
        suggestion_max_length: Max suggestion length, 0 means unbounded
        max_question_len: Maximum question length in characters
        auth_enabled: Whether the sign-in form is offered
        demo_request_url: Booking link offered once the demo quota is used
    """

    # LLM
    openai_chat_model: str = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o")
    openai_temperature: float = _env_float("OPENAI_TEMPERATURE", 0.7)
    openai_max_tokens: int = _env_int("OPENAI_MAX_TOKENS", 1000)
    llm_timeout_seconds: float = _env_float("LLM_TIMEOUT_SECONDS", 30.0)

    # Demo session quota
    demo_max_analyses: int = _env_int("DEMO_MAX_ANALYSES", 10)
    demo_session_hours: int = _env_int("DEMO_SESSION_HOURS", 24)
    demo_cookie_days: int = _env_int("DEMO_COOKIE_DAYS", 30)

    # Rate limiting
    analysis_rate_limit_max_requests: int = _env_int("ANALYSIS_RATE_LIMIT_MAX_REQUESTS", 3)
    analysis_rate_limit_window_seconds: int = _env_int("ANALYSIS_RATE_LIMIT_WINDOW_SECONDS", 120)
    demo_rate_limit_max_requests: int = _env_int("DEMO_RATE_LIMIT_MAX_REQUESTS", 20)
    demo_rate_limit_window_seconds: int = _env_int("DEMO_RATE_LIMIT_WINDOW_SECONDS", 3600)

    # Suggestion extraction
    suggestion_max_length: int = _env_int("SUGGESTION_MAX_LENGTH", 100)

    # Question length limit
    max_question_len: int = _env_int("MAX_QUESTION_LEN", 2000)

    # Authentication
    auth_enabled: bool = _env_bool("AUTH_ENABLED", True)

    # Upgrade path shown when the demo quota runs out (empty hides the link)
    demo_request_url: str = os.getenv("DEMO_REQUEST_URL", "")

    @property
    def suggestion_length_cap(self) -> int | None:
        """Suggestion cap as understood by the extractor (None = unbounded)."""
        return self.suggestion_max_length if self.suggestion_max_length > 0 else None


settings = Settings()
