"""
Runtime adapters - Streamlit and LangChain wiring for the pure modules.

This module owns the process-wide objects and hands them to the pipeline:
- ChatOpenAI client (@st.cache_resource)
- the two rate limiters (one instance each per process)
- the demo session tracker bound to the SQLite store
- the demo session id cookie (extra-streamlit-components CookieManager)

The pure modules (analysis, insight, rate_limit, demo_session) never import
streamlit or langchain, so they are tested without these dependencies.

Why @st.cache_resource?
- One object per process, shared across sessions and reruns
- The rate limiters must be shared: a per-session limiter would reset on
  every browser refresh

Why max_retries=0 and an explicit timeout?
- A single attempt, bounded at settings.llm_timeout_seconds; on any failure
  analysis.analyze() answers with the canned fallback instead
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone

import extra_streamlit_components as stx
import streamlit as st
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from . import db
from .analysis import LLMCompleteFn
from .demo_session import SESSION_KEY, DemoSessionTracker, get_or_create_session_id
from .rate_limit import FixedWindowRateLimiter, client_identifier
from .settings import settings

_ROLE_TO_MESSAGE = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


# ============================================================================
# CACHED RESOURCES (Streamlit)
# ============================================================================


@st.cache_resource
def llm(temperature: float, max_tokens: int) -> ChatOpenAI:
    """Get cached chat model for the given sampling parameters."""
    return ChatOpenAI(
        model=settings.openai_chat_model,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=settings.llm_timeout_seconds,
        max_retries=0,
    )


@st.cache_resource
def analysis_limiter() -> FixedWindowRateLimiter:
    """Process-wide limiter for analysis calls (3 / 2 min by default)."""
    return FixedWindowRateLimiter(
        settings.analysis_rate_limit_max_requests,
        settings.analysis_rate_limit_window_seconds,
    )


@st.cache_resource
def demo_limiter() -> FixedWindowRateLimiter:
    """Process-wide limiter for the overall demo flow (20 / hour by default)."""
    return FixedWindowRateLimiter(
        settings.demo_rate_limit_max_requests,
        settings.demo_rate_limit_window_seconds,
    )


@st.cache_resource
def demo_tracker() -> DemoSessionTracker:
    """Demo quota tracker bound to the SQLite store."""
    return DemoSessionTracker(
        db,
        max_analyses=settings.demo_max_analyses,
        session_duration_hours=settings.demo_session_hours,
    )


# ============================================================================
# LLM IMPLEMENTATION
# ============================================================================


def to_langchain_messages(messages: list[dict[str, str]]) -> list[BaseMessage]:
    """Convert generic role/content dicts to LangChain message objects."""
    out: list[BaseMessage] = []
    for m in messages:
        cls = _ROLE_TO_MESSAGE.get(m["role"])
        if cls is None:
            raise ValueError(f"Unsupported message role: {m['role']!r}")
        out.append(cls(content=m["content"]))
    return out


def llm_complete(messages: list[dict[str, str]], temperature: float, max_tokens: int) -> str:
    """
    Single chat completion. Concrete implementation of LLMCompleteFn.

    Raises whatever the OpenAI client raises (timeout, auth, quota);
    the caller decides how to recover.
    """
    response = llm(temperature, max_tokens).invoke(to_langchain_messages(messages))
    content = response.content
    if isinstance(content, list):
        content = "".join(part if isinstance(part, str) else part.get("text", "") for part in content)
    return content


def llm_available() -> bool:
    """True when an OpenAI key is configured on the server."""
    return bool(os.getenv("OPENAI_API_KEY"))


def completion_fn() -> LLMCompleteFn | None:
    """The model adapter, or None so that analyses use the fallback."""
    return llm_complete if llm_available() else None


def current_client_id(headers: Mapping[str, str] | None = None) -> str:
    """Rate-limit key for the current browser (from st.context headers)."""
    if headers is None:
        headers = dict(st.context.headers)
    return client_identifier(headers)


# ============================================================================
# DEMO SESSION COOKIE
# ============================================================================


def _store_session_cookie(session_id: str) -> None:
    """Write the demo session id to a browser cookie (read back on next page load)."""
    expires_at = datetime.now(timezone.utc) + timedelta(days=settings.demo_cookie_days)
    stx.CookieManager(key="demo_session_cookies").set(
        SESSION_KEY, session_id, expires_at=expires_at, key="set_demo_session"
    )


def demo_session_id() -> str:
    """
    Demo session id of the current browser.

    Reused from session state, then from the cookie sent with the page
    request, and only minted (and written to the cookie) when neither exists.
    """
    return get_or_create_session_id(
        st.session_state,
        cookies=st.context.cookies,
        persist=_store_session_cookie,
    )
