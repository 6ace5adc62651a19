"""
Demo page - chat-style website analysis for anonymous visitors.

SECURITY:
- No API key is ever asked from the visitor (server-side OPENAI_API_KEY only)
- Demo quota per session + two rate limiters per client
- Audit logging with allowlist policy (no URLs, questions or answers)
"""

import logging

import streamlit as st
from dotenv import load_dotenv

from insights import db
from insights.analysis import AnalysisRequest
from insights.audit_log import generate_request_id, log_error
from insights.auth import current_username, render_logout
from insights.insight import request_insight
from insights.logging_config import setup_logging
from insights.runtime import (
    analysis_limiter,
    completion_fn,
    current_client_id,
    demo_limiter,
    demo_session_id,
    demo_tracker,
    llm_available,
)
from insights.settings import settings
from insights.url_validation import detect_page_type, validate_and_sanitize_url

load_dotenv()
setup_logging()
db.init_db()

logger = logging.getLogger(__name__)

PRODUCT_TYPES = ["saas", "ecommerce", "blog", "website"]
PAGES = ["Homepage", "Pricing", "Product", "Features", "About", "Contact", "Cart", "Post"]
QUICK_QUESTIONS = [
    "Improve conversion rate",
    "Analyze user behavior",
    "Optimize checkout flow",
    "A/B test ideas",
]
UPSELL_AFTER_MESSAGES = 3


def _format_duration(seconds: float) -> str:
    hours, rem = divmod(int(seconds), 3600)
    minutes = rem // 60
    return f"{hours}h {minutes:02d}m"


def _render_session_status(session_id: str, username: str | None) -> None:
    """Sidebar block: remaining analyses and time left in the demo window."""
    st.header("Demo Session")
    if username:
        st.success(f"Signed in as {username}: no demo limit.")
        return

    tracker = demo_tracker()
    limits = tracker.check_session_limits(session_id)
    stats = tracker.get_demo_session_stats(session_id)

    st.metric("Analyses remaining", f"{limits.remaining_analyses} / {settings.demo_max_analyses}")
    st.progress(limits.remaining_analyses / max(1, settings.demo_max_analyses))

    if limits.remaining_analyses == 0:
        st.error("Demo limit reached!")
        if settings.demo_request_url:
            st.link_button("Request a Demo", settings.demo_request_url)
    elif limits.remaining_analyses <= 2:
        st.warning("Running low!")

    if stats.created_at is not None:
        st.caption(f"Quota resets in {_format_duration(stats.time_remaining.total_seconds())}")


# st.set_page_config() lives in main.py (st.navigation)
st.title("💬 Website Optimization Assistant")
st.caption("Get personalized insights to improve your website")

session_id = demo_session_id()
username = current_username()

if "demo_messages" not in st.session_state:
    st.session_state["demo_messages"] = [
        {
            "role": "assistant",
            "content": (
                "Hi! I'm here to help you improve your website and boost conversions. "
                "What specific area would you like to focus on today?"
            ),
            "suggestions": [],
        }
    ]

with st.sidebar:
    _render_session_status(session_id, username)
    render_logout()

    with st.expander("⚙️ Technical details"):
        st.caption(f"Model: {settings.openai_chat_model}")
        st.caption(f"AI analysis: {'✅ enabled' if llm_available() else '⚠️ fallback insights only'}")
        st.caption(
            f"Rate limits: {settings.analysis_rate_limit_max_requests} analyses / "
            f"{settings.analysis_rate_limit_window_seconds}s, "
            f"{settings.demo_rate_limit_max_requests} requests / "
            f"{settings.demo_rate_limit_window_seconds // 60} min"
        )

# Website context
col_url, col_type, col_page = st.columns([3, 1, 1])
with col_url:
    raw_url = st.text_input("Website URL", placeholder="https://example.com/pricing")
with col_type:
    product_type = st.selectbox("Product type", PRODUCT_TYPES)

validation = validate_and_sanitize_url(raw_url) if raw_url else None
detected = detect_page_type(validation.sanitized_url) if validation and validation.is_valid else "Homepage"
with col_page:
    current_page = st.selectbox("Current page", PAGES, index=PAGES.index(detected))

if validation and not validation.is_valid:
    st.warning(validation.error)

# Conversation
messages = st.session_state["demo_messages"]
for idx, m in enumerate(messages):
    with st.chat_message(m["role"]):
        st.markdown(m["content"])
        if m["role"] == "assistant" and m.get("suggestions") and idx == len(messages) - 1:
            cols = st.columns(len(m["suggestions"]))
            for i, (col, suggestion) in enumerate(zip(cols, m["suggestions"])):
                with col:
                    if st.button(suggestion, key=f"sugg_{idx}_{i}", use_container_width=True):
                        st.session_state["_pending_question"] = suggestion
                        st.rerun()

quick_cols = st.columns(len(QUICK_QUESTIONS))
for col, question in zip(quick_cols, QUICK_QUESTIONS):
    with col:
        if st.button(question, key=f"quick_{question}", use_container_width=True):
            st.session_state["_pending_question"] = question

prompt = st.chat_input("Ask about conversion optimization, UX improvements, or analytics…")
pending = st.session_state.pop("_pending_question", None)
if pending:
    prompt = pending

if prompt:
    messages.append({"role": "user", "content": prompt, "suggestions": []})
    with st.chat_message("user"):
        st.markdown(prompt)

    with st.chat_message("assistant"):
        with st.spinner("Analyzing your page…"):
            try:
                outcome = request_insight(
                    AnalysisRequest(
                        website_url=raw_url,
                        current_page=current_page,
                        product_type=product_type,
                        user_question=prompt,
                    ),
                    demo_session_id=session_id,
                    client_id=current_client_id(),
                    tracker=demo_tracker(),
                    analysis_limiter=analysis_limiter(),
                    demo_limiter=demo_limiter(),
                    llm_complete=completion_fn(),
                    user_id=username,
                )
            except Exception:
                logger.exception("Insight request failed", extra={"error_code": "INSIGHT_ERROR"})
                log_error(generate_request_id(), session_id, "INSIGHT_ERROR")
                outcome = None

    if outcome is None:
        reply = {"role": "assistant", "content": "Something went wrong. Please try again.", "suggestions": []}
    elif outcome.ok:
        reply = {
            "role": "assistant",
            "content": outcome.result.content,
            "suggestions": outcome.result.suggestions,
        }
        if outcome.result.source == "fallback":
            reply["content"] += "\n\n_Showing our standard playbook for this page while AI analysis is unavailable._"
    else:
        reply = {"role": "assistant", "content": f"⚠️ {outcome.message}", "suggestions": []}

    messages.append(reply)
    st.rerun()

user_turns = sum(1 for m in messages if m["role"] == "user")
if user_turns >= UPSELL_AFTER_MESSAGES and not st.session_state.get("_upsell_dismissed"):
    with st.container(border=True):
        st.markdown("🚀 **Loving the insights?** Get a personalized demo of what we can do for your website.")
        col_a, col_b = st.columns(2)
        with col_a:
            if settings.demo_request_url:
                st.link_button("Request a Demo", settings.demo_request_url)
        with col_b:
            if st.button("Continue testing"):
                st.session_state["_upsell_dismissed"] = True
                st.rerun()
