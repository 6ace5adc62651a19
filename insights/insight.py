"""
Insight pipeline facade - the single entry point used by the demo page.

Pipeline:
    URL validation → demo quota → rate limiters (demo flow, analysis)
    → analysis (LLM or fallback) → suggestions → persistence → audit

Error taxonomy:
- invalid URL, quota exceeded, rate limited: returned as an InsightOutcome
  status with a human-readable message, never raised
- model failures: absorbed by analysis.analyze() (fallback content)
- store write failures (website, analysis, messages): raised to the caller,
  silently dropping a visitor's history would corrupt it

Collaborators (tracker, limiters, model, store) are passed in explicitly;
runtime.py builds the process-wide instances.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from types import ModuleType
from typing import Any, Literal

from . import db
from .analysis import AnalysisRequest, AnalysisResult, LLMCompleteFn, analyze
from .audit_log import (
    RequestTimer,
    generate_request_id,
    log_analysis,
    log_invalid_url,
    log_quota_exceeded,
    log_rate_limited,
)
from .demo_session import DemoSessionTracker
from .rate_limit import FixedWindowRateLimiter
from .security import sanitize_question
from .settings import settings
from .url_validation import validate_and_sanitize_url

logger = logging.getLogger(__name__)

QUOTA_EXCEEDED_MESSAGE = (
    "Demo session limit reached. Please request a demo to continue with unlimited analysis."
)

OutcomeStatus = Literal["ok", "invalid_url", "quota_exceeded", "rate_limited"]


@dataclass(frozen=True)
class InsightOutcome:
    """What the page renders for one insight request."""

    status: OutcomeStatus
    result: AnalysisResult | None = None
    message: str = ""
    remaining_analyses: int | None = None
    retry_after: int = 0
    website_id: str | None = None
    analysis_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def rate_limited_message(retry_after_seconds: int) -> str:
    """User-facing message with the wait rounded up to whole minutes."""
    minutes = max(1, math.ceil(retry_after_seconds / 60))
    unit = "minute" if minutes == 1 else "minutes"
    return f"Too many requests. Please wait {minutes} {unit} before trying again."


def _persist(
    store: Any,
    request: AnalysisRequest,
    result: AnalysisResult,
    user_id: str | None,
    demo_session_id: str | None,
) -> tuple[str, str]:
    """Record website, analysis session and both messages. Returns (website_id, analysis_id)."""
    owner = {"user_id": user_id, "demo_session_id": demo_session_id}

    website = store.find_website(request.website_url, **owner)
    if website is None:
        website_id = store.create_website(
            request.website_url,
            product_type=request.product_type,
            industry=request.industry,
            **owner,
        )
    else:
        website_id = website["id"]
        store.touch_website(website_id)

    analysis_id = store.create_analysis_session(
        website_id,
        current_page=request.current_page,
        session_data={
            "productType": request.product_type,
            "industry": request.industry,
            "analysisType": request.analysis_type,
        },
        **owner,
    )
    store.add_message(analysis_id, "user", request.user_question, **owner)
    store.add_message(
        analysis_id,
        "assistant",
        result.content,
        suggestions=result.suggestions,
        metadata={
            "source": result.source,
            "recommendations": result.recommendations,
            "metrics": result.metrics,
            "timestamp": result.timestamp,
        },
        **owner,
    )
    return website_id, analysis_id


def request_insight(
    request: AnalysisRequest,
    *,
    demo_session_id: str | None,
    client_id: str,
    tracker: DemoSessionTracker,
    analysis_limiter: FixedWindowRateLimiter,
    demo_limiter: FixedWindowRateLimiter,
    llm_complete: LLMCompleteFn | None,
    user_id: str | None = None,
    store: ModuleType | Any = db,
) -> InsightOutcome:
    """
    Run one insight request through quota, rate limits, analysis and storage.

    Signed-in users (user_id set) skip the demo quota; rate limits apply to
    everyone.

    Args:
        request: Raw request from the form (URL not yet validated)
        demo_session_id: Anonymous session id (ignored when user_id is set)
        client_id: Rate-limit key for this client
        tracker: Demo quota tracker
        analysis_limiter: Tight limiter for analysis calls
        demo_limiter: Looser limiter for the demo flow
        llm_complete: Model adapter, None when no API key is configured
        user_id: Signed-in username, if any
        store: Persistence module (insights.db)

    Returns:
        InsightOutcome
    """
    request_id = generate_request_id()
    audit_session = f"user:{user_id}" if user_id else (demo_session_id or "")
    if user_id:
        demo_session_id = None

    validation = validate_and_sanitize_url(request.website_url)
    if not validation.is_valid:
        log_invalid_url(request_id, audit_session)
        return InsightOutcome(status="invalid_url", message=validation.error or "")

    remaining: int | None = None
    if demo_session_id is not None:
        limits = tracker.check_session_limits(demo_session_id)
        if not limits.can_proceed:
            log_quota_exceeded(request_id, audit_session)
            return InsightOutcome(
                status="quota_exceeded",
                message=QUOTA_EXCEEDED_MESSAGE,
                remaining_analyses=0,
            )
        remaining = limits.remaining_analyses

    for name, limiter in (("demo", demo_limiter), ("analysis", analysis_limiter)):
        decision = limiter.check_limit(client_id)
        if not decision.allowed:
            retry_after = limiter.retry_after(decision)
            log_rate_limited(request_id, audit_session, name)
            return InsightOutcome(
                status="rate_limited",
                message=rate_limited_message(retry_after),
                remaining_analyses=remaining,
                retry_after=retry_after,
            )

    normalized = replace(
        request,
        website_url=validation.sanitized_url,
        user_question=sanitize_question(request.user_question, settings.max_question_len),
        current_page=request.current_page.strip() or "Homepage",
        product_type=request.product_type.strip() or "website",
    )

    with RequestTimer() as timer:
        result = analyze(
            normalized,
            llm_complete,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            max_suggestion_length=settings.suggestion_length_cap,
        )

    website_id, analysis_id = _persist(store, normalized, result, user_id, demo_session_id)

    log_analysis(
        request_id=request_id,
        session_id=audit_session,
        website_id=website_id,
        analysis_id=analysis_id,
        source=result.source,
        latency_ms=timer.elapsed_ms,
        model=settings.openai_chat_model if result.source == "llm" else "",
    )
    logger.info(
        "Analysis completed",
        extra={"analysis_id": analysis_id, "source": result.source, "latency_ms": timer.elapsed_ms},
    )

    return InsightOutcome(
        status="ok",
        result=result,
        remaining_analyses=None if remaining is None else max(0, remaining - 1),
        website_id=website_id,
        analysis_id=analysis_id,
    )
