"""
Analysis core - website optimization insights with a canned fallback.

Pure logic with the language model injected as a function, so it can be
tested without OpenAI or Streamlit (adapters live in runtime.py).

Key design decisions:
- One attempt at the model, no retries: a failed call (network, auth, quota,
  timeout) immediately switches to the fallback. The chat UI favours latency.
- Fallback is deterministic: keyword match on the current page name
  (pricing / product / home / generic) plus a context sentence looked up by
  (product_type, page).
- Suggestions are always extracted from the returned content, whichever path
  produced it.
- A missing model (no API key configured) is treated like a failed call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Literal

from .suggestions import CLIENT_MAX_SUGGESTION_LENGTH, extract_suggestions

logger = logging.getLogger(__name__)

# (messages, temperature, max_tokens) -> completion text
LLMCompleteFn = Callable[[list[dict[str, str]], float, int], str]

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000

EMPTY_COMPLETION = "Unable to analyze the website at this time."

_SYSTEM_PROMPT = """You are an expert website optimization consultant. Analyze the provided website and current page context to give actionable insights.

Website: {website_url}
Current Page: {current_page}
Product Type: {product_type}

Provide specific, actionable recommendations for improving:
- User experience and conversion rates
- Content optimization
- Design and layout improvements
- Call-to-action effectiveness
- Trust signals and credibility
- Mobile responsiveness
- Page performance

Be specific and practical in your suggestions."""

GENERIC_PAGE_CONTEXT = "general page optimization, user experience, conversion elements"

PAGE_CONTEXTS: dict[str, dict[str, str]] = {
    "ecommerce": {
        "Homepage": "homepage conversion, hero section effectiveness, navigation clarity",
        "Product": "product presentation, add-to-cart optimization, review display",
        "Pricing": "pricing strategy, plan comparison, checkout flow",
        "Cart": "cart abandonment, checkout process, payment options",
        "About": "trust building, brand story, customer testimonials",
    },
    "saas": {
        "Homepage": "value proposition clarity, trial signup, feature highlights",
        "Pricing": "plan comparison, trial-to-paid conversion, pricing psychology",
        "Features": "feature presentation, benefit clarity, demo requests",
        "About": "team credibility, company story, customer success",
        "Contact": "lead generation, sales funnel, support accessibility",
    },
    "blog": {
        "Homepage": "content discovery, subscription conversion, navigation",
        "Post": "content engagement, related posts, sharing optimization",
        "About": "author credibility, newsletter signup, personal brand",
        "Contact": "reader engagement, collaboration opportunities",
    },
}

_PRICING_BLOCK = (
    "**Pricing Page Optimization:**\n"
    "• Test different pricing layouts (grid vs. table)\n"
    "• Highlight recommended plan with visual emphasis\n"
    "• Add social proof and testimonials\n"
    "• Simplify plan comparison with clear differentiators\n"
    "• Optimize CTA buttons for trial/purchase conversion"
)
_PRODUCT_BLOCK = (
    "**Product Page Optimization:**\n"
    "• Improve product images and gallery\n"
    "• Optimize product descriptions for conversion\n"
    "• Add customer reviews and ratings\n"
    "• Implement urgency elements (stock levels, time-limited offers)\n"
    "• Enhance add-to-cart visibility and experience"
)
_HOME_BLOCK = (
    "**Homepage Optimization:**\n"
    "• Strengthen value proposition in hero section\n"
    "• Improve navigation and user journey clarity\n"
    "• Add trust signals and social proof\n"
    "• Optimize call-to-action placement and copy\n"
    "• Enhance mobile responsiveness and load speed"
)
_GENERIC_BLOCK = (
    "**{page} Page Optimization:**\n"
    "• Analyze page-specific conversion goals\n"
    "• Improve content clarity and user flow\n"
    "• Optimize call-to-action elements\n"
    "• Enhance visual hierarchy and readability\n"
    "• Test different layout variations for better performance"
)

AnalysisSource = Literal["llm", "fallback"]


@dataclass(frozen=True)
class AnalysisRequest:
    """What the visitor asked about."""

    website_url: str
    current_page: str
    product_type: str
    user_question: str
    industry: str = "general"
    analysis_type: str = "initial"


@dataclass(frozen=True)
class AnalysisResult:
    """Insight returned to the chat."""

    content: str
    suggestions: list[str]
    source: AnalysisSource
    recommendations: list[dict[str, str]] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    analysis_type: str = "initial"
    timestamp: str = ""


# ============================================================================
# PURE HELPERS
# ============================================================================


def page_context(product_type: str, page_name: str) -> str:
    """Context sentence for (product_type, page), generic when unknown."""
    return PAGE_CONTEXTS.get(product_type, {}).get(page_name, GENERIC_PAGE_CONTEXT)


def build_messages(request: AnalysisRequest) -> list[dict[str, str]]:
    """
    Build the system + user messages for the completion call.

    The question goes in the user turn only; page facts go in the system turn.
    """
    system = _SYSTEM_PROMPT.format(
        website_url=request.website_url,
        current_page=request.current_page,
        product_type=request.product_type,
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": request.user_question},
    ]


def fallback_content(request: AnalysisRequest) -> str:
    """
    Deterministic analysis text used when the model is unavailable.

    Block chosen by case-insensitive substring match on the page name:
    "pricing", then "product", then "home", else generic.
    """
    page = request.current_page
    context = page_context(request.product_type, page)
    content = f"Looking at your **{page}** page, I can help you improve {context}.\n\n"

    lowered = page.lower()
    if "pricing" in lowered:
        content += _PRICING_BLOCK
    elif "product" in lowered:
        content += _PRODUCT_BLOCK
    elif "home" in lowered:
        content += _HOME_BLOCK
    else:
        content += _GENERIC_BLOCK.format(page=page)
    return content


def build_recommendations(page: str, product_type: str) -> list[dict[str, str]]:
    """
    Four categorized recommendations for the report view.

    Pricing and product pages get page-specific wording for the first two.
    """
    recommendations = [
        {
            "category": "User Experience",
            "recommendation": f"Optimize {page.lower()} page navigation and user flow",
            "priority": "high",
        },
        {
            "category": "Conversion",
            "recommendation": "Test different call-to-action placements and copy",
            "priority": "high",
        },
        {
            "category": "Performance",
            "recommendation": "Improve page loading speed and mobile responsiveness",
            "priority": "medium",
        },
        {
            "category": "Trust",
            "recommendation": "Add customer testimonials and trust badges",
            "priority": "medium",
        },
    ]

    lowered = page.lower()
    if "pricing" in lowered:
        recommendations[0]["recommendation"] = (
            "Implement pricing psychology techniques (anchoring, social proof)"
        )
        recommendations[1]["recommendation"] = (
            "Optimize trial-to-paid conversion with compelling CTAs"
        )
    elif "product" in lowered:
        recommendations[0]["recommendation"] = (
            "Enhance product presentation with videos and interactive elements"
        )
        recommendations[1]["recommendation"] = (
            "Optimize add-to-cart/signup flow and reduce friction"
        )
    return recommendations


def _metrics(request: AnalysisRequest, source: AnalysisSource) -> dict[str, Any]:
    if source == "llm":
        base = {"urgency": "high", "impact": "high", "difficulty": "medium", "estimatedImpact": "25-40%"}
    else:
        base = {"urgency": "medium", "impact": "medium", "difficulty": "low", "estimatedImpact": "15-25%"}
    return {
        **base,
        "analysisType": request.analysis_type,
        "industry": request.industry,
        "pageType": request.current_page,
    }


# ============================================================================
# ORCHESTRATION
# ============================================================================


def analyze(
    request: AnalysisRequest,
    llm_complete: LLMCompleteFn | None,
    *,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    max_suggestion_length: int | None = CLIENT_MAX_SUGGESTION_LENGTH,
) -> AnalysisResult:
    """
    Produce optimization insights for a page.

    Args:
        request: Website, page, product type and question
        llm_complete: Completion function, or None when no model is configured
        temperature: Sampling temperature for the completion
        max_tokens: Completion length bound
        max_suggestion_length: Cap passed to the suggestion extractor

    Returns:
        AnalysisResult; never raises for model failures
    """
    source: AnalysisSource = "fallback"
    content = ""

    if llm_complete is not None:
        try:
            content = llm_complete(build_messages(request), temperature, max_tokens)
            content = (content or "").strip() or EMPTY_COMPLETION
            source = "llm"
        except Exception:
            logger.warning(
                "LLM analysis failed, using fallback",
                exc_info=True,
                extra={"error_code": "LLM_ERROR"},
            )

    if source == "fallback":
        content = fallback_content(request)

    suggestions = extract_suggestions(content, max_length=max_suggestion_length)

    return AnalysisResult(
        content=content,
        suggestions=suggestions,
        source=source,
        recommendations=build_recommendations(request.current_page, request.product_type),
        metrics=_metrics(request, source),
        analysis_type=request.analysis_type,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
