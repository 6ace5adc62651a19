"""
Tests for the analysis core.

All tests use fake completion functions: no OpenAI, no Streamlit.

Tests cover:
- Prompt construction
- Model path (content, suggestions, source)
- Fallback path (no model, failing model) and its page keyword matching
- Recommendations and metrics
"""

from insights.analysis import (
    EMPTY_COMPLETION,
    GENERIC_PAGE_CONTEXT,
    AnalysisRequest,
    analyze,
    build_messages,
    build_recommendations,
    fallback_content,
    page_context,
)
from insights.suggestions import FALLBACK_SUGGESTIONS


def _request(page="Pricing", product_type="saas", question="How do I get more trials?"):
    return AnalysisRequest(
        website_url="https://example.com/pricing",
        current_page=page,
        product_type=product_type,
        user_question=question,
    )


def fake_llm(answer):
    calls = []

    def _complete(messages, temperature, max_tokens):
        calls.append((messages, temperature, max_tokens))
        return answer

    _complete.calls = calls
    return _complete


def failing_llm(messages, temperature, max_tokens):
    raise TimeoutError("Request timed out")


# ============================================================================
# PROMPT
# ============================================================================


def test_build_messages_puts_context_in_system_turn():
    """Test that page facts go to the system turn and the question to the user turn."""
    messages = build_messages(_request())

    assert [m["role"] for m in messages] == ["system", "user"]
    assert "Website: https://example.com/pricing" in messages[0]["content"]
    assert "Current Page: Pricing" in messages[0]["content"]
    assert "Product Type: saas" in messages[0]["content"]
    assert messages[1]["content"] == "How do I get more trials?"


def test_page_context_lookup():
    """Test known and unknown (product_type, page) pairs."""
    assert page_context("saas", "Pricing") == "plan comparison, trial-to-paid conversion, pricing psychology"
    assert page_context("ecommerce", "Cart").startswith("cart abandonment")
    assert page_context("saas", "Cart") == GENERIC_PAGE_CONTEXT
    assert page_context("unknown", "Homepage") == GENERIC_PAGE_CONTEXT


# ============================================================================
# MODEL PATH
# ============================================================================


def test_llm_answer_is_used():
    """Test that a successful completion is returned with extracted suggestions."""
    answer = (
        "Here is what I would change.\n\n"
        "- Highlight the most popular plan\n"
        "- Add an annual billing toggle\n"
    )
    llm = fake_llm(answer)

    result = analyze(_request(), llm, temperature=0.2, max_tokens=321)

    assert result.source == "llm"
    assert result.content == answer.strip()
    assert result.suggestions == ["Highlight the most popular plan", "Add an annual billing toggle"]
    assert llm.calls[0][1:] == (0.2, 321)


def test_llm_answer_without_list_gets_fallback_suggestions():
    """Test that prose-only answers still come with suggestions."""
    result = analyze(_request(), fake_llm("Looks good overall."))

    assert result.source == "llm"
    assert result.suggestions == list(FALLBACK_SUGGESTIONS)


def test_empty_completion_is_replaced():
    """Test that an empty completion yields the fixed 'unable' message."""
    result = analyze(_request(), fake_llm("   "))

    assert result.source == "llm"
    assert result.content == EMPTY_COMPLETION


def test_suggestion_cap_is_applied():
    """Test that max_suggestion_length drops long items."""
    answer = "- " + "a" * 120 + "\n- Keep this one short enough"

    result = analyze(_request(), fake_llm(answer), max_suggestion_length=100)

    assert result.suggestions == ["Keep this one short enough"]


# ============================================================================
# FALLBACK PATH
# ============================================================================


def test_failing_llm_uses_fallback(caplog):
    """Test that a model error switches to the canned analysis."""
    result = analyze(_request(), failing_llm)

    assert result.source == "fallback"
    assert "**Pricing Page Optimization:**" in result.content
    assert "LLM analysis failed" in caplog.text


def test_no_llm_uses_fallback():
    """Test that a missing model (no API key) uses the canned analysis."""
    result = analyze(_request(page="Homepage", product_type="blog"), None)

    assert result.source == "fallback"
    assert result.content.startswith(
        "Looking at your **Homepage** page, I can help you improve "
        "content discovery, subscription conversion, navigation."
    )
    assert "**Homepage Optimization:**" in result.content


def test_fallback_suggestions_come_from_bullets():
    """Test that the first four bullet lines of the canned text become suggestions."""
    result = analyze(_request(), None)

    assert result.suggestions == [
        "Test different pricing layouts (grid vs. table)",
        "Highlight recommended plan with visual emphasis",
        "Add social proof and testimonials",
        "Simplify plan comparison with clear differentiators",
    ]


def test_fallback_block_keyword_matching():
    """Test the pricing / product / home / generic block selection."""
    assert "**Pricing Page Optimization:**" in fallback_content(_request(page="Enterprise pricing"))
    assert "**Product Page Optimization:**" in fallback_content(_request(page="Product"))
    assert "**Homepage Optimization:**" in fallback_content(_request(page="HOME"))
    generic = fallback_content(_request(page="Contact"))
    assert "**Contact Page Optimization:**" in generic
    assert "Analyze page-specific conversion goals" in generic


def test_fallback_is_deterministic():
    """Test that the same request always gives the same canned content."""
    assert fallback_content(_request()) == fallback_content(_request())


# ============================================================================
# RECOMMENDATIONS AND METRICS
# ============================================================================


def test_recommendations_generic():
    """Test the four default categories and priorities."""
    recs = build_recommendations("About", "saas")

    assert [r["category"] for r in recs] == ["User Experience", "Conversion", "Performance", "Trust"]
    assert [r["priority"] for r in recs] == ["high", "high", "medium", "medium"]
    assert recs[0]["recommendation"] == "Optimize about page navigation and user flow"


def test_recommendations_pricing_and_product():
    """Test page-specific wording for pricing and product pages."""
    pricing = build_recommendations("Pricing", "saas")
    product = build_recommendations("Product", "ecommerce")

    assert "pricing psychology" in pricing[0]["recommendation"]
    assert "trial-to-paid" in pricing[1]["recommendation"]
    assert "product presentation" in product[0]["recommendation"]
    assert "add-to-cart" in product[1]["recommendation"]


def test_metrics_depend_on_source():
    """Test that model answers are rated higher impact than the canned one."""
    llm_result = analyze(_request(), fake_llm("- A fine suggestion here"))
    fallback_result = analyze(_request(), None)

    assert llm_result.metrics["estimatedImpact"] == "25-40%"
    assert fallback_result.metrics["estimatedImpact"] == "15-25%"
    assert fallback_result.metrics["pageType"] == "Pricing"
    assert fallback_result.metrics["analysisType"] == "initial"
    assert fallback_result.timestamp
