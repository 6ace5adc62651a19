"""
Tests for the demo page (Streamlit AppTest).

Runtime adapters are patched: fake model, fixed session and client ids,
fresh limiters, tracker bound to the temporary database.
"""

from pathlib import Path
from unittest.mock import patch

import pytest
from streamlit.testing.v1 import AppTest

from insights.demo_session import DemoSessionTracker
from insights.rate_limit import FixedWindowRateLimiter

DEMO_PAGE = str(Path(__file__).resolve().parent.parent / "pages" / "1_demo.py")
REPEATED = "Add customer testimonials above fold"


def repeating_llm(messages, temperature, max_tokens):
    return f"Two ideas, same advice:\n- {REPEATED}\n- {REPEATED}"


@pytest.fixture
def demo_runtime(temp_db):
    """Patch the runtime adapters the page imports."""
    with patch("insights.runtime.completion_fn", return_value=repeating_llm), patch(
        "insights.runtime.demo_session_id", return_value="demo_1700000000000_abcdef123"
    ), patch("insights.runtime.current_client_id", return_value="client_1"), patch(
        "insights.runtime.demo_tracker", return_value=DemoSessionTracker(temp_db)
    ), patch(
        "insights.runtime.analysis_limiter", return_value=FixedWindowRateLimiter(10, 120)
    ), patch(
        "insights.runtime.demo_limiter", return_value=FixedWindowRateLimiter(10, 3600)
    ):
        yield temp_db


def test_page_loads(demo_runtime):
    """Test that the page renders without an analysis."""
    at = AppTest.from_file(DEMO_PAGE, default_timeout=30)
    at.run()

    assert not at.exception


def test_duplicate_suggestions_render(demo_runtime):
    """Test that identical suggestions each get their own button."""
    at = AppTest.from_file(DEMO_PAGE, default_timeout=30)
    at.run()

    at.text_input[0].input("example.com/pricing")
    at.chat_input[0].set_value("How do I build trust?").run()

    assert not at.exception
    assert [b.label for b in at.button].count(REPEATED) == 2
    assert demo_runtime.count_demo_analyses("demo_1700000000000_abcdef123") == 1
