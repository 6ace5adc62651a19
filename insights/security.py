"""
Input sanitization for visitor questions.

Design decisions:
- Control character removal: prevents hidden instructions in the prompt
- Length limiting: prevents token stuffing (and cost overrun)
- No phrase blocklist: questions about "overriding" styles or "ignoring"
  legacy pages are legitimate here, and the question only ever reaches the
  user turn of the prompt

Website URLs have their own validator (url_validation.py).
"""

from __future__ import annotations

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

DEFAULT_QUESTION = "How can I optimize conversions?"


def sanitize_question(q: str | None, max_len: int = 2000) -> str:
    """
    Sanitize a visitor question before it is sent to the model.

    Args:
        q: Visitor's question
        max_len: Maximum allowed length

    Returns:
        Sanitized question, or DEFAULT_QUESTION if nothing is left
    """
    q = (q or "").strip()
    q = _CONTROL_CHARS.sub("", q)
    q = q[:max_len].strip()
    return q or DEFAULT_QUESTION
