"""
Suggestion extraction from free-form model output.

Turns an analysis text into a short list of actionable items for the quick
reply chips under the answer.

Design decisions:
- Line-based: only bulleted ("-", "•", "*") or numbered ("1.") lines qualify
- Minimum length filter: drops near-empty bullets such as "- Tips:"
- Deterministic fallback: when nothing qualifies, a fixed generic list is
  returned (this is the designed default, not an error)

Two length policies exist for historical reasons: the chat-side extractor
keeps items of any length, the analysis endpoint caps them at 100 characters.
Both are exposed as constants and the caller picks one (settings decides for
the app).
"""

from __future__ import annotations

import re
from collections.abc import Sequence

MAX_SUGGESTIONS = 4
MIN_SUGGESTION_LENGTH = 10
CLIENT_MAX_SUGGESTION_LENGTH: int | None = None
SERVER_MAX_SUGGESTION_LENGTH: int | None = 100

FALLBACK_SUGGESTIONS: tuple[str, ...] = (
    "Analyze page loading speed",
    "Review call-to-action placement",
    "Check mobile responsiveness",
    "Optimize headline clarity",
)

_BULLET = re.compile(r"^[-•*]\s+")
_NUMBERED = re.compile(r"^\d+\.\s+")


def _strip_marker(line: str) -> str | None:
    """Return the line without its list marker, or None if it has none."""
    m = _BULLET.match(line) or _NUMBERED.match(line)
    if not m:
        return None
    return line[m.end():]


def extract_suggestions(
    text: str | None,
    *,
    max_count: int = MAX_SUGGESTIONS,
    min_length: int = MIN_SUGGESTION_LENGTH,
    max_length: int | None = CLIENT_MAX_SUGGESTION_LENGTH,
    fallback: Sequence[str] = FALLBACK_SUGGESTIONS,
) -> list[str]:
    """
    Extract list items from text as suggestions.

    Args:
        text: Model output or canned analysis
        max_count: Maximum number of suggestions returned
        min_length: Items must be strictly longer than this
        max_length: Items longer than this are dropped (None = unbounded)
        fallback: Returned (as a new list) when no line qualifies

    Returns:
        Suggestions in original order, at most max_count items
    """
    suggestions: list[str] = []

    for raw_line in (text or "").splitlines():
        item = _strip_marker(raw_line.strip())
        if item is None:
            continue
        if len(item) <= min_length:
            continue
        if max_length is not None and len(item) > max_length:
            continue
        suggestions.append(item)

    if not suggestions:
        return list(fallback)[:max_count]

    return suggestions[:max_count]
