"""
Logging configuration for the application.

Design decisions:
- Basic format: Timestamp | Level | Logger | Message
- stdout output: Compatible with container logging (Docker, K8s)
- INFO level default
- Idempotent setup: Safe to call on every Streamlit rerun

SECURITY:
- Application logs should NOT contain visitor questions or model answers
- Use audit_log.py for structured security events

Usage:
    from insights.logging_config import setup_logging
    setup_logging()  # Call once at startup
"""

from __future__ import annotations

import logging
import sys


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure minimal structured-ish logging format.
    Idempotent: won't add duplicate handlers if already configured.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # httpx logs every OpenAI request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
