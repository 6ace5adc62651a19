#!/usr/bin/env python3
"""
Purge stale anonymous demo data.

Removes demo-owned websites (with their analyses, messages and reports)
whose last activity is older than the given age. Signed-in users' data is
never touched.

Usage:
    python scripts/cleanup_demo_data.py            # older than 2 demo windows
    python scripts/cleanup_demo_data.py --hours 72

Intended for a daily cron job next to the Streamlit app.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv  # noqa: E402

load_dotenv()

from insights import db  # noqa: E402
from insights.logging_config import setup_logging  # noqa: E402
from insights.settings import settings  # noqa: E402

logger = logging.getLogger("cleanup_demo_data")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Delete stale demo session data.")
    parser.add_argument(
        "--hours",
        type=int,
        default=2 * settings.demo_session_hours,
        help="Minimum age in hours of the demo data to delete",
    )
    args = parser.parse_args(argv)

    setup_logging()
    db.init_db()

    removed = db.cleanup_demo_data(older_than_hours=args.hours)
    logger.info("Demo cleanup done", extra={"websites_removed": removed, "older_than_hours": args.hours})
    print(f"Removed {removed} demo website(s) older than {args.hours}h")
    return 0


if __name__ == "__main__":
    sys.exit(main())
