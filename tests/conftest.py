"""
Shared fixtures.

- audit_logger: every test gets a mocked audit logger, so no test writes to
  data/audit.jsonl. Tests that check audit events inspect its .info calls.
- temp_db: empty SQLite database in a temporary directory.
"""

import json
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from insights import db as db_module


@pytest.fixture(autouse=True)
def audit_logger():
    """Mock the audit logger for every test."""
    logger = MagicMock()
    with patch("insights.audit_log._get_audit_logger", return_value=logger):
        yield logger


@pytest.fixture
def audit_events(audit_logger):
    """Decoded audit events emitted so far (call it to read)."""

    def _events():
        return [json.loads(c.args[0]) for c in audit_logger.info.call_args_list]

    return _events


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        # Patch where it's used (db module), not where defined (settings)
        with patch.object(db_module, "SQLITE_PATH", db_path):
            db_module.init_db()
            yield db_module
