"""
Pytest configuration and fixtures for Casebook tests.
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add src directory to path so imports work without an editable install
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from casebook.database.database import Database  # noqa: E402
from casebook.datatypes.case_datatypes import CaseDraft, CaseType  # noqa: E402

GUILD_ID = 111111111111111111
OTHER_GUILD_ID = 222222222222222222
USER_ID = 333333333333333333
MODERATOR_ID = 444444444444444444


@pytest_asyncio.fixture
async def case_db(tmp_path):
    """An initialized Database backed by a temporary SQLite file."""
    db = Database(tmp_path / "cases.db")
    assert await db.initialize() is True
    yield db
    await db.shutdown()


@pytest.fixture
def make_draft():
    """Build a CaseDraft with sensible defaults for the test guild."""
    def _make(case_type=CaseType.WARN, **overrides):
        values = {
            "guild_id": GUILD_ID,
            "case_type": case_type,
            "user_id": USER_ID,
            "moderator_id": MODERATOR_ID,
            "reason": "Spamming in general",
        }
        values.update(overrides)
        return CaseDraft(**values)
    return _make
