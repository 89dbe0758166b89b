import pytest

from bible_tracker.models import CompletionRecord
from bible_tracker.schedule import load_default_schedule


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_tracker.db")
    return db_path


@pytest.fixture
def plan():
    """The bundled 12-reading plan, 2025-12-23 through 2026-01-09."""
    return load_default_schedule()


@pytest.fixture
def done():
    """Build completion records: done("John", "2025-12-23", ...)."""
    def _make(user_name, *dates, catchup=False, completed_on="2026-01-02T08:30:00"):
        return [
            CompletionRecord(
                user_name=user_name, date=d, portion="Genesis", day="",
                completed_on=completed_on, catchup=catchup,
            )
            for d in dates
        ]
    return _make
