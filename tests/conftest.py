"""
Test configuration - ensures repo root is in sys.path + isolation guards.

Every test gets its own SENTINEL_HOME and SENTINEL_DB under tmp_path so no
test ever reads or writes ~/.activity_sentinel.
"""

import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import sentinel.* and tests.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from sentinel.config import MonitorConfig  # noqa: E402
from sentinel.models import ActivityKind  # noqa: E402
from sentinel.watchlist import WatchlistRegistry  # noqa: E402
from tests.fixtures import (  # noqa: E402
    FakeClock,
    FakeDirectory,
    InMemoryActivityLog,
    RecordingPublisher,
)

_SENTINEL_ENV = (
    "SENTINEL_WINDOW_SECONDS",
    "SENTINEL_INTERVAL_SECONDS",
    "SENTINEL_BACKOFF_SECONDS",
    "SENTINEL_COUNT_THRESHOLD",
    "SENTINEL_SCORE_THRESHOLD",
    "SENTINEL_KNOWN_KINDS",
    "SENTINEL_HIGH_RISK_KINDS",
    "SENTINEL_QUERY_TIMEOUT_SECONDS",
    "SENTINEL_ALERT_WEBHOOK_URL",
)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point SENTINEL_HOME / SENTINEL_DB at a temp dir and clear config overrides."""
    home = tmp_path / "sentinel_home"
    monkeypatch.setenv("SENTINEL_HOME", str(home))
    monkeypatch.setenv("SENTINEL_DB", str(home / "data" / "sentinel.db"))
    for var in _SENTINEL_ENV:
        monkeypatch.delenv(var, raising=False)
    return home


# =============================================================================
# ENGINE FIXTURES
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scenario_config():
    """threshold=10, window=15m, known={view,update,delete,authentication}, high-risk={delete}."""
    return MonitorConfig(
        window_seconds=15 * 60,
        count_threshold=10,
        score_threshold=0.7,
        known_kinds=frozenset(
            {
                ActivityKind.VIEW,
                ActivityKind.UPDATE,
                ActivityKind.DELETE,
                ActivityKind.AUTHENTICATION,
            }
        ),
        high_risk_kinds=frozenset({ActivityKind.DELETE}),
    )


@pytest.fixture
def activity_log(clock):
    return InMemoryActivityLog(clock)


@pytest.fixture
def directory():
    return FakeDirectory(
        {
            "acct-x": ("xavier", "analyst"),
            "acct-y": ("yolanda", "admin"),
            "acct-z": ("zed", None),
        }
    )


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def db_file(tmp_path):
    return tmp_path / "engine.db"


@pytest.fixture
def registry(db_file, clock):
    return WatchlistRegistry(db_file, clock=clock)


@pytest.fixture
def window():
    return timedelta(minutes=15)
