"""Shared test fixtures."""

import json
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import structlog

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from challenge.domain.models import ChallengeDefinition, TimeWindow  # noqa: E402
from sleep.domain.models import (  # noqa: E402
    CanonicalSleepMetrics,
    SleepProvider,
    compute_session_id,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SUBJECT_ID = "subject-7f3a"

ENTRY_START = datetime(2024, 3, 1, 0, 0, tzinfo=UTC)
ENTRY_END = datetime(2024, 3, 2, 0, 0, tzinfo=UTC)
WINDOW_START = datetime(2024, 3, 3, 0, 0, tzinfo=UTC)
WINDOW_END = datetime(2024, 3, 10, 0, 0, tzinfo=UTC)


def load_fixture(name: str) -> dict:
    return json.loads((FIXTURES_DIR / name).read_text())


def make_record(
    subject_id: str = SUBJECT_ID,
    night: int = 0,
    provider: SleepProvider = SleepProvider.SESSION,
    **fields,
) -> CanonicalSleepMetrics:
    """A canonical record for the night `night` days after the challenge window opens."""
    start = WINDOW_START + timedelta(days=night, hours=23)
    end = start + timedelta(hours=8)
    return CanonicalSleepMetrics(
        provider=provider,
        subject_id=subject_id,
        session_id=compute_session_id(subject_id, start),
        start_time=start,
        end_time=end,
        **fields,
    )


def make_definition(**overrides) -> ChallengeDefinition:
    data = {
        "metric_field": "sleep_efficiency",
        "aggregation": "average",
        "target_value": 85,
        "comparator": "gte",
        "winner_count": 3,
        "entry_window": TimeWindow(start=ENTRY_START, end=ENTRY_END),
        "challenge_window": TimeWindow(start=WINDOW_START, end=WINDOW_END),
        **overrides,
    }
    return ChallengeDefinition(**data)


@pytest.fixture(autouse=True)
def _uncached_structlog(monkeypatch):
    """Keep structlog from caching bound loggers so capture_logs() works in any test order."""
    original_configure = structlog.configure

    def configure(*args, **kwargs):
        kwargs["cache_logger_on_first_use"] = False
        original_configure(*args, **kwargs)

    monkeypatch.setattr(structlog, "configure", configure)
    yield
    structlog.reset_defaults()


@pytest.fixture
def session_payload():
    return load_fixture("session_sleep_payload.json")


@pytest.fixture
def cycle_payload():
    return load_fixture("cycle_sleep_payload.json")


@pytest.fixture
def subject_id():
    return SUBJECT_ID


@pytest.fixture
def definition():
    return make_definition()


@pytest.fixture
def valid_sleep_record():
    """A fully valid mapped sleep record dict for validation testing."""
    return {
        "provider": SleepProvider.SESSION,
        "subject_id": SUBJECT_ID,
        "start_time": datetime(2024, 3, 14, 23, 0, tzinfo=UTC),
        "end_time": datetime(2024, 3, 15, 7, 0, tzinfo=UTC),
        "total_sleep_duration": 25800,
        "deep_sleep": 5400,
        "light_sleep": 14400,
        "rem_sleep": 5400,
        "awake": 1800,
        "sleep_latency": 600,
        "in_bed_unmeasured": 600,
        "sleep_efficiency": 91.3,
        "provider_sleep_score": 82,
    }
