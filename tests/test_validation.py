"""Parametrized tests for the 7 canonical validation rules."""

from datetime import UTC, datetime

import pytest

from shared.exceptions import SleepRecordValidationError
from sleep.domain.models import compute_session_id
from sleep.domain.validation import build_canonical_metrics, validate_sleep_record
from tests.conftest import SUBJECT_ID


@pytest.mark.parametrize(
    "overrides, expected_reason",
    [
        # Rule 1: Required identity
        ({"subject_id": None}, "missing_subject_id"),
        ({"start_time": None}, "missing_start_time"),
        # Rule 2: Non-negative durations
        ({"deep_sleep": -5}, "negative_duration"),
        ({"awake": -1}, "negative_duration"),
        ({"sleep_latency": -60}, "negative_duration"),
        # Rule 3: Stage sum consistency
        (
            {"deep_sleep": 9000, "light_sleep": 14400, "rem_sleep": 5400},
            "stage_sum_exceeds_total",
        ),
        # Rule 4: Parseable, timezone-aware timestamps
        ({"start_time": "last tuesday"}, "unparseable_timestamp"),
        ({"start_time": datetime(2024, 3, 14, 23, 0)}, "missing_timezone"),
        # Rule 5: Session ordering
        (
            {
                "start_time": datetime(2024, 3, 15, 7, 0, tzinfo=UTC),
                "end_time": datetime(2024, 3, 14, 23, 0, tzinfo=UTC),
            },
            "session_order_invalid",
        ),
        # Rule 6: Known provider
        ({"provider": "fitbit"}, "unknown_provider"),
        # Rule 7: Provider score range
        ({"provider_sleep_score": 101}, "provider_score_out_of_range"),
        ({"provider_sleep_score": -1}, "provider_score_out_of_range"),
    ],
    ids=[
        "missing_subject_id",
        "missing_start_time",
        "negative_deep_sleep",
        "negative_awake",
        "negative_latency",
        "stage_sum_exceeds_total",
        "unparseable_timestamp",
        "naive_timestamp",
        "end_before_start",
        "unknown_provider",
        "score_above_100",
        "score_below_0",
    ],
)
def test_validation_rule(valid_sleep_record, overrides, expected_reason):
    record = {**valid_sleep_record, **overrides}
    errors = validate_sleep_record(record)
    reasons = [e.reason for e in errors]
    assert expected_reason in reasons


def test_valid_record_passes(valid_sleep_record):
    assert validate_sleep_record(valid_sleep_record) == []


def test_stage_sum_within_tolerance_passes(valid_sleep_record):
    # 27000 <= 25800 * 1.05
    record = {**valid_sleep_record, "deep_sleep": 7200}
    assert validate_sleep_record(record) == []


def test_efficiency_out_of_range_is_not_a_violation(valid_sleep_record):
    record = {**valid_sleep_record, "sleep_efficiency": 104.0}
    assert validate_sleep_record(record) == []


def test_iso_string_timestamps_accepted(valid_sleep_record):
    record = {
        **valid_sleep_record,
        "start_time": "2024-03-14T23:00:00+01:00",
        "end_time": "2024-03-15T07:00:00+01:00",
    }
    assert validate_sleep_record(record) == []


def test_multiple_violations_reported(valid_sleep_record):
    record = {**valid_sleep_record, "deep_sleep": -1, "provider": "fitbit"}
    errors = validate_sleep_record(record)
    assert len(errors) >= 2


class TestBuildCanonicalMetrics:
    def test_builds_record_with_session_id(self, valid_sleep_record):
        record = build_canonical_metrics(valid_sleep_record)
        assert record.session_id == compute_session_id(SUBJECT_ID, valid_sleep_record["start_time"])
        assert record.total_sleep_duration == 25800

    def test_raises_naming_offending_fields(self, valid_sleep_record):
        with pytest.raises(SleepRecordValidationError) as exc_info:
            build_canonical_metrics({**valid_sleep_record, "deep_sleep": -1, "provider": "x"})
        assert set(exc_info.value.fields) == {"deep_sleep", "provider"}
        assert exc_info.value.status == 422

    def test_clamps_rather_than_rejects_efficiency(self, valid_sleep_record):
        record = build_canonical_metrics({**valid_sleep_record, "sleep_efficiency": 100.2})
        assert record.sleep_efficiency == 100.0

    def test_model_error_converted(self, valid_sleep_record):
        with pytest.raises(SleepRecordValidationError) as exc_info:
            build_canonical_metrics({**valid_sleep_record, "avg_heart_rate": "fast"})
        assert "avg_heart_rate" in exc_info.value.fields
