"""Tests for the normalization pipeline (split → map → validate → score)."""

import copy

import pytest

from shared.exceptions import AdapterError, RequestTooLargeError, UnsupportedProviderError
from sleep.pipeline import normalize_record, normalize_sleep_data
from tests.conftest import SUBJECT_ID


class TestNormalizeSleepData:
    def test_session_payload(self, session_payload):
        result = normalize_sleep_data("session", session_payload, SUBJECT_ID)
        assert result.provider == "session"
        assert result.records_normalized == 2
        assert result.records_rejected == 0
        assert not result.has_rejections
        first = result.records[0]
        assert first.total_sleep_duration == 25800
        assert first.sleep_efficiency == 91.3
        assert first.efficiency_score == 91.3
        assert first.health_score is not None

    def test_cycle_payload(self, cycle_payload):
        result = normalize_sleep_data("cycle", cycle_payload, SUBJECT_ID)
        assert result.records_normalized == 2
        assert result.records[0].sleep_efficiency == 91.2
        assert result.records[0].sleep_quality_score is None

    def test_bad_session_does_not_block_siblings(self, session_payload):
        payload = copy.deepcopy(session_payload)
        payload["data"][0]["metadata"]["end_time"] = None
        result = normalize_sleep_data("session", payload, SUBJECT_ID)
        assert result.records_rejected == 1
        assert result.records_normalized == 1
        assert result.results[0].status == "rejected"
        assert result.results[0].error["title"] == "Adapter Error"
        assert result.results[1].status == "normalized"

    def test_repeated_session_flagged_duplicate(self, session_payload):
        payload = copy.deepcopy(session_payload)
        payload["data"].append(copy.deepcopy(payload["data"][0]))
        result = normalize_sleep_data("session", payload, SUBJECT_ID)
        assert result.records_normalized == 2
        assert result.records_duplicated == 1
        assert result.results[2].status == "duplicate"
        assert result.results[2].session_id == result.results[0].session_id

    def test_unrecognized_envelope_rejected_not_raised(self):
        result = normalize_sleep_data("cycle", {"unexpected": True}, SUBJECT_ID)
        assert result.records_rejected == 1
        assert result.records == []

    def test_healthcheck_envelope_is_empty(self):
        result = normalize_sleep_data("session", {"type": "healthcheck"}, SUBJECT_ID)
        assert result.results == []
        assert result.records_processed == 0

    def test_non_sleep_webhook_is_empty(self, session_payload):
        payload = {**session_payload, "type": "activity"}
        result = normalize_sleep_data("session", payload, SUBJECT_ID)
        assert result.results == []
        assert result.records_normalized == 0
        assert result.records_rejected == 0

    def test_non_numeric_value_rejected_with_problem_details(self, cycle_payload):
        payload = copy.deepcopy(cycle_payload)
        payload["records"][0]["score"]["stage_summary"]["total_in_bed_time_milli"] = "30600000"
        result = normalize_sleep_data("cycle", payload, SUBJECT_ID)
        assert result.records_rejected == 1
        assert result.records_processed == 1
        error = result.results[0].error
        assert error["type"].endswith("/adapter-error")
        assert error["title"] == "Adapter Error"
        assert error["violations"][0]["field"] == "score.stage_summary.total_in_bed_time_milli"
        assert result.results[1].status == "normalized"

    def test_unknown_provider_raises(self, session_payload):
        with pytest.raises(UnsupportedProviderError):
            normalize_sleep_data("fitbit", session_payload, SUBJECT_ID)

    def test_max_records_enforced(self, session_payload):
        with pytest.raises(RequestTooLargeError):
            normalize_sleep_data("session", session_payload, SUBJECT_ID, max_records=1)

    def test_deterministic(self, session_payload):
        r1 = normalize_sleep_data("session", session_payload, SUBJECT_ID)
        r2 = normalize_sleep_data("session", session_payload, SUBJECT_ID)
        assert r1.records == r2.records


class TestNormalizeRecord:
    def test_single_record_scored(self, cycle_payload):
        record = normalize_record("cycle", cycle_payload["records"][0], SUBJECT_ID)
        assert record.provider_sleep_score == 88
        assert record.efficiency_score == 91.2

    def test_non_numeric_value_raises_adapter_error(self, cycle_payload):
        raw = copy.deepcopy(cycle_payload["records"][0])
        raw["score"]["respiratory_rate"] = "14.5"
        with pytest.raises(AdapterError) as exc_info:
            normalize_record("cycle", raw, SUBJECT_ID)
        assert exc_info.value.field == "score.respiratory_rate"
