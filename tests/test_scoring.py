"""Tests for the derived score calculator."""

import pytest

from sleep.scoring import (
    DEFAULT_SCORE_WEIGHTS,
    ScoreWeights,
    efficiency_score,
    health_score,
    recovery_score,
    score_metrics,
    sleep_quality_score,
)
from tests.conftest import make_record


@pytest.fixture
def full_record():
    return make_record(
        total_sleep_duration=25800,
        deep_sleep=5400,
        light_sleep=14400,
        rem_sleep=5400,
        sleep_latency=600,
        sleep_efficiency=91.3,
        avg_hrv_rmssd=62.0,
        readiness_score=78,
        avg_heart_rate=58.0,
        avg_oxygen_saturation=97.0,
        avg_breathing_rate=14.0,
        snoring_duration=120,
    )


class TestSleepQualityScore:
    def test_weighted_formula(self, full_record):
        # 0.30*91.3 + 0.25*20.93 + 0.25*20.93 + 0.20*0 (10 min latency)
        expected = 0.30 * 91.3 + 0.5 * (100 * 5400 / 25800)
        assert sleep_quality_score(full_record) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "missing", ["sleep_efficiency", "deep_sleep", "rem_sleep", "sleep_latency"]
    )
    def test_none_when_input_missing(self, full_record, missing):
        assert sleep_quality_score(full_record.model_copy(update={missing: None})) is None

    def test_none_when_total_is_zero(self, full_record):
        record = full_record.model_copy(update={"total_sleep_duration": 0})
        assert sleep_quality_score(record) is None

    def test_instant_sleep_scores_full_latency_term(self, full_record):
        record = full_record.model_copy(update={"sleep_latency": 0})
        assert sleep_quality_score(record) == pytest.approx(
            sleep_quality_score(full_record) + 0.20 * 100
        )


class TestRecoveryScore:
    def test_weighted_formula(self, full_record):
        assert recovery_score(full_record) == pytest.approx(0.6 * 62 + 0.4 * 78)

    def test_hrv_capped_at_reference(self, full_record):
        record = full_record.model_copy(update={"avg_hrv_rmssd": 180.0, "readiness_score": 100})
        assert recovery_score(record) == pytest.approx(100.0)

    @pytest.mark.parametrize("missing", ["avg_hrv_rmssd", "readiness_score"])
    def test_none_when_input_missing(self, full_record, missing):
        assert recovery_score(full_record.model_copy(update={missing: None})) is None


class TestEfficiencyScore:
    def test_identity(self, full_record):
        assert efficiency_score(full_record) == 91.3

    def test_none_passthrough(self, full_record):
        assert efficiency_score(full_record.model_copy(update={"sleep_efficiency": None})) is None


class TestHealthScore:
    def test_weighted_formula(self, full_record):
        # heart 96, oxygen 70, breathing 90, snoring 80
        assert health_score(full_record) == pytest.approx(84.0)

    @pytest.mark.parametrize(
        "missing",
        ["avg_heart_rate", "avg_oxygen_saturation", "avg_breathing_rate", "snoring_duration"],
    )
    def test_none_when_input_missing(self, full_record, missing):
        assert health_score(full_record.model_copy(update={missing: None})) is None

    def test_out_of_range_physiology_stays_in_bounds(self, full_record):
        record = full_record.model_copy(
            update={
                "avg_heart_rate": 200.0,
                "avg_oxygen_saturation": 150.0,
                "avg_breathing_rate": 60.0,
                "snoring_duration": 0.0,
            }
        )
        # heart 0, oxygen clamped to 100, breathing 0, snoring 100
        assert health_score(record) == pytest.approx(50.0)


class TestScoreMetrics:
    def test_attaches_all_scores(self, full_record):
        scored = score_metrics(full_record)
        assert scored.sleep_quality_score == sleep_quality_score(full_record)
        assert scored.recovery_score == recovery_score(full_record)
        assert scored.efficiency_score == 91.3
        assert scored.health_score == pytest.approx(84.0)

    def test_original_record_unchanged(self, full_record):
        score_metrics(full_record)
        assert full_record.health_score is None

    def test_sparse_record_scores_none(self):
        scored = score_metrics(make_record(sleep_efficiency=88.0))
        assert scored.efficiency_score == 88.0
        assert scored.sleep_quality_score is None
        assert scored.recovery_score is None
        assert scored.health_score is None

    def test_deterministic(self, full_record):
        assert score_metrics(full_record) == score_metrics(full_record)

    def test_custom_weights(self, full_record):
        weights = ScoreWeights(recovery_hrv=1.0, recovery_readiness=0.0)
        assert recovery_score(full_record, weights) == pytest.approx(62.0)
        assert recovery_score(full_record, DEFAULT_SCORE_WEIGHTS) != pytest.approx(62.0)

    def test_every_score_within_bounds(self, full_record):
        scored = score_metrics(full_record)
        for value in (
            scored.sleep_quality_score,
            scored.recovery_score,
            scored.efficiency_score,
            scored.health_score,
        ):
            assert 0.0 <= value <= 100.0
