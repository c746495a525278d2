"""Derived score calculator.

Four independent pure functions over one canonical record. Each returns a
float in [0, 100], or None when a required input is None: missing data is
"insufficient data", never zero.

Every term is clamped into [0, 100] before weighting, so out-of-range
physiology cannot push a composite outside [0, 100]. Weights come from an
explicit immutable ScoreWeights table passed at call time.
"""

from pydantic import BaseModel

from sleep.domain.models import CanonicalSleepMetrics

SCORE_MIN = 0.0
SCORE_MAX = 100.0


class ScoreWeights(BaseModel):
    """Immutable weight table for the composite scores."""

    model_config = {"frozen": True}

    # sleep quality
    quality_efficiency: float = 0.30
    quality_deep_ratio: float = 0.25
    quality_rem_ratio: float = 0.25
    quality_latency: float = 0.20
    # recovery
    recovery_hrv: float = 0.6
    recovery_readiness: float = 0.4
    # health
    health_heart_rate: float = 0.25
    health_oxygen: float = 0.25
    health_breathing: float = 0.25
    health_snoring: float = 0.25


DEFAULT_SCORE_WEIGHTS = ScoreWeights()

WEIGHT_PROFILES: dict[str, ScoreWeights] = {"default": DEFAULT_SCORE_WEIGHTS}


def _clamp(value: float) -> float:
    return min(SCORE_MAX, max(SCORE_MIN, value))


def sleep_quality_score(
    m: CanonicalSleepMetrics, weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS
) -> float | None:
    inputs = (m.sleep_efficiency, m.deep_sleep, m.rem_sleep, m.total_sleep_duration, m.sleep_latency)
    if any(v is None for v in inputs) or m.total_sleep_duration == 0:
        return None

    latency_minutes = m.sleep_latency / 60
    score = (
        weights.quality_efficiency * _clamp(m.sleep_efficiency)
        + weights.quality_deep_ratio * _clamp(100 * m.deep_sleep / m.total_sleep_duration)
        + weights.quality_rem_ratio * _clamp(100 * m.rem_sleep / m.total_sleep_duration)
        + weights.quality_latency * _clamp(100 - 10 * latency_minutes)
    )
    return _clamp(score)


def recovery_score(
    m: CanonicalSleepMetrics, weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS
) -> float | None:
    if m.readiness_score is None or m.avg_hrv_rmssd is None:
        return None
    # HRV is scored against a 100 ms reference
    hrv_term = _clamp(min(100.0, 100 * m.avg_hrv_rmssd / 100))
    score = weights.recovery_hrv * hrv_term + weights.recovery_readiness * _clamp(m.readiness_score)
    return _clamp(score)


def efficiency_score(m: CanonicalSleepMetrics) -> float | None:
    """Identity on sleep_efficiency; a separate field because other challenges consume it."""
    return m.sleep_efficiency


def health_score(
    m: CanonicalSleepMetrics, weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS
) -> float | None:
    inputs = (m.avg_heart_rate, m.avg_oxygen_saturation, m.avg_breathing_rate, m.snoring_duration)
    if any(v is None for v in inputs):
        return None

    snoring_minutes = m.snoring_duration / 60
    score = (
        weights.health_heart_rate * _clamp(100 - 2 * abs(m.avg_heart_rate - 60))
        + weights.health_oxygen * _clamp(10 * (m.avg_oxygen_saturation - 90))
        + weights.health_breathing * _clamp(100 - 5 * abs(m.avg_breathing_rate - 12))
        + weights.health_snoring * _clamp(100 - 10 * snoring_minutes)
    )
    return _clamp(score)


def score_metrics(
    m: CanonicalSleepMetrics, weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS
) -> CanonicalSleepMetrics:
    """Return a new record carrying all four derived scores."""
    return m.model_copy(
        update={
            "sleep_quality_score": sleep_quality_score(m, weights),
            "recovery_score": recovery_score(m, weights),
            "efficiency_score": efficiency_score(m),
            "health_score": health_score(m, weights),
        }
    )
