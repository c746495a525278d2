"""Enumerated challenge metric fields and their accessors.

A challenge names the canonical field it scores. Only fields listed here can
be named, and every member has exactly one accessor. The mapping is checked
once at import, so a missing accessor fails at startup rather than reading a
silent None at evaluation time.
"""

from collections.abc import Callable
from enum import StrEnum
from operator import attrgetter

from sleep.domain.models import CanonicalSleepMetrics


class MetricField(StrEnum):
    TOTAL_SLEEP_DURATION = "total_sleep_duration"
    DEEP_SLEEP = "deep_sleep"
    LIGHT_SLEEP = "light_sleep"
    REM_SLEEP = "rem_sleep"
    AWAKE = "awake"
    SLEEP_LATENCY = "sleep_latency"
    WAKE_UP_LATENCY = "wake_up_latency"
    AVG_HEART_RATE = "avg_heart_rate"
    RESTING_HEART_RATE = "resting_heart_rate"
    AVG_HRV_RMSSD = "avg_hrv_rmssd"
    AVG_HRV_SDNN = "avg_hrv_sdnn"
    AVG_OXYGEN_SATURATION = "avg_oxygen_saturation"
    AVG_BREATHING_RATE = "avg_breathing_rate"
    SNORING_DURATION = "snoring_duration"
    TEMPERATURE_DELTA = "temperature_delta"
    READINESS_SCORE = "readiness_score"
    RECOVERY_LEVEL = "recovery_level"
    PROVIDER_SLEEP_SCORE = "provider_sleep_score"
    SLEEP_EFFICIENCY = "sleep_efficiency"
    SLEEP_QUALITY_SCORE = "sleep_quality_score"
    RECOVERY_SCORE = "recovery_score"
    EFFICIENCY_SCORE = "efficiency_score"
    HEALTH_SCORE = "health_score"


MetricAccessor = Callable[[CanonicalSleepMetrics], float | int | None]

METRIC_ACCESSORS: dict[MetricField, MetricAccessor] = {
    MetricField.TOTAL_SLEEP_DURATION: attrgetter("total_sleep_duration"),
    MetricField.DEEP_SLEEP: attrgetter("deep_sleep"),
    MetricField.LIGHT_SLEEP: attrgetter("light_sleep"),
    MetricField.REM_SLEEP: attrgetter("rem_sleep"),
    MetricField.AWAKE: attrgetter("awake"),
    MetricField.SLEEP_LATENCY: attrgetter("sleep_latency"),
    MetricField.WAKE_UP_LATENCY: attrgetter("wake_up_latency"),
    MetricField.AVG_HEART_RATE: attrgetter("avg_heart_rate"),
    MetricField.RESTING_HEART_RATE: attrgetter("resting_heart_rate"),
    MetricField.AVG_HRV_RMSSD: attrgetter("avg_hrv_rmssd"),
    MetricField.AVG_HRV_SDNN: attrgetter("avg_hrv_sdnn"),
    MetricField.AVG_OXYGEN_SATURATION: attrgetter("avg_oxygen_saturation"),
    MetricField.AVG_BREATHING_RATE: attrgetter("avg_breathing_rate"),
    MetricField.SNORING_DURATION: attrgetter("snoring_duration"),
    MetricField.TEMPERATURE_DELTA: attrgetter("temperature_delta"),
    MetricField.READINESS_SCORE: attrgetter("readiness_score"),
    MetricField.RECOVERY_LEVEL: attrgetter("recovery_level"),
    MetricField.PROVIDER_SLEEP_SCORE: attrgetter("provider_sleep_score"),
    MetricField.SLEEP_EFFICIENCY: attrgetter("sleep_efficiency"),
    MetricField.SLEEP_QUALITY_SCORE: attrgetter("sleep_quality_score"),
    MetricField.RECOVERY_SCORE: attrgetter("recovery_score"),
    MetricField.EFFICIENCY_SCORE: attrgetter("efficiency_score"),
    MetricField.HEALTH_SCORE: attrgetter("health_score"),
}


def _check_registry() -> None:
    missing = set(MetricField) - set(METRIC_ACCESSORS)
    if missing:
        raise RuntimeError(f"MetricField members without accessor: {sorted(missing)}")
    unknown = {f.value for f in MetricField} - set(CanonicalSleepMetrics.model_fields)
    if unknown:
        raise RuntimeError(f"MetricField members not on CanonicalSleepMetrics: {sorted(unknown)}")


_check_registry()


def read_metric(record: CanonicalSleepMetrics, metric: MetricField) -> float | None:
    value = METRIC_ACCESSORS[metric](record)
    return float(value) if value is not None else None
