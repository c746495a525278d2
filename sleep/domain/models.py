"""Canonical sleep-metrics domain model.

Represents one sleep session from any provider, normalized into a common
schema. This is the single record shape challenge scoring reads.

Design principles:
- Nullable measurement fields: None = "provider did not supply it", not "zero"
- Immutable: a correction is a new record, never an update
- Identity: session_id is derived from subject + session start, nothing else
"""

import hashlib
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import structlog
from pydantic import AwareDatetime, BaseModel, Field, ValidationInfo, field_validator, model_validator

from shared.metrics import sleep_efficiency_clamped_total

logger = structlog.get_logger()

EFFICIENCY_MIN = 0.0
EFFICIENCY_MAX = 100.0


class SleepProvider(StrEnum):
    SESSION = "session"
    CYCLE = "cycle"


def compute_session_id(subject_id: str, start_time: datetime) -> str:
    """SHA-256 of subject and UTC-normalized start, so equal instants in different offsets collide."""
    raw = f"{subject_id}:{start_time.astimezone(UTC).isoformat()}"
    return hashlib.sha256(raw.encode()).hexdigest()


class CanonicalSleepMetrics(BaseModel):
    """Canonical representation of one sleep session."""

    model_config = {"frozen": True}

    # Identity
    provider: SleepProvider
    subject_id: str = Field(..., min_length=1)
    session_id: str
    start_time: AwareDatetime
    end_time: AwareDatetime

    # Durations in seconds
    total_sleep_duration: int | None = Field(None, ge=0)
    deep_sleep: int | None = Field(None, ge=0)
    light_sleep: int | None = Field(None, ge=0)
    rem_sleep: int | None = Field(None, ge=0)
    awake: int | None = Field(None, ge=0)
    sleep_latency: int | None = Field(None, ge=0)
    wake_up_latency: int | None = Field(None, ge=0)
    in_bed_unmeasured: int | None = Field(None, ge=0)

    # Physiology
    avg_heart_rate: float | None = None
    resting_heart_rate: float | None = None
    avg_hrv_rmssd: float | None = None
    avg_hrv_sdnn: float | None = None
    avg_oxygen_saturation: float | None = None
    avg_breathing_rate: float | None = None
    snoring_duration: float | None = Field(None, ge=0)
    temperature_delta: float | None = None

    # Provider-derived inputs
    readiness_score: float | None = None
    recovery_level: int | None = None
    provider_sleep_score: float | None = Field(None, ge=0.0, le=100.0)

    # Computed
    sleep_efficiency: float | None = None
    sleep_quality_score: float | None = None
    recovery_score: float | None = None
    efficiency_score: float | None = None
    health_score: float | None = None

    # Extension
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("sleep_efficiency", mode="before")
    @classmethod
    def clamp_efficiency(cls, v: Any, info: ValidationInfo) -> float | None:
        """Clamp into [0, 100] instead of rejecting; providers overshoot on float summation."""
        if v is None:
            return None
        value = float(v)
        clamped = min(EFFICIENCY_MAX, max(EFFICIENCY_MIN, value))
        if clamped != value:
            provider = info.data.get("provider")
            provider_label = getattr(provider, "value", provider) or "unknown"
            sleep_efficiency_clamped_total.labels(provider=provider_label).inc()
            logger.warning(
                "sleep_efficiency_clamped",
                provider=provider_label,
                subject_id=info.data.get("subject_id"),
                original=value,
                clamped=clamped,
            )
        return clamped

    @model_validator(mode="after")
    def check_session_window(self) -> "CanonicalSleepMetrics":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    def rederive_total_sleep_duration(self) -> int | None:
        """Recompute total sleep from the stage breakdown for audit.

        Session-style records add the unmeasured in-bed time to time asleep
        (see sleep.adapters.session_mapper.session_total_sleep_seconds);
        cycle-style records report time in bed, so awake time is added instead.
        """
        stages = (self.deep_sleep, self.light_sleep, self.rem_sleep)
        if any(s is None for s in stages):
            return None
        asleep = sum(stages)
        if self.provider == SleepProvider.SESSION:
            return asleep + (self.in_bed_unmeasured or 0)
        return asleep + (self.awake or 0)
