"""Cycle/score-style payload → canonical sleep-metrics mapper.

Inbound anti-corruption layer for coarse provider payloads: one `score`
block with aggregate stage totals in milliseconds and a pre-computed
efficiency percentage.

Key differences from session-style payloads:
- Stage totals are milliseconds (converted to whole seconds)
- Efficiency is the provider's own percentage, passed through untouched;
  definitions differ between providers and reconciling them is not the
  adapter's job
- Total sleep duration is the provider's total time in bed
- No latency, heart-rate, SpO2 or snoring figures: those stay None
- Unscored records (score_state != "SCORED") carry no score block
"""

from datetime import datetime
from typing import Any

from shared.exceptions import AdapterError, AdapterErrorReason
from sleep.domain.models import CanonicalSleepMetrics, SleepProvider
from sleep.domain.validation import build_canonical_metrics

PROVIDER = SleepProvider.CYCLE
SCORED_STATE = "SCORED"

# Field the canonical total_sleep_duration is read from
TOTAL_SLEEP_SOURCE_FIELD = "total_in_bed_time_milli"


def _milli_to_sec(milli: float | None) -> int | None:
    """Convert milliseconds to whole seconds (rounded). None passthrough."""
    return int(round(milli / 1000)) if milli is not None else None


def _number(block: dict[str, Any], key: str, path: str) -> float | None:
    """Read a numeric leaf. Strings and booleans are not numbers here."""
    value = block.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, f"{path}{key}")
    return value


def _stage_seconds(stages: dict[str, Any], key: str) -> int | None:
    return _milli_to_sec(_number(stages, key, "score.stage_summary."))


def _parse_timestamp(value: Any, field: str) -> datetime:
    if not value:
        raise AdapterError(PROVIDER.value, AdapterErrorReason.MISSING_FIELD, field)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, field) from exc


class CycleMapper:
    provider = PROVIDER

    def split(self, raw_response: Any) -> list[dict[str, Any]]:
        """The envelope has shape {"records": [...], "next_token": str | None}."""
        if not isinstance(raw_response, dict):
            raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "(root)")
        if "records" in raw_response:
            records = raw_response["records"]
            if not isinstance(records, list):
                raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "records")
            return records
        if "start" in raw_response or "score" in raw_response:
            return [raw_response]
        raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "(root)")

    def map_record(self, raw_record: dict[str, Any], subject_id: str) -> CanonicalSleepMetrics:
        if not isinstance(raw_record, dict):
            raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "(root)")

        start_time = _parse_timestamp(raw_record.get("start"), "start")
        end_time = _parse_timestamp(raw_record.get("end"), "end")

        score_state = raw_record.get("score_state", SCORED_STATE)
        score = raw_record.get("score") if score_state == SCORED_STATE else None
        if score is None:
            score = {}
        if not isinstance(score, dict):
            raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "score")
        stages = score.get("stage_summary") or {}
        if not isinstance(stages, dict):
            raise AdapterError(
                PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "score.stage_summary"
            )

        extra = {
            k: v
            for k, v in {
                "provider_record_id": raw_record.get("id"),
                "cycle_id": raw_record.get("cycle_id"),
                "is_nap": raw_record.get("nap"),
                "score_state": score_state,
                "timezone_offset": raw_record.get("timezone_offset"),
                "sleep_consistency_percentage": score.get("sleep_consistency_percentage"),
                "no_data_seconds": _stage_seconds(stages, "total_no_data_time_milli"),
                "sleep_cycle_count": stages.get("sleep_cycle_count"),
                "disturbance_count": stages.get("disturbance_count"),
            }.items()
            if v is not None
        }

        record = {
            "provider": PROVIDER,
            "subject_id": subject_id,
            "start_time": start_time,
            "end_time": end_time,
            "total_sleep_duration": _stage_seconds(stages, TOTAL_SLEEP_SOURCE_FIELD),
            "deep_sleep": _stage_seconds(stages, "total_slow_wave_sleep_time_milli"),
            "light_sleep": _stage_seconds(stages, "total_light_sleep_time_milli"),
            "rem_sleep": _stage_seconds(stages, "total_rem_sleep_time_milli"),
            "awake": _stage_seconds(stages, "total_awake_time_milli"),
            "avg_breathing_rate": _number(score, "respiratory_rate", "score."),
            "provider_sleep_score": _number(score, "sleep_performance_percentage", "score."),
            "sleep_efficiency": _number(score, "sleep_efficiency_percentage", "score."),
            "extra": extra,
        }
        return build_canonical_metrics(record)

    def parse(self, raw_response: Any, subject_id: str) -> list[CanonicalSleepMetrics]:
        return [self.map_record(entry, subject_id) for entry in self.split(raw_response)]
