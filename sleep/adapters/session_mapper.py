"""Session-style payload → canonical sleep-metrics mapper.

Inbound anti-corruption layer for full polysomnography-like sessions:
explicit stage durations, heart-rate and respiration sub-objects and a
hypnogram. Nested per-domain blocks are flattened into the canonical model.

Envelope: a webhook body {"type": "sleep", "data": [...]} or one bare session.
Webhooks of any other type (healthcheck, activity, daily, body, ...) carry no
sleep sessions and split into nothing.

Known quirk: total sleep is asleep + in-bed time, not asleep alone (see
session_total_sleep_seconds). Kept as-is until product intent is confirmed.
"""

from datetime import datetime
from typing import Any

import structlog

from shared.exceptions import AdapterError, AdapterErrorReason
from sleep.domain.models import CanonicalSleepMetrics, SleepProvider
from sleep.domain.validation import build_canonical_metrics

logger = structlog.get_logger()

PROVIDER = SleepProvider.SESSION
SLEEP_WEBHOOK_TYPE = "sleep"


def session_total_sleep_seconds(asleep: float | None, in_bed: float | None) -> float | None:
    """Total sleep duration as the source system computes it: asleep + in-bed time.

    Time in bed would normally only belong in the efficiency denominator.
    """
    if asleep is None or in_bed is None:
        return None
    return asleep + in_bed


def session_sleep_efficiency(
    asleep: float | None, awake: float | None, in_bed: float | None
) -> float | None:
    """asleep / (asleep + awake + in_bed) * 100, rounded to 2 decimals.

    None when any input is missing or the denominator is zero; the model clamps the result.
    """
    if asleep is None or awake is None or in_bed is None:
        return None
    denominator = asleep + awake + in_bed
    if denominator <= 0:
        return None
    return round(asleep / denominator * 100, 2)


def _round_seconds(seconds: float | None) -> int | None:
    return int(round(seconds)) if seconds is not None else None


def _block(parent: dict[str, Any], key: str, path: str) -> dict[str, Any]:
    """Return a nested block, {} if absent; a non-mapping block is an unrecognized shape."""
    value = parent.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, f"{path}{key}")
    return value


def _number(block: dict[str, Any], key: str, path: str) -> float | None:
    """Read a numeric leaf. Strings and booleans are not numbers here."""
    value = block.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, f"{path}{key}")
    return value


def _parse_timestamp(value: Any, field: str) -> datetime:
    if not value:
        raise AdapterError(PROVIDER.value, AdapterErrorReason.MISSING_FIELD, field)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, field) from exc


class SessionMapper:
    provider = PROVIDER

    def split(self, raw_response: Any) -> list[dict[str, Any]]:
        if not isinstance(raw_response, dict):
            raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "(root)")
        webhook_type = raw_response.get("type")
        if webhook_type is not None and webhook_type != SLEEP_WEBHOOK_TYPE:
            logger.info("webhook_ignored", provider=PROVIDER.value, webhook_type=webhook_type)
            return []
        if "data" in raw_response:
            sessions = raw_response["data"]
            if not isinstance(sessions, list):
                raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "data")
            return sessions
        if "metadata" in raw_response:
            return [raw_response]
        raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "(root)")

    def map_record(self, raw_record: dict[str, Any], subject_id: str) -> CanonicalSleepMetrics:
        if not isinstance(raw_record, dict):
            raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "(root)")
        if not isinstance(raw_record.get("metadata"), dict):
            raise AdapterError(PROVIDER.value, AdapterErrorReason.UNRECOGNIZED_SHAPE, "metadata")

        metadata = raw_record["metadata"]
        start_time = _parse_timestamp(metadata.get("start_time"), "metadata.start_time")
        end_time = _parse_timestamp(metadata.get("end_time"), "metadata.end_time")

        durations_path = "sleep_durations_data."
        durations = _block(raw_record, "sleep_durations_data", "")
        asleep = _block(durations, "asleep", durations_path)
        awake = _block(durations, "awake", durations_path)
        other = _block(durations, "other", durations_path)
        asleep_path = f"{durations_path}asleep."
        awake_path = f"{durations_path}awake."
        other_path = f"{durations_path}other."

        heart_rate = _block(_block(raw_record, "heart_rate_data", ""), "summary", "heart_rate_data.")
        hr_path = "heart_rate_data.summary."
        respiration = _block(raw_record, "respiration_data", "")
        oxygen = _block(respiration, "oxygen_saturation_data", "respiration_data.")
        breaths = _block(respiration, "breaths_data", "respiration_data.")
        snoring = _block(respiration, "snoring_data", "respiration_data.")
        readiness = _block(raw_record, "readiness_data", "")
        scores = _block(raw_record, "scores", "")
        temperature = _block(raw_record, "temperature_data", "")
        enrichment = _block(raw_record, "data_enrichment", "")
        device = _block(raw_record, "device_data", "")

        asleep_sec = _number(asleep, "duration_asleep_state_seconds", asleep_path)
        awake_sec = _number(awake, "duration_awake_state_seconds", awake_path)
        in_bed_sec = _number(other, "duration_in_bed_seconds", other_path)

        hypnogram = durations.get("hypnogram_samples")
        extra = {
            k: v
            for k, v in {
                "is_nap": metadata.get("is_nap"),
                "summary_id": metadata.get("summary_id"),
                "asleep_seconds": _round_seconds(asleep_sec),
                "rem_event_count": asleep.get("num_REM_events"),
                "wakeup_event_count": awake.get("num_wakeup_events"),
                "out_of_bed_event_count": awake.get("num_out_of_bed_events"),
                "unmeasurable_sleep_seconds": _round_seconds(
                    _number(other, "duration_unmeasurable_sleep_seconds", other_path)
                ),
                "provider_efficiency": durations.get("sleep_efficiency"),
                "min_hr_bpm": heart_rate.get("min_hr_bpm"),
                "max_hr_bpm": heart_rate.get("max_hr_bpm"),
                "snoring_event_count": snoring.get("num_snoring_events"),
                "enrichment_sleep_score": enrichment.get("sleep_score"),
                "hypnogram_sample_count": len(hypnogram) if isinstance(hypnogram, list) else None,
                "device_name": device.get("name"),
            }.items()
            if v is not None
        }

        recovery_level = _number(readiness, "recovery_level", "readiness_data.")
        record = {
            "provider": PROVIDER,
            "subject_id": subject_id,
            "start_time": start_time,
            "end_time": end_time,
            "total_sleep_duration": _round_seconds(
                session_total_sleep_seconds(asleep_sec, in_bed_sec)
            ),
            "deep_sleep": _round_seconds(
                _number(asleep, "duration_deep_sleep_state_seconds", asleep_path)
            ),
            "light_sleep": _round_seconds(
                _number(asleep, "duration_light_sleep_state_seconds", asleep_path)
            ),
            "rem_sleep": _round_seconds(
                _number(asleep, "duration_REM_sleep_state_seconds", asleep_path)
            ),
            "awake": _round_seconds(awake_sec),
            "sleep_latency": _round_seconds(_number(awake, "sleep_latency_seconds", awake_path)),
            "wake_up_latency": _round_seconds(
                _number(awake, "wake_up_latency_seconds", awake_path)
            ),
            "in_bed_unmeasured": _round_seconds(in_bed_sec),
            "avg_heart_rate": _number(heart_rate, "avg_hr_bpm", hr_path),
            "resting_heart_rate": _number(heart_rate, "resting_hr_bpm", hr_path),
            "avg_hrv_rmssd": _number(heart_rate, "avg_hrv_rmssd", hr_path),
            "avg_hrv_sdnn": _number(heart_rate, "avg_hrv_sdnn", hr_path),
            "avg_oxygen_saturation": _number(
                oxygen, "avg_saturation_percentage", "respiration_data.oxygen_saturation_data."
            ),
            "avg_breathing_rate": _number(
                breaths, "avg_breaths_per_min", "respiration_data.breaths_data."
            ),
            "snoring_duration": _number(
                snoring, "total_snoring_duration_seconds", "respiration_data.snoring_data."
            ),
            "temperature_delta": _number(temperature, "delta", "temperature_data."),
            "readiness_score": _number(readiness, "readiness", "readiness_data."),
            "recovery_level": _round_seconds(recovery_level),
            "provider_sleep_score": _number(scores, "sleep", "scores."),
            "sleep_efficiency": session_sleep_efficiency(asleep_sec, awake_sec, in_bed_sec),
            "extra": extra,
        }
        return build_canonical_metrics(record)

    def parse(self, raw_response: Any, subject_id: str) -> list[CanonicalSleepMetrics]:
        return [self.map_record(entry, subject_id) for entry in self.split(raw_response)]
