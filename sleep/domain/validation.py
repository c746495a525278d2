"""Canonical validation rules for sleep-metrics records.

Rules validate canonical-level fields only; provider fields in `extra`
are not validated here. validate_sleep_record returns every violation;
build_canonical_metrics raises SleepRecordValidationError naming the
offending fields. sleep_efficiency is clamped by the model, never rejected.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from shared.exceptions import SleepRecordValidationError
from sleep.domain.models import CanonicalSleepMetrics, SleepProvider, compute_session_id


@dataclass
class Violation:
    field: str
    rule: str
    reason: str
    value: Any


ALLOWED_PROVIDERS = {p.value for p in SleepProvider}
DURATION_FIELDS = (
    "total_sleep_duration",
    "deep_sleep",
    "light_sleep",
    "rem_sleep",
    "awake",
    "sleep_latency",
    "wake_up_latency",
    "in_bed_unmeasured",
)
_STAGE_SUM_TOLERANCE = 1.05


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def validate_sleep_record(record: dict[str, Any]) -> list[Violation]:
    """Validate a mapped sleep record before it becomes canonical.

    Returns an empty list if valid; otherwise returns all violations.
    """
    errors: list[Violation] = []

    # Rule 1: Required identity
    for required in ("provider", "subject_id", "start_time", "end_time"):
        if not record.get(required):
            errors.append(Violation(required, "required", f"missing_{required}", None))

    # Rule 2: Non-negative durations
    for duration_field in DURATION_FIELDS:
        val = record.get(duration_field)
        if val is not None and (not isinstance(val, (int, float)) or val < 0):
            errors.append(Violation(duration_field, "non_negative", "negative_duration", val))

    # Rule 3: Stage sum consistency (5% tolerance for rounding)
    total = record.get("total_sleep_duration")
    stages = [record.get(f) for f in ("deep_sleep", "light_sleep", "rem_sleep")]
    stage_sum = sum(s for s in stages if isinstance(s, (int, float)))
    if isinstance(total, (int, float)) and total >= 0 and stage_sum > total * _STAGE_SUM_TOLERANCE:
        errors.append(
            Violation(
                "total_sleep_duration",
                "consistency",
                "stage_sum_exceeds_total",
                {"stage_sum": stage_sum, "total": total},
            )
        )

    # Rule 4: Parseable, timezone-aware timestamps
    parsed: dict[str, datetime] = {}
    for ts_field in ("start_time", "end_time"):
        raw = record.get(ts_field)
        if raw is None:
            continue
        ts = _as_datetime(raw)
        if ts is None:
            errors.append(Violation(ts_field, "timestamp", "unparseable_timestamp", str(raw)))
        elif ts.tzinfo is None:
            errors.append(Violation(ts_field, "timezone", "missing_timezone", str(raw)))
        else:
            parsed[ts_field] = ts

    # Rule 5: Session window ordering (skipped if either timestamp failed rule 4)
    start, end = parsed.get("start_time"), parsed.get("end_time")
    if start and end and end <= start:
        errors.append(
            Violation(
                "end_time",
                "ordering",
                "session_order_invalid",
                {"start_time": str(start), "end_time": str(end)},
            )
        )

    # Rule 6: Known provider
    provider = record.get("provider")
    if provider:
        provider_val = getattr(provider, "value", provider)
        if provider_val not in ALLOWED_PROVIDERS:
            errors.append(Violation("provider", "known_provider", "unknown_provider", provider_val))

    # Rule 7: Provider score range [0, 100]
    score = record.get("provider_sleep_score")
    if score is not None and (not isinstance(score, (int, float)) or not 0 <= score <= 100):
        errors.append(
            Violation("provider_sleep_score", "range", "provider_score_out_of_range", score)
        )

    return errors


def _violation_dicts(violations: list[Violation]) -> list[dict[str, Any]]:
    return [{**asdict(v), "value": str(v.value)} for v in violations]


def build_canonical_metrics(record: dict[str, Any]) -> CanonicalSleepMetrics:
    """Validate a mapped record and construct the immutable canonical model.

    Raises SleepRecordValidationError naming every offending field.
    """
    violations = validate_sleep_record(record)
    if violations:
        raise SleepRecordValidationError(_violation_dicts(violations))

    start_time = _as_datetime(record["start_time"])
    fields = {**record, "session_id": compute_session_id(str(record["subject_id"]), start_time)}
    try:
        return CanonicalSleepMetrics(**fields)
    except PydanticValidationError as exc:
        raise SleepRecordValidationError(
            [
                {
                    "field": ".".join(str(p) for p in err.get("loc", ())) or "(root)",
                    "rule": err.get("type", "validation"),
                    "reason": err.get("msg", "Validation error"),
                    "value": str(err.get("input")),
                }
                for err in exc.errors()
            ]
        ) from exc
