"""Normalization pipeline: raw payload → split → map → validate → score.

The pipeline is deterministic end-to-end:
- Same input always produces the same output
- Sessions repeated inside one payload are reported as duplicates by session_id
- One bad session never blocks its siblings: it is rejected, the rest continue

Persistence is the caller's concern; the pipeline returns records ready to
be stored and a per-session status for each one.
"""

import time
from dataclasses import dataclass, field
from typing import Any

import structlog

from shared.exceptions import ProblemDetailError, RequestTooLargeError
from shared.metrics import (
    normalized_records_total,
    pipeline_duration_seconds,
    validation_failures_total,
)
from sleep.adapters.factory import get_adapter
from sleep.domain.models import CanonicalSleepMetrics, SleepProvider
from sleep.scoring import DEFAULT_SCORE_WEIGHTS, ScoreWeights, score_metrics

logger = structlog.get_logger()


@dataclass
class NormalizedRecordResult:
    """Per-session result from the normalization pipeline."""

    status: str  # "normalized", "duplicate", "rejected"
    record: CanonicalSleepMetrics | None = None
    error: dict[str, Any] | None = None

    @property
    def session_id(self) -> str | None:
        return self.record.session_id if self.record else None


@dataclass
class NormalizeResult:
    """Aggregate result from normalizing one provider payload."""

    provider: str
    results: list[NormalizedRecordResult] = field(default_factory=list)
    records_processed: int = 0
    records_normalized: int = 0
    records_duplicated: int = 0
    records_rejected: int = 0

    @property
    def records(self) -> list[CanonicalSleepMetrics]:
        return [r.record for r in self.results if r.status == "normalized" and r.record]

    @property
    def has_rejections(self) -> bool:
        return self.records_rejected > 0


def _error_body(exc: ProblemDetailError) -> dict[str, Any]:
    body: dict[str, Any] = {"type": exc.type_uri, "title": exc.title, "detail": exc.detail}
    if exc.violations:
        body["violations"] = exc.violations
    return body


def normalize_record(
    provider: str | SleepProvider,
    raw_record: dict[str, Any],
    subject_id: str,
    weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
) -> CanonicalSleepMetrics:
    """Map one session payload and attach derived scores. Raises on failure."""
    adapter = get_adapter(provider)
    return score_metrics(adapter.map_record(raw_record, subject_id), weights)


def _reject(result: NormalizeResult, exc: ProblemDetailError, index: int | None) -> None:
    provider = result.provider
    result.records_rejected += 1
    result.results.append(NormalizedRecordResult(status="rejected", error=_error_body(exc)))
    normalized_records_total.labels(provider=provider, status="rejected").inc()
    for violation in exc.violations or []:
        validation_failures_total.labels(
            provider=provider, rule=violation.get("reason", "unknown")
        ).inc()
    logger.warning(
        "record_rejected",
        provider=provider,
        index=index,
        title=exc.title,
        detail=exc.detail,
    )


def normalize_sleep_data(
    provider: str | SleepProvider,
    raw_payload: Any,
    subject_id: str,
    weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
    max_records: int | None = None,
) -> NormalizeResult:
    """Run the full normalization pipeline for one raw provider payload.

    Steps:
    1. Select the adapter by explicit provider tag
    2. Split the envelope into per-session payloads
    3. Map + validate each session (vendor → canonical)
    4. Attach derived scores

    Raises UnsupportedProviderError for an unknown tag and RequestTooLargeError
    when the envelope holds more than max_records sessions. Every other
    failure is reported per session in the returned NormalizeResult.
    """
    start_time = time.monotonic()
    adapter = get_adapter(provider)
    tag = adapter.provider.value
    result = NormalizeResult(provider=tag)

    try:
        sessions = adapter.split(raw_payload)
    except ProblemDetailError as exc:
        _reject(result, exc, index=None)
        pipeline_duration_seconds.labels(provider=tag).observe(time.monotonic() - start_time)
        return result

    if max_records is not None and len(sessions) > max_records:
        raise RequestTooLargeError(len(sessions), max_records)

    seen: set[str] = set()
    for index, raw_record in enumerate(sessions):
        try:
            record = score_metrics(adapter.map_record(raw_record, subject_id), weights)
        except ProblemDetailError as exc:
            _reject(result, exc, index)
            continue

        result.records_processed += 1
        if record.session_id in seen:
            result.records_duplicated += 1
            result.results.append(NormalizedRecordResult(status="duplicate", record=record))
            normalized_records_total.labels(provider=tag, status="duplicate").inc()
            continue

        seen.add(record.session_id)
        result.records_normalized += 1
        result.results.append(NormalizedRecordResult(status="normalized", record=record))
        normalized_records_total.labels(provider=tag, status="normalized").inc()
        logger.info(
            "record_normalized",
            provider=tag,
            session_id=record.session_id,
            sleep_efficiency=record.sleep_efficiency,
            sleep_quality_score=record.sleep_quality_score,
        )

    pipeline_duration_seconds.labels(provider=tag).observe(time.monotonic() - start_time)
    return result
