"""Participant evaluator.

evaluate() is pure and idempotent: evaluation is re-run every time the
surrounding system refreshes scores before the window closes, and the same
inputs must always give the same Evaluation.

No data is never treated as a failing value. A participant without in-window
data gets value=None, data_points=0, qualifies=False, and that is reported as
insufficient data, not as missing the target.
"""

from collections.abc import Iterable, Sequence

import structlog

from challenge.domain.metrics import read_metric
from challenge.domain.models import (
    INSUFFICIENT_DATA,
    ChallengeDefinition,
    Evaluation,
    Participation,
)
from shared.metrics import challenge_evaluations_total
from sleep.domain.models import CanonicalSleepMetrics

logger = structlog.get_logger()


def records_in_window(
    definition: ChallengeDefinition,
    subject_id: str,
    records: Iterable[CanonicalSleepMetrics],
) -> list[CanonicalSleepMetrics]:
    """Sessions of the subject that lie entirely inside the challenge window."""
    window = definition.challenge_window
    return [
        r
        for r in records
        if r.subject_id == subject_id and r.start_time >= window.start and r.end_time <= window.end
    ]


def evaluate(
    definition: ChallengeDefinition,
    participation: Participation,
    records: Iterable[CanonicalSleepMetrics],
) -> Evaluation:
    """Aggregate the challenge metric over the window and compare it with the target."""
    in_window = records_in_window(definition, participation.subject_id, records)
    if not in_window:
        return INSUFFICIENT_DATA

    values = [
        v for v in (read_metric(r, definition.metric_field) for r in in_window) if v is not None
    ]
    if not values:
        return INSUFFICIENT_DATA

    value = definition.aggregation.apply(values)
    qualifies = definition.comparator.compare(value, definition.target_value)
    if definition.minimum_data_points is not None and len(values) < definition.minimum_data_points:
        qualifies = False
    return Evaluation(value=value, data_points=len(values), qualifies=qualifies)


def apply_evaluation(participation: Participation, evaluation: Evaluation) -> Participation:
    """Overwrite the derived fields of a participation with a fresh evaluation."""
    return participation.model_copy(
        update={
            "calculated_metric_value": evaluation.value,
            "data_points_count": evaluation.data_points,
            "meets_requirements": evaluation.qualifies,
        }
    )


def evaluate_cohort(
    definition: ChallengeDefinition,
    participations: Sequence[Participation],
    records: Sequence[CanonicalSleepMetrics],
) -> list[Participation]:
    """Evaluate every participation; returns updated copies in input order."""
    updated: list[Participation] = []
    for participation in participations:
        evaluation = evaluate(definition, participation, records)
        challenge_evaluations_total.labels(outcome=evaluation.outcome).inc()
        if evaluation.data_points == 0:
            logger.warning(
                "participant_insufficient_data",
                challenge_id=participation.challenge_id,
                subject_id=participation.subject_id,
            )
        updated.append(apply_evaluation(participation, evaluation))

    logger.info(
        "cohort_evaluated",
        metric_field=definition.metric_field.value,
        aggregation=definition.aggregation.value,
        participants=len(updated),
        qualified=sum(1 for p in updated if p.meets_requirements),
    )
    return updated
