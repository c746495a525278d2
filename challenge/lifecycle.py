"""Challenge lifecycle state machine.

    created -> entry_open -> active -> completed

No transition skips a state or moves backward, and completed is final.
Every function here is pure: it takes the current Challenge (and cohort) and
returns new immutable values; writing them is the caller's job. Callers must
serialize completion of the same challenge so the transition is written at
most once; recomputation itself is idempotent, and completing an already
completed challenge returns the recorded winners without recomputing them.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from pydantic import ValidationError as PydanticValidationError

from challenge.domain.models import (
    Challenge,
    ChallengeDefinition,
    ChallengeState,
    Participation,
    ParticipationStatus,
    TimeWindow,
)
from challenge.evaluator import evaluate_cohort
from challenge.winners import select_winners
from shared.exceptions import ChallengeDefinitionError, LifecycleViolationError
from shared.metrics import challenge_transitions_total
from sleep.domain.models import CanonicalSleepMetrics

logger = structlog.get_logger()


@dataclass
class CompletionResult:
    challenge: Challenge
    winners: list[str]
    participations: list[Participation] = field(default_factory=list)
    already_completed: bool = False


def _violation(challenge: Challenge, attempted: str, reason: str = "") -> LifecycleViolationError:
    logger.warning(
        "lifecycle_violation",
        challenge_id=challenge.challenge_id,
        state=challenge.state.value,
        attempted=attempted,
        reason=reason,
    )
    return LifecycleViolationError(challenge.challenge_id, challenge.state.value, attempted, reason)


def _redefine(definition: ChallengeDefinition, **updates) -> ChallengeDefinition:
    """Copy a definition with new values, re-checking the window invariant."""
    data = {**definition.model_dump(), **updates}
    try:
        return ChallengeDefinition.model_validate(data)
    except PydanticValidationError as exc:
        messages = "; ".join(err.get("msg", "invalid") for err in exc.errors())
        raise ChallengeDefinitionError(messages) from exc


def _transition(challenge: Challenge, name: str, **updates) -> Challenge:
    updated = challenge.model_copy(update=updates)
    challenge_transitions_total.labels(transition=name).inc()
    logger.info(
        "challenge_transition",
        challenge_id=challenge.challenge_id,
        transition=name,
        from_state=challenge.state.value,
        to_state=updated.state.value,
    )
    return updated


def create_challenge(challenge_id: str, definition: ChallengeDefinition) -> Challenge:
    return Challenge(challenge_id=challenge_id, definition=definition)


def open_entry(challenge: Challenge, entry_window: TimeWindow | None = None) -> Challenge:
    """created -> entry_open, optionally replacing the entry window."""
    if challenge.state != ChallengeState.CREATED:
        raise _violation(challenge, "open entry")
    definition = challenge.definition
    if entry_window is not None:
        definition = _redefine(definition, entry_window=entry_window.model_dump())
    return _transition(
        challenge, "open_entry", state=ChallengeState.ENTRY_OPEN, definition=definition
    )


def join_challenge(
    challenge: Challenge,
    participations: Sequence[Participation],
    subject_id: str,
    joined_at: datetime,
) -> Participation:
    """Register a subject. Joining twice returns the existing participation."""
    for existing in participations:
        if existing.challenge_id == challenge.challenge_id and existing.subject_id == subject_id:
            logger.info(
                "participant_already_joined",
                challenge_id=challenge.challenge_id,
                subject_id=subject_id,
            )
            return existing

    if challenge.state != ChallengeState.ENTRY_OPEN:
        raise _violation(challenge, "accept participants")
    if not challenge.definition.entry_window.contains(joined_at):
        raise _violation(challenge, "accept participants", "joined_at is outside the entry window")

    participation = Participation(
        challenge_id=challenge.challenge_id, subject_id=subject_id, joined_at=joined_at
    )
    logger.info("participant_joined", challenge_id=challenge.challenge_id, subject_id=subject_id)
    return participation


def activate(challenge: Challenge, now: datetime, force: bool = False) -> Challenge:
    """entry_open -> active once the entry window has closed.

    force=True starts immediately by collapsing entry_window.end and
    challenge_window.start onto `now`.
    """
    if challenge.state != ChallengeState.ENTRY_OPEN:
        raise _violation(challenge, "activate")

    definition = challenge.definition
    if now >= definition.entry_window.end:
        return _transition(challenge, "activate", state=ChallengeState.ACTIVE, started_at=now)

    if not force:
        raise _violation(challenge, "activate", "entry window is still open")
    if now <= definition.entry_window.start or now >= definition.challenge_window.end:
        raise _violation(challenge, "force start", "now must fall inside the entry window")

    definition = _redefine(
        definition,
        entry_window={"start": definition.entry_window.start, "end": now},
        challenge_window={"start": now, "end": definition.challenge_window.end},
    )
    return _transition(
        challenge,
        "force_start",
        state=ChallengeState.ACTIVE,
        started_at=now,
        definition=definition,
    )


def refresh_evaluations(
    challenge: Challenge,
    participations: Sequence[Participation],
    records: Sequence[CanonicalSleepMetrics],
) -> list[Participation]:
    """Recompute derived participation fields; a completed challenge is left untouched."""
    if challenge.state == ChallengeState.COMPLETED:
        return list(participations)
    own = [p for p in participations if p.challenge_id == challenge.challenge_id]
    return evaluate_cohort(challenge.definition, own, records)


def complete_challenge(
    challenge: Challenge,
    participations: Sequence[Participation],
    records: Sequence[CanonicalSleepMetrics],
    now: datetime,
) -> CompletionResult:
    """active -> completed: evaluate the cohort, select and record winners.

    On an already completed challenge this is a no-op returning the
    recorded winners, whatever data has arrived since.
    """
    if challenge.state == ChallengeState.COMPLETED:
        logger.info(
            "challenge_already_completed",
            challenge_id=challenge.challenge_id,
            winners=list(challenge.winners or ()),
        )
        return CompletionResult(
            challenge=challenge,
            winners=list(challenge.winners or ()),
            participations=list(participations),
            already_completed=True,
        )

    if challenge.state != ChallengeState.ACTIVE:
        raise _violation(challenge, "complete")
    if now < challenge.definition.challenge_window.end:
        raise _violation(challenge, "complete", "challenge window has not ended")

    evaluated = refresh_evaluations(challenge, participations, records)
    winners = select_winners(challenge.definition, evaluated)
    winner_set = set(winners)
    final = [
        p.model_copy(
            update={
                "status": ParticipationStatus.WINNER
                if p.subject_id in winner_set
                else ParticipationStatus.COMPLETED
            }
        )
        for p in evaluated
    ]

    completed = _transition(
        challenge,
        "complete",
        state=ChallengeState.COMPLETED,
        completed_at=now,
        winners=tuple(winners),
    )
    logger.info(
        "challenge_completed",
        challenge_id=challenge.challenge_id,
        winners=winners,
        winner_count=len(winners),
        participants=len(final),
    )
    return CompletionResult(challenge=completed, winners=winners, participations=final)


def challenge_status_flags(challenge: Challenge, now: datetime) -> dict[str, bool]:
    """Time-based status flags shown alongside a challenge."""
    entry = challenge.definition.entry_window
    window = challenge.definition.challenge_window
    return {
        "can_join_now": challenge.state == ChallengeState.ENTRY_OPEN and entry.contains(now),
        "entry_period_closed": now > entry.end,
        "is_currently_active": window.contains(now),
        "should_be_completed": now > window.end and challenge.state != ChallengeState.COMPLETED,
    }
