"""FastAPI router for the Challenge domain.

Endpoints:
- GET  /api/v1/challenges/presets
- POST /api/v1/challenges/open-entry
- POST /api/v1/challenges/join
- POST /api/v1/challenges/activate
- POST /api/v1/challenges/evaluate
- POST /api/v1/challenges/complete

Stateless: each request carries the challenge, its participations and the
canonical records; the response carries the new values to persist.
"""

import time
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter
from pydantic import AwareDatetime, BaseModel, Field

from challenge.domain.models import Challenge, Participation, TimeWindow
from challenge.lifecycle import (
    activate,
    challenge_status_flags,
    complete_challenge,
    join_challenge,
    open_entry,
    refresh_evaluations,
)
from challenge.presets import predefined_sleep_challenges
from challenge.winners import rank_qualified
from shared.config import settings
from shared.exceptions import RequestTooLargeError
from shared.metrics import api_requests_total, api_response_duration_seconds
from shared.middleware import response_meta
from sleep.domain.models import CanonicalSleepMetrics

router = APIRouter(prefix="/api/v1/challenges")


# --- Request models ---


class OpenEntryRequest(BaseModel):
    challenge: Challenge
    entry_window: TimeWindow | None = None


class JoinRequest(BaseModel):
    challenge: Challenge
    participations: list[Participation] = Field(default_factory=list)
    subject_id: str = Field(..., min_length=1)
    joined_at: AwareDatetime | None = None


class ActivateRequest(BaseModel):
    challenge: Challenge
    now: AwareDatetime | None = None
    force: bool = False


class CohortRequest(BaseModel):
    challenge: Challenge
    participations: list[Participation] = Field(default_factory=list)
    records: list[CanonicalSleepMetrics] = Field(default_factory=list)
    now: AwareDatetime | None = None


# --- Response helpers ---


def _now(value: datetime | None) -> datetime:
    return value or datetime.now(UTC)


def _check_size(body: CohortRequest) -> None:
    if len(body.records) > settings.max_records_per_request:
        raise RequestTooLargeError(len(body.records), settings.max_records_per_request)


def _challenge_dict(challenge: Challenge, now: datetime) -> dict[str, Any]:
    return {
        **challenge.model_dump(mode="json"),
        "flags": challenge_status_flags(challenge, now),
    }


def _record(endpoint: str, start_time: float) -> None:
    api_requests_total.labels(endpoint=endpoint, method="POST", status_code="200").inc()
    api_response_duration_seconds.labels(endpoint=endpoint).observe(time.monotonic() - start_time)


# --- Endpoints ---


@router.get("/presets")
async def get_presets():
    """Predefined sleep challenge definitions, windows anchored at the current time."""
    presets = predefined_sleep_challenges(datetime.now(UTC))
    return {"data": [p.model_dump(mode="json") for p in presets], "meta": response_meta()}


@router.post("/open-entry")
async def open_challenge_entry(body: OpenEntryRequest):
    start_time = time.monotonic()
    challenge = open_entry(body.challenge, body.entry_window)
    _record("open_challenge_entry", start_time)
    return {"data": _challenge_dict(challenge, datetime.now(UTC)), "meta": response_meta()}


@router.post("/join")
async def join(body: JoinRequest):
    """Idempotent join: a subject already in the challenge gets the existing participation."""
    start_time = time.monotonic()
    participation = join_challenge(
        body.challenge, body.participations, body.subject_id, _now(body.joined_at)
    )
    _record("join", start_time)
    return {"data": participation.model_dump(mode="json"), "meta": response_meta()}


@router.post("/activate")
async def activate_challenge(body: ActivateRequest):
    start_time = time.monotonic()
    now = _now(body.now)
    challenge = activate(body.challenge, now, force=body.force)
    _record("activate_challenge", start_time)
    return {"data": _challenge_dict(challenge, now), "meta": response_meta()}


@router.post("/evaluate")
async def evaluate_challenge(body: CohortRequest):
    """Recompute every participation and return the provisional ranking."""
    start_time = time.monotonic()
    _check_size(body)
    participations = refresh_evaluations(body.challenge, body.participations, body.records)
    ranking = [p.subject_id for p in rank_qualified(body.challenge.definition, participations)]
    _record("evaluate_challenge", start_time)
    return {
        "data": {
            "participations": [p.model_dump(mode="json") for p in participations],
            "ranking": ranking,
            "provisional_winners": ranking[: body.challenge.definition.winner_count],
        },
        "meta": response_meta(),
    }


@router.post("/complete")
async def complete(body: CohortRequest):
    """Complete the challenge; repeating the call returns the recorded winners."""
    start_time = time.monotonic()
    _check_size(body)
    now = _now(body.now)
    result = complete_challenge(body.challenge, body.participations, body.records, now)
    _record("complete", start_time)
    return {
        "data": {
            "challenge": _challenge_dict(result.challenge, now),
            "winners": result.winners,
            "participations": [p.model_dump(mode="json") for p in result.participations],
            "already_completed": result.already_completed,
        },
        "meta": response_meta(),
    }
