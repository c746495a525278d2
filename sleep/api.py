"""FastAPI router for the Sleep domain.

Endpoints:
- POST /api/v1/normalize/{provider}/sleep

Stateless: the response carries the scored canonical records; storing them
is up to the caller.
"""

import time
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from shared.config import settings
from shared.metrics import api_requests_total, api_response_duration_seconds
from shared.middleware import response_meta
from sleep.pipeline import NormalizedRecordResult, normalize_sleep_data
from sleep.scoring import WEIGHT_PROFILES

router = APIRouter(prefix="/api/v1")


class NormalizeRequest(BaseModel):
    """Request body for the normalize endpoint."""

    subject_id: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(..., description="Raw provider sleep payload")


def _result_to_dict(r: NormalizedRecordResult) -> dict[str, Any]:
    body: dict[str, Any] = {"status": r.status, "session_id": r.session_id}
    if r.record is not None:
        body["record"] = r.record.model_dump(mode="json")
    if r.error is not None:
        body["error"] = r.error
    return body


@router.post("/normalize/{provider}/sleep")
async def normalize_sleep(provider: str, body: NormalizeRequest):
    """Normalize a raw provider payload into scored canonical records.

    Per-record status enum: normalized | duplicate | rejected
    - normalized: record mapped, validated and scored
    - duplicate: same session_id already normalized earlier in this payload
    - rejected: adapter or validation failure (error holds the problem details)

    HTTP status codes:
    - 200: payload processed (individual sessions may still be rejected)
    - 413: more sessions than max_records_per_request
    - 422: unsupported provider or request-shape validation error
    """
    start_time = time.monotonic()
    result = normalize_sleep_data(
        provider,
        body.data,
        body.subject_id,
        weights=WEIGHT_PROFILES[settings.score_weights_profile],
        max_records=settings.max_records_per_request,
    )

    response_data = {
        "provider": result.provider,
        "results": [_result_to_dict(r) for r in result.results],
        "records_processed": result.records_processed,
        "records_normalized": result.records_normalized,
        "records_duplicated": result.records_duplicated,
        "records_rejected": result.records_rejected,
    }

    duration = time.monotonic() - start_time
    api_requests_total.labels(endpoint="normalize_sleep", method="POST", status_code="200").inc()
    api_response_duration_seconds.labels(endpoint="normalize_sleep").observe(duration)

    return {"data": response_data, "meta": response_meta()}
