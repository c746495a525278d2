"""RFC 9457 Problem Details exception hierarchy.

Every engine failure extends ProblemDetailError so the HTTP surface can
convert it into an application/problem+json response unchanged.
"""

from enum import StrEnum

PROBLEM_BASE = "https://api.sleepchallenge.dev/problems"


class ProblemDetailError(Exception):
    def __init__(
        self,
        type_uri: str,
        title: str,
        status: int,
        detail: str,
        violations: list[dict] | None = None,
    ):
        self.type_uri = type_uri
        self.title = title
        self.status = status
        self.detail = detail
        self.violations = violations
        super().__init__(detail)


class SleepRecordValidationError(ProblemDetailError):
    """A canonical sleep record violates one or more invariants."""

    def __init__(self, violations: list[dict]):
        fields = ", ".join(sorted({v["field"] for v in violations}))
        super().__init__(
            type_uri=f"{PROBLEM_BASE}/validation-error",
            title="Validation Error",
            status=422,
            detail=f"Sleep record has {len(violations)} validation error(s): {fields}",
            violations=violations,
        )

    @property
    def fields(self) -> list[str]:
        return [v["field"] for v in self.violations or []]


class AdapterErrorReason(StrEnum):
    MISSING_FIELD = "missing_field"
    UNRECOGNIZED_SHAPE = "unrecognized_shape"


class AdapterError(ProblemDetailError):
    """A provider payload could not be mapped into the canonical model."""

    def __init__(self, provider: str, reason: AdapterErrorReason, field: str):
        self.provider = provider
        self.reason = reason
        self.field = field
        super().__init__(
            type_uri=f"{PROBLEM_BASE}/adapter-error",
            title="Adapter Error",
            status=422,
            detail=f"{provider} payload rejected ({reason.value}): {field}",
            violations=[{"field": field, "rule": "adapter", "reason": reason.value}],
        )


class UnsupportedProviderError(ProblemDetailError):
    def __init__(self, provider: str, allowed: list[str]):
        super().__init__(
            type_uri=f"{PROBLEM_BASE}/unsupported-provider",
            title="Unsupported Provider",
            status=422,
            detail=f"Provider '{provider}' is not supported. Must be one of: {', '.join(allowed)}",
        )


class ChallengeDefinitionError(ProblemDetailError):
    def __init__(self, detail: str):
        super().__init__(
            type_uri=f"{PROBLEM_BASE}/invalid-challenge-definition",
            title="Invalid Challenge Definition",
            status=422,
            detail=detail,
        )


class LifecycleViolationError(ProblemDetailError):
    """A challenge transition (or join) was attempted out of order."""

    def __init__(self, challenge_id: str, current_state: str, attempted: str, reason: str = ""):
        self.challenge_id = challenge_id
        self.current_state = current_state
        self.attempted = attempted
        detail = f"Challenge '{challenge_id}' in state '{current_state}' cannot {attempted}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(
            type_uri=f"{PROBLEM_BASE}/lifecycle-violation",
            title="Lifecycle Violation",
            status=409,
            detail=detail,
        )


class RequestTooLargeError(ProblemDetailError):
    def __init__(self, count: int, limit: int):
        super().__init__(
            type_uri=f"{PROBLEM_BASE}/too-many-records",
            title="Too Many Records",
            status=413,
            detail=f"Request carries {count} records; the limit is {limit}",
        )
