"""Challenge domain models: definition, lifecycle state, participation.

A ChallengeDefinition is the scoring rule: which canonical field to read,
how to aggregate it over the challenge window, how to compare it with the
target, and how many winners to pick.

Window invariant:
    entry_window.start < entry_window.end <= challenge_window.start < challenge_window.end
"""

import operator
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import AwareDatetime, BaseModel, Field, field_validator, model_validator

from challenge.domain.metrics import MetricField


class Aggregation(StrEnum):
    AVERAGE = "average"
    TOTAL = "total"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"

    def apply(self, values: Sequence[float]) -> float:
        if not values:
            raise ValueError("cannot aggregate an empty sequence")
        if self is Aggregation.AVERAGE:
            return sum(values) / len(values)
        if self is Aggregation.TOTAL:
            return sum(values)
        if self is Aggregation.MINIMUM:
            return min(values)
        return max(values)


class Comparator(StrEnum):
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"
    GT = "gt"
    LT = "lt"

    def compare(self, value: float, target: float) -> bool:
        return _COMPARATOR_OPS[self](value, target)

    @property
    def ranks_descending(self) -> bool | None:
        """True for gte/gt, False for lte/lt, None for eq (no value ordering)."""
        if self in (Comparator.GTE, Comparator.GT):
            return True
        if self in (Comparator.LTE, Comparator.LT):
            return False
        return None


_COMPARATOR_OPS: dict[Comparator, Callable[[float, float], bool]] = {
    Comparator.GTE: operator.ge,
    Comparator.LTE: operator.le,
    Comparator.EQ: operator.eq,
    Comparator.GT: operator.gt,
    Comparator.LT: operator.lt,
}

_COMPARATOR_SYMBOLS = {
    "≥": "gte",
    ">=": "gte",
    "≤": "lte",
    "<=": "lte",
    "=": "eq",
    "==": "eq",
    ">": "gt",
    "<": "lt",
}


class ChallengeState(StrEnum):
    CREATED = "created"
    ENTRY_OPEN = "entry_open"
    ACTIVE = "active"
    COMPLETED = "completed"


class ParticipationStatus(StrEnum):
    ACTIVE = "active"
    WINNER = "winner"
    COMPLETED = "completed"


class TimeWindow(BaseModel):
    model_config = {"frozen": True}

    start: AwareDatetime
    end: AwareDatetime

    @model_validator(mode="after")
    def check_order(self) -> "TimeWindow":
        if self.start >= self.end:
            raise ValueError("window start must be before its end")
        return self

    def contains(self, instant: AwareDatetime) -> bool:
        """Inclusive on both ends."""
        return self.start <= instant <= self.end


class ChallengeDefinition(BaseModel):
    """Scoring rule for one challenge."""

    model_config = {"frozen": True}

    metric_field: MetricField
    aggregation: Aggregation = Aggregation.AVERAGE
    target_value: float
    comparator: Comparator = Comparator.GTE
    winner_count: int = Field(1, ge=1)
    entry_window: TimeWindow
    challenge_window: TimeWindow

    # Descriptive fields
    title: str = ""
    description: str = ""
    challenge_type: str = "health"
    target_unit: str | None = None
    minimum_data_points: int | None = Field(None, ge=1)

    @field_validator("comparator", mode="before")
    @classmethod
    def accept_symbols(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _COMPARATOR_SYMBOLS.get(v.strip(), v)
        return v

    @model_validator(mode="after")
    def check_windows(self) -> "ChallengeDefinition":
        if self.entry_window.end > self.challenge_window.start:
            raise ValueError("challenge_window must not start before entry_window ends")
        return self


class Challenge(BaseModel):
    """A challenge and its lifecycle position. Winners are recorded once, at completion."""

    model_config = {"frozen": True}

    challenge_id: str = Field(..., min_length=1)
    definition: ChallengeDefinition
    state: ChallengeState = ChallengeState.CREATED
    started_at: AwareDatetime | None = None
    completed_at: AwareDatetime | None = None
    winners: tuple[str, ...] | None = None


class Participation(BaseModel):
    """One subject's entry in one challenge.

    calculated_metric_value, data_points_count and meets_requirements are
    recomputed on every evaluation pass, never accumulated.
    """

    model_config = {"frozen": True}

    challenge_id: str
    subject_id: str = Field(..., min_length=1)
    joined_at: AwareDatetime
    status: ParticipationStatus = ParticipationStatus.ACTIVE
    calculated_metric_value: float | None = None
    data_points_count: int = Field(0, ge=0)
    meets_requirements: bool = False


@dataclass(frozen=True)
class Evaluation:
    """Result of scoring one participant. data_points == 0 means insufficient data."""

    value: float | None
    data_points: int
    qualifies: bool

    @property
    def outcome(self) -> str:
        if self.data_points == 0:
            return "insufficient_data"
        return "qualified" if self.qualifies else "not_qualified"


INSUFFICIENT_DATA = Evaluation(value=None, data_points=0, qualifies=False)
