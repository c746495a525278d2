"""Predefined sleep challenges.

Entry opens at `now` and closes a day later; tracking runs from day two to
day seven.
"""

from datetime import datetime, timedelta

from challenge.domain.metrics import MetricField
from challenge.domain.models import Aggregation, ChallengeDefinition, Comparator, TimeWindow

NINE_HOURS_SECONDS = 9 * 60 * 60


def predefined_sleep_challenges(now: datetime) -> list[ChallengeDefinition]:
    entry = TimeWindow(start=now, end=now + timedelta(days=1))
    tracking = TimeWindow(start=now + timedelta(days=2), end=now + timedelta(days=7))

    return [
        ChallengeDefinition(
            title="Sleep Efficiency Master",
            description="Achieve an average sleep efficiency of 85% or higher over 7 days",
            challenge_type="sleep_efficiency",
            metric_field=MetricField.SLEEP_EFFICIENCY,
            aggregation=Aggregation.AVERAGE,
            target_value=85,
            target_unit="percentage",
            comparator=Comparator.GTE,
            winner_count=3,
            minimum_data_points=5,
            entry_window=entry,
            challenge_window=tracking,
        ),
        ChallengeDefinition(
            title="9-Hour Sleep Challenge",
            description="Sleep 9 hours or more per night on average over 7 days",
            challenge_type="sleep_duration",
            metric_field=MetricField.TOTAL_SLEEP_DURATION,
            aggregation=Aggregation.AVERAGE,
            target_value=NINE_HOURS_SECONDS,
            target_unit="seconds",
            comparator=Comparator.GTE,
            winner_count=3,
            minimum_data_points=5,
            entry_window=entry,
            challenge_window=tracking,
        ),
    ]
