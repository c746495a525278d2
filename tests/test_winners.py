"""Tests for winner selection: ordering, cap, tie-breaks."""

from datetime import timedelta

import pytest

from challenge.domain.models import Participation
from challenge.winners import rank_qualified, select_winners
from tests.conftest import ENTRY_START, make_definition


def _scored(subject_id: str, value: float | None, qualifies: bool = True, minutes: int = 0):
    return Participation(
        challenge_id="c-1",
        subject_id=subject_id,
        joined_at=ENTRY_START + timedelta(minutes=minutes),
        calculated_metric_value=value,
        data_points_count=0 if value is None else 5,
        meets_requirements=qualifies,
    )


class TestSelectWinners:
    def test_descending_for_gte(self):
        definition = make_definition(comparator="gte", winner_count=2)
        cohort = [_scored("a", 86.0), _scored("b", 92.0), _scored("c", 89.0)]
        assert select_winners(definition, cohort) == ["b", "c"]

    def test_ascending_for_lte(self):
        definition = make_definition(
            metric_field="sleep_latency", comparator="lte", target_value=900, winner_count=2
        )
        cohort = [_scored("a", 600.0), _scored("b", 300.0), _scored("c", 840.0)]
        assert select_winners(definition, cohort) == ["b", "a"]

    def test_never_more_than_winner_count(self):
        definition = make_definition(winner_count=3)
        cohort = [_scored(f"s{i}", 90.0 + i, minutes=i) for i in range(10)]
        winners = select_winners(definition, cohort)
        assert len(winners) == 3
        assert winners == ["s9", "s8", "s7"]

    def test_fewer_qualified_than_winner_count(self):
        definition = make_definition(winner_count=3)
        cohort = [_scored("a", 90.0), _scored("b", 60.0, qualifies=False), _scored("c", None, False)]
        assert select_winners(definition, cohort) == ["a"]

    def test_no_qualified_participants(self):
        definition = make_definition(winner_count=3)
        cohort = [_scored("a", 60.0, qualifies=False), _scored("b", None, qualifies=False)]
        assert select_winners(definition, cohort) == []

    def test_tie_broken_by_earlier_join(self):
        definition = make_definition(winner_count=1)
        cohort = [_scored("late", 90.0, minutes=30), _scored("early", 90.0, minutes=5)]
        assert select_winners(definition, cohort) == ["early"]

    def test_full_tie_broken_by_subject_id(self):
        definition = make_definition(winner_count=2)
        cohort = [_scored("zed", 90.0), _scored("amy", 90.0), _scored("kim", 90.0)]
        assert select_winners(definition, cohort) == ["amy", "kim"]

    def test_eq_orders_by_join_time(self):
        definition = make_definition(comparator="eq", target_value=90, winner_count=2)
        cohort = [_scored("a", 90.0, minutes=20), _scored("b", 90.0, minutes=10), _scored("c", 90.0)]
        assert select_winners(definition, cohort) == ["c", "b"]

    @pytest.mark.parametrize("order", [[0, 1, 2, 3], [3, 2, 1, 0], [2, 0, 3, 1]])
    def test_input_order_irrelevant(self, order):
        definition = make_definition(winner_count=2)
        base = [_scored("a", 88.0), _scored("b", 91.0), _scored("c", 91.0, minutes=1), _scored("d", 70.0)]
        cohort = [base[i] for i in order]
        assert select_winners(definition, cohort) == ["b", "c"]


class TestRankQualified:
    def test_excludes_non_qualified(self):
        definition = make_definition()
        cohort = [_scored("a", 90.0), _scored("b", 95.0, qualifies=False)]
        assert [p.subject_id for p in rank_qualified(definition, cohort)] == ["a"]
