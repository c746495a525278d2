"""Winner selector.

Qualified participants only, ranked by their aggregated value in the
direction the comparator rewards (descending for gte/gt, ascending for
lte/lt; eq has no value ordering). Ties resolve to the earlier joined_at,
then to subject_id, so the ranking is reproducible across runs.

Never more than winner_count winners; never manufactured to fill the quota.
"""

from collections.abc import Sequence

from challenge.domain.models import ChallengeDefinition, Participation


def _ranking_key(descending: bool | None):
    def key(p: Participation):
        if descending is None:
            return (p.joined_at, p.subject_id)
        value = p.calculated_metric_value
        return (-value if descending else value, p.joined_at, p.subject_id)

    return key


def rank_qualified(
    definition: ChallengeDefinition, participations: Sequence[Participation]
) -> list[Participation]:
    """All qualified participations in winning order."""
    qualified = [
        p for p in participations if p.meets_requirements and p.calculated_metric_value is not None
    ]
    return sorted(qualified, key=_ranking_key(definition.comparator.ranks_descending))


def select_winners(
    definition: ChallengeDefinition, participations: Sequence[Participation]
) -> list[str]:
    """Subject ids of the top winner_count qualified participants."""
    ranked = rank_qualified(definition, participations)
    return [p.subject_id for p in ranked[: definition.winner_count]]
