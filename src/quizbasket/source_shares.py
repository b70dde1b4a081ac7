"""Source-share baskets: exact per-source capacities from percentage shares."""

import logging
from collections.abc import Sequence

from quizbasket.baskets import Basket, Matcher
from quizbasket.core.config import SourceShare
from quizbasket.core.models import Item
from quizbasket.core.sampling import round_half_up

logger = logging.getLogger(__name__)


def allocate_source_shares(
    sources: Sequence[SourceShare], target_total: int
) -> dict[str, int]:
    """Round each share to a count so the counts sum to ``target_total``.

    Rounding error is corrected one unit at a time, cycling over sources from
    the largest rounded count down. Counts never go below zero. Sources
    without a percentage are left out.
    """
    percentages: dict[str, float] = {}
    for source in sources:
        if source.percentage is None:
            continue
        percentages[source.source_id] = (
            percentages.get(source.source_id, 0.0) + source.percentage
        )
    if not percentages:
        return {}

    counts = {
        source_id: max(0, round_half_up(target_total * pct / 100))
        for source_id, pct in percentages.items()
    }
    order = sorted(counts, key=lambda source_id: -counts[source_id])
    difference = sum(counts.values()) - target_total
    if difference:
        logger.debug(
            "Source shares sum to %d for target %d; adjusting",
            sum(counts.values()),
            target_total,
        )

    index = 0
    idle = 0
    while difference != 0 and idle < len(order):
        source_id = order[index]
        if difference < 0:
            counts[source_id] += 1
            difference += 1
            idle = 0
        elif counts[source_id] > 0:
            counts[source_id] -= 1
            difference -= 1
            idle = 0
        else:
            idle += 1
        index = (index + 1) % len(order)
    return counts


def source_matcher(source_id: str) -> Matcher:
    def _matches(item: Item) -> bool:
        return item.basket_key == source_id

    return _matches


def build_source_share_baskets(
    sources: Sequence[SourceShare],
    target_total: int,
    *,
    song_selection_active: bool = False,
) -> list[Basket]:
    has_percentages = any(s.percentage is not None for s in sources)
    if song_selection_active and not has_percentages:
        logger.debug(
            "Song selection configured without source percentages; "
            "skipping source-share baskets"
        )
        return []

    baskets = []
    for source_id, count in allocate_source_shares(sources, target_total).items():
        if count <= 0:
            continue
        baskets.append(
            Basket(
                id=f"songList-{source_id}",
                min=count,
                max=count,
                matcher=source_matcher(source_id),
                label=source_id,
            )
        )
    return baskets
