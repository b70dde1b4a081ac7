"""End-to-end generation: eliminate, compile baskets, distribute."""

import logging
from collections.abc import Sequence

from quizbasket.baskets import Basket, basket_statuses, is_admissible
from quizbasket.compiler import compile_baskets
from quizbasket.core.config import Configuration
from quizbasket.core.events import EventSink
from quizbasket.core.models import FilterKind, Item, SelectionMode
from quizbasket.core.results import (
    BasketStatus,
    GenerationResult,
    LoadingError,
)
from quizbasket.core.sampling import derived_rng, generate_seed, shuffled
from quizbasket.distribution import DistributionEngine
from quizbasket.eliminator import apply_global_filters
from quizbasket.filters import (
    CompileContext,
    CompilerRegistry,
    default_registry,
)
from quizbasket.filters.song_types import SongTypeSettings
from quizbasket.source_shares import build_source_share_baskets
from quizbasket.sources import compute_overlap_counts

logger = logging.getLogger(__name__)


def song_selection_active(config: Configuration) -> bool:
    return any(
        SongTypeSettings.model_validate(f.settings).selection_active
        for f in config.filters_of(FilterKind.SONG_TYPES)
    )


def _failed(result: GenerationResult) -> list[BasketStatus]:
    return [s for s in result.basket_status if not s.meets_min]


def _dedupe(items: Sequence[Item]) -> list[Item]:
    seen: set[str] = set()
    unique = []
    for item in items:
        if item.item_id in seen:
            continue
        seen.add(item.item_id)
        unique.append(item)
    return unique


def generate_selection(
    pool: Sequence[Item],
    config: Configuration,
    *,
    source_pool: Sequence[Item] | None = None,
    registry: CompilerRegistry | None = None,
    sink: EventSink | None = None,
    loading_errors: Sequence[LoadingError] = (),
) -> GenerationResult:
    """Produce a selection of ``config.target_total`` items from ``pool``.

    ``source_pool`` is the full multi-source pool used for overlap tiers; it
    defaults to ``pool`` itself. The result never raises on unmet quotas:
    ``success`` is False and ``failed_baskets`` lists the shortfalls.
    """
    registry = registry or default_registry()
    seed = config.seed or generate_seed()
    selection_active = song_selection_active(config)
    rng = derived_rng(seed, "concretize") if config.concretize_ranges else None
    context = CompileContext(
        target_total=config.target_total,
        selection_mode=config.selection_mode,
        rng=rng,
    )
    result = GenerationResult(
        seed_used=seed,
        target_count=config.target_total,
        source_item_count=len(pool),
        loading_errors=list(loading_errors),
    )

    baskets: list[Basket]
    if config.use_entire_pool:
        eligible = list(pool)
        baskets = []
    else:
        elimination = apply_global_filters(
            pool, config.filters, registry, context
        )
        eligible = elimination.items
        result.filter_statistics = elimination.statistics
        baskets = compile_baskets(config.filters, registry, context)
    baskets.extend(
        build_source_share_baskets(
            config.sources,
            config.target_total,
            song_selection_active=selection_active,
        )
    )
    result.eligible_item_count = len(eligible)
    result.warnings = list(context.warnings)

    if not eligible:
        logger.warning(
            "No items left after filtering %d source items", len(pool)
        )
        result.warnings.append("No eligible items after filtering")
        result.basket_status = basket_statuses(baskets)
        result.failed_baskets = _failed(result)
        return result

    if config.training_mode:
        selected = _dedupe(
            [item for item in eligible if is_admissible(item, baskets)]
        )
        result.selected_items = selected
        result.final_count = len(selected)
        result.success = True
        logger.info(
            "Training mode: returning %d admissible items", len(selected)
        )
        return result

    overlap_counts = compute_overlap_counts(
        source_pool if source_pool is not None else pool
    )
    engine = DistributionEngine(
        duplicate_policy=config.duplicate_policy,
        selection_mode=config.selection_mode,
        max_attempts=config.max_attempts,
        sink=sink,
    )
    outcome = engine.distribute(
        eligible, baskets, config.target_total, seed, overlap_counts
    )

    selected = outcome.selected
    keeps_tier_order = config.selection_mode is SelectionMode.MANY_SOURCES
    if selection_active and not keeps_tier_order:
        selected = shuffled(selected, derived_rng(seed, "final-shuffle"))

    result.selected_items = selected
    result.final_count = len(selected)
    result.attempts = outcome.attempts
    result.success = outcome.success
    result.basket_status = basket_statuses(baskets)
    result.failed_baskets = _failed(result)

    logger.info(
        "Selected %d/%d items (seed=%s, attempts=%d, success=%s)",
        result.final_count,
        result.target_count,
        seed,
        result.attempts,
        result.success,
    )
    for status in result.failed_baskets:
        logger.info(
            "Basket %s under minimum: %d/%d",
            status.id,
            status.current,
            status.min,
        )
    return result


def quota_report(
    result: GenerationResult,
) -> list[tuple[str, int, int, int, str]]:
    return [
        (
            status.id,
            status.min,
            status.max,
            status.current,
            "OK" if status.meets_min else "UNDER",
        )
        for status in result.basket_status
    ]
