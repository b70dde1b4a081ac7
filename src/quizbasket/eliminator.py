"""Global eliminator: hard filters applied to the pool before distribution."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from quizbasket.core.config import FilterConfiguration
from quizbasket.core.models import Item
from quizbasket.core.results import FilterStatistic
from quizbasket.filters.base import CompileContext, CompilerRegistry

logger = logging.getLogger(__name__)


@dataclass
class EliminationResult:
    items: list[Item]
    statistics: list[FilterStatistic] = field(default_factory=list)


def _split_scope(
    items: list[Item], scope: Sequence[str] | None
) -> tuple[list[int], list[Item]]:
    if not scope:
        return list(range(len(items))), list(items)
    allowed = frozenset(scope)
    positions = [i for i, item in enumerate(items) if item.source_id in allowed]
    return positions, [items[i] for i in positions]


def apply_global_filters(
    items: Sequence[Item],
    filters: Sequence[FilterConfiguration],
    registry: CompilerRegistry,
    context: CompileContext,
) -> EliminationResult:
    """Run every applicable hard filter over the pool, in order.

    Scoped filters only see items from their target sources; everything else
    passes through and keeps its position.
    """
    current = list(items)
    statistics: list[FilterStatistic] = []

    for config in filters:
        compiler = registry.get(config.kind)
        settings = compiler.parse(config.settings)
        positions, in_scope = _split_scope(current, config.scope)
        if config.scope and not in_scope:
            logger.warning(
                "%s filter scoped to %s matched no items",
                compiler.name,
                list(config.scope),
            )
        outcome = compiler.eliminate(in_scope, settings, context)
        if outcome is None:
            continue

        kept_ids = {id(item) for item in outcome.items}
        dropped = {
            pos for pos, item in zip(positions, in_scope, strict=True)
            if id(item) not in kept_ids
        }
        before = len(current)
        current = [item for i, item in enumerate(current) if i not in dropped]

        details = dict(outcome.details)
        if config.scope:
            details["target_source_ids"] = list(config.scope)
        statistics.append(
            FilterStatistic(
                name=compiler.name,
                before=before,
                after=len(current),
                removed=before - len(current),
                details=details,
            )
        )
        logger.debug(
            "%s filter: %d/%d items kept", compiler.name, len(current), before
        )

    return EliminationResult(items=current, statistics=statistics)
