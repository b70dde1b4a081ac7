import logging
from collections.abc import Sequence

from quizbasket.baskets import Basket
from quizbasket.core.config import FilterConfiguration
from quizbasket.filters.base import CompileContext, CompilerRegistry

logger = logging.getLogger(__name__)


def compile_baskets(
    filters: Sequence[FilterConfiguration],
    registry: CompilerRegistry,
    context: CompileContext,
) -> list[Basket]:
    """Translate every filter's quota settings into baskets.

    Basket ids are unique. A later filter producing an id already in use
    (same kind, label and scope) replaces the earlier basket.
    """
    by_id: dict[str, Basket] = {}
    for config in filters:
        compiler = registry.get(config.kind)
        settings = compiler.parse(config.settings)
        baskets = compiler.build_baskets(settings, config.scope, context)
        for basket in baskets:
            if basket.id in by_id:
                logger.debug("Basket %s redefined by a later filter", basket.id)
            by_id[basket.id] = basket
        logger.debug(
            "%s filter produced %d basket(s)", compiler.name, len(baskets)
        )
    return list(by_id.values())
