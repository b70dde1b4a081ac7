from collections.abc import Sequence
from typing import Any

from pydantic import Field

from quizbasket.baskets import Basket, Matcher, basket_suffix, scoped
from quizbasket.core.models import FilterKind, Item
from quizbasket.filters.base import (
    CompileContext,
    FilterOutcome,
    QuotaCompiler,
    ViewModeSettings,
    with_overrides,
)


class AnimeTypeSettings(ViewModeSettings):
    enabled: list[str] = Field(default_factory=list)
    rebroadcast: bool = True
    dubbed: bool = True
    types: dict[str, Any] = Field(default_factory=dict)
    types_ranges: dict[str, Any] = Field(default_factory=dict)


def anime_type_matcher(anime_type: str) -> Matcher:
    wanted = anime_type.lower()

    def _matches(item: Item) -> bool:
        return item.anime_type.lower() == wanted

    return _matches


class AnimeTypeCompiler(QuotaCompiler):
    kind = FilterKind.ANIME_TYPE
    settings_model = AnimeTypeSettings

    def build_baskets(
        self,
        settings: AnimeTypeSettings,
        scope: Sequence[str] | None,
        context: CompileContext,
    ) -> list[Basket]:
        if settings.view_mode != "advanced":
            return []
        quotas = with_overrides(settings.types, settings.types_ranges)
        bounds = context.resolve("anime type", quotas, settings)
        suffix = basket_suffix(scope)
        baskets = []
        for anime_type in quotas:
            lo, hi = bounds.get(anime_type, (0, 0))
            if hi <= 0:
                continue
            baskets.append(
                Basket(
                    id=f"animeType-{anime_type.lower()}-{suffix}",
                    min=lo,
                    max=hi,
                    matcher=scoped(anime_type_matcher(anime_type), scope),
                    label=anime_type,
                )
            )
        return baskets

    def eliminate(
        self,
        items: list[Item],
        settings: AnimeTypeSettings,
        context: CompileContext,
    ) -> FilterOutcome | None:
        if settings.view_mode != "basic" or not settings.enabled:
            return None
        enabled = {name.lower() for name in settings.enabled}

        def _keep(item: Item) -> bool:
            if item.anime_type.lower() not in enabled:
                return False
            if not settings.rebroadcast and item.is_rebroadcast:
                return False
            if not settings.dubbed and item.is_dub:
                return False
            return True

        return FilterOutcome(
            items=[item for item in items if _keep(item)],
            details={
                "enabled": sorted(enabled),
                "rebroadcast": settings.rebroadcast,
                "dubbed": settings.dubbed,
            },
        )
