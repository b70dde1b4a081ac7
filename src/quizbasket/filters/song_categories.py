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
)


class SongCategorySettings(ViewModeSettings):
    enabled: dict[str, dict[str, bool]] | None = None
    categories: dict[str, dict[str, Any]] = Field(default_factory=dict)
    categories_ranges: dict[str, dict[str, Any]] = Field(default_factory=dict)


def category_matcher(song_type: str, category: str) -> Matcher:
    wanted = category.lower()

    def _matches(item: Item) -> bool:
        return (
            item.song_type_group == song_type
            and item.song_category.lower() == wanted
        )

    return _matches


class SongCategoriesCompiler(QuotaCompiler):
    kind = FilterKind.SONG_CATEGORIES
    settings_model = SongCategorySettings

    def build_baskets(
        self,
        settings: SongCategorySettings,
        scope: Sequence[str] | None,
        context: CompileContext,
    ) -> list[Basket]:
        if settings.view_mode != "advanced":
            return []
        quotas: dict[str, Any] = {}
        keys: dict[str, tuple[str, str]] = {}
        for song_type, per_category in settings.categories.items():
            overrides = settings.categories_ranges.get(song_type, {})
            for category, raw in per_category.items():
                label = f"{song_type}-{category}"
                quotas[label] = overrides.get(category) or raw
                keys[label] = (song_type, category)

        bounds = context.resolve("song categories", quotas, settings)
        suffix = basket_suffix(scope)
        baskets = []
        for label, (song_type, category) in keys.items():
            lo, hi = bounds.get(label, (0, 0))
            if hi <= 0:
                continue
            baskets.append(
                Basket(
                    id=f"category-{label}-{suffix}",
                    min=lo,
                    max=hi,
                    matcher=scoped(category_matcher(song_type, category), scope),
                    label=label,
                )
            )
        return baskets

    def eliminate(
        self,
        items: list[Item],
        settings: SongCategorySettings,
        context: CompileContext,
    ) -> FilterOutcome | None:
        if settings.view_mode != "basic" or settings.enabled is None:
            return None
        enabled = settings.enabled

        def _keep(item: Item) -> bool:
            group = item.song_type_group
            if group is None:
                return False
            category = item.song_category.lower()
            return enabled.get(group, {}).get(category) is True

        return FilterOutcome(
            items=[item for item in items if _keep(item)],
            details={"enabled_groups": sorted(enabled)},
        )
