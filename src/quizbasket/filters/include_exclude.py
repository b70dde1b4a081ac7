from abc import abstractmethod
from collections.abc import Sequence
from typing import Any

from pydantic import Field

from quizbasket.baskets import Basket, Matcher, basket_suffix, scoped
from quizbasket.core.models import FilterKind, Item
from quizbasket.filters.base import (
    CompileContext,
    FilterOutcome,
    QuotaCompiler,
    QuotaSettings,
)

MIN_TAG_RANK = 60

# Statuses the editor writes on advanced-mode items.
INCLUDE = "include"
EXCLUDE = "exclude"
OPTIONAL = "optional"


class IncludeExcludeSettings(QuotaSettings):
    included: list[str] = Field(default_factory=list)
    excluded: list[str] = Field(default_factory=list)
    optional: list[str] = Field(default_factory=list)
    show_rates: bool = False
    items: list[dict[str, Any]] = Field(default_factory=list)

    def _labels_with(self, status: str) -> list[str]:
        return [
            str(entry["label"])
            for entry in self.items
            if entry.get("label") and entry.get("status") == status
        ]

    def rules(self) -> tuple[frozenset[str], frozenset[str], frozenset[str]]:
        """(included, excluded, optional) sets.

        With ``show_rates`` the rules come from the per-item statuses instead
        of the top-level lists.
        """
        if self.show_rates and self.items:
            return (
                frozenset(self._labels_with(INCLUDE)),
                frozenset(self._labels_with(EXCLUDE)),
                frozenset(self._labels_with(OPTIONAL)),
            )
        return (
            frozenset(self.included),
            frozenset(self.excluded),
            frozenset(self.optional),
        )


class IncludeExcludeCompiler(QuotaCompiler):
    """Shared include/exclude/optional logic for genre-like attributes."""

    settings_model = IncludeExcludeSettings
    prefix: str

    @abstractmethod
    def values_of(self, item: Item) -> frozenset[str]:
        raise NotImplementedError

    def value_matcher(self, value: str) -> Matcher:
        def _matches(item: Item) -> bool:
            return value in self.values_of(item)

        return _matches

    def build_baskets(
        self,
        settings: IncludeExcludeSettings,
        scope: Sequence[str] | None,
        context: CompileContext,
    ) -> list[Basket]:
        if not settings.show_rates:
            return []
        quotas = {
            str(entry["label"]): entry
            for entry in settings.items
            if entry.get("label") and entry.get("status") != EXCLUDE
        }
        bounds = context.resolve(self.name, quotas, settings, partition=False)
        suffix = basket_suffix(scope)
        baskets = []
        for label in quotas:
            lo, hi = bounds.get(label, (0, 0))
            if hi <= 0:
                continue
            baskets.append(
                Basket(
                    id=f"{self.prefix}-{label}-{suffix}",
                    min=lo,
                    max=hi,
                    matcher=scoped(self.value_matcher(label), scope),
                    label=label,
                )
            )
        return baskets

    def eliminate(
        self,
        items: list[Item],
        settings: IncludeExcludeSettings,
        context: CompileContext,
    ) -> FilterOutcome | None:
        included, excluded, optional = settings.rules()
        if not (included or excluded or optional):
            return None

        def _keep(item: Item) -> bool:
            values = self.values_of(item)
            if not included <= values:
                return False
            if excluded & values:
                return False
            if optional and not optional & values:
                return False
            return True

        return FilterOutcome(
            items=[item for item in items if _keep(item)],
            details={
                "included": sorted(included) or None,
                "excluded": sorted(excluded) or None,
                "optional": sorted(optional) or None,
            },
        )


class GenresCompiler(IncludeExcludeCompiler):
    kind = FilterKind.GENRES
    prefix = "genre"

    def values_of(self, item: Item) -> frozenset[str]:
        return frozenset(item.genres)


class TagsCompiler(IncludeExcludeCompiler):
    kind = FilterKind.TAGS
    prefix = "tag"

    def values_of(self, item: Item) -> frozenset[str]:
        return frozenset(t.name for t in item.tags if t.rank > MIN_TAG_RANK)
