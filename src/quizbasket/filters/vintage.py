from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from quizbasket.allocation import entry_from_setting
from quizbasket.baskets import Basket, Matcher, basket_suffix, scoped
from quizbasket.core.models import SEASONS, FilterKind, Item, vintage_ordinal
from quizbasket.filters.base import (
    CompileContext,
    FilterOutcome,
    QuotaCompiler,
    QuotaSettings,
)


class Season(BaseModel):
    season: str = "Winter"
    year: int = 1944

    @property
    def ordinal(self) -> int:
        return vintage_ordinal(self.season, self.year)

    @property
    def label(self) -> str:
        return f"{self.season}{self.year}"


class VintageRange(BaseModel):
    from_: Season = Field(default_factory=Season, alias="from")
    to: Season = Field(
        default_factory=lambda: Season(season=SEASONS[-1], year=9999)
    )
    quota: Any = None

    @property
    def label(self) -> str:
        return f"{self.from_.label}-{self.to.label}"


class VintageSettings(QuotaSettings):
    ranges: list[dict[str, Any]] = Field(default_factory=list)

    def parsed_ranges(self) -> list[VintageRange]:
        out = []
        for raw in self.ranges:
            quota = raw.get("valueRange", raw.get("value"))
            if quota is None and any(k in raw for k in ("min", "max", "count")):
                quota = raw
            data: dict[str, Any] = {"quota": quota}
            for key in ("from", "to"):
                if isinstance(raw.get(key), dict):
                    data[key] = raw[key]
            out.append(VintageRange.model_validate(data))
        return out


def vintage_matcher(window: VintageRange) -> Matcher:
    lo, hi = window.from_.ordinal, window.to.ordinal

    def _matches(item: Item) -> bool:
        return lo <= item.vintage_ordinal <= hi

    return _matches


class VintageCompiler(QuotaCompiler):
    kind = FilterKind.VINTAGE
    settings_model = VintageSettings

    def build_baskets(
        self,
        settings: VintageSettings,
        scope: Sequence[str] | None,
        context: CompileContext,
    ) -> list[Basket]:
        windows = {w.label: w for w in settings.parsed_ranges()}
        quotas = {
            label: w.quota for label, w in windows.items() if w.quota is not None
        }
        bounds = context.resolve("vintage", quotas, settings)
        suffix = basket_suffix(scope)
        baskets = []
        for label, window in windows.items():
            lo, hi = bounds.get(label, (0, 0))
            if hi <= 0:
                continue
            baskets.append(
                Basket(
                    id=f"vintage-{label}-{suffix}",
                    min=lo,
                    max=hi,
                    matcher=scoped(vintage_matcher(window), scope),
                    label=label,
                )
            )
        return baskets

    def eliminate(
        self,
        items: list[Item],
        settings: VintageSettings,
        context: CompileContext,
    ) -> FilterOutcome | None:
        # Ranges without any quota act as a plain allow-list.
        windows = settings.parsed_ranges()
        if not windows:
            return None
        if any(
            entry_from_setting(w.label, w.quota, settings.mode) is not None
            for w in windows
        ):
            return None
        matchers = [vintage_matcher(w) for w in windows]
        kept = [item for item in items if any(m(item) for m in matchers)]
        return FilterOutcome(
            items=kept, details={"ranges": [w.label for w in windows]}
        )
