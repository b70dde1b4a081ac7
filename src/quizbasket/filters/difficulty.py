from collections.abc import Sequence
from typing import Any

from pydantic import Field

from quizbasket.baskets import Basket, Matcher, basket_suffix, scoped
from quizbasket.core.models import FilterKind, Item
from quizbasket.filters.base import (
    CompileContext,
    QuotaCompiler,
    ViewModeSettings,
)

# Inclusive difficulty windows for the basic tiers.
BASIC_TIERS: dict[str, tuple[float, float]] = {
    "easy": (60, 100),
    "medium": (25, 60),
    "hard": (0, 25),
}


class DifficultySettings(ViewModeSettings):
    difficulties: dict[str, Any] = Field(default_factory=dict)
    ranges: list[dict[str, Any]] = Field(default_factory=list)


def difficulty_matcher(lo: float, hi: float) -> Matcher:
    def _matches(item: Item) -> bool:
        return item.difficulty is not None and lo <= item.difficulty <= hi

    return _matches


def _window(raw: dict[str, Any]) -> tuple[float, float] | None:
    lo, hi = raw.get("from"), raw.get("to")
    if not isinstance(lo, (int, float)) or not isinstance(hi, (int, float)):
        return None
    return (min(lo, hi), max(lo, hi))


class DifficultyCompiler(QuotaCompiler):
    kind = FilterKind.SONG_DIFFICULTY
    settings_model = DifficultySettings

    def build_baskets(
        self,
        settings: DifficultySettings,
        scope: Sequence[str] | None,
        context: CompileContext,
    ) -> list[Basket]:
        if settings.view_mode == "advanced":
            windows: dict[str, tuple[float, float]] = {}
            quotas: dict[str, Any] = {}
            for raw in settings.ranges:
                window = _window(raw)
                if window is None:
                    continue
                label = f"{window[0]:g}-{window[1]:g}"
                windows[label] = window
                quotas[label] = raw.get(
                    "songCountRange", raw.get("songCount", raw)
                )
        else:
            windows = dict(BASIC_TIERS)
            quotas = {
                tier: settings.difficulties[tier]
                for tier in BASIC_TIERS
                if tier in settings.difficulties
            }

        bounds = context.resolve("difficulty", quotas, settings)
        suffix = basket_suffix(scope)
        baskets = []
        for label, (lo, hi) in windows.items():
            quota_lo, quota_hi = bounds.get(label, (0, 0))
            if quota_hi <= 0:
                continue
            baskets.append(
                Basket(
                    id=f"difficulty-{label}-{suffix}",
                    min=quota_lo,
                    max=quota_hi,
                    matcher=scoped(difficulty_matcher(lo, hi), scope),
                    label=label,
                )
            )
        return baskets
