"""Player and anime score filters.

Both work on a normalized 1-10 integer scale. Without per-score counts the
filter is a hard range check. With counts it becomes a set of exact baskets
plus a "remaining" basket for the rest of the range, or a single aggregate
basket when the selection mode ranks items by source overlap.
"""

from abc import abstractmethod
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import Field

from quizbasket.baskets import Basket, Matcher, basket_suffix, scoped
from quizbasket.core.models import FilterKind, Item, QuotaMode
from quizbasket.core.sampling import round_half_up
from quizbasket.filters.base import (
    CompileContext,
    FilterOutcome,
    QuotaCompiler,
    QuotaSettings,
)

SCORE_CEILING = 10


def normalize_player_score(score: float | None) -> int | None:
    if score is None:
        return None
    if score == 0:
        return 1
    return round_half_up(score)


def normalize_anime_score(average_score: float | None) -> int | None:
    """Map a 0-100 average score onto the 1-10 scale."""
    if average_score is None:
        return None
    score = average_score / 10
    if score == 0:
        return 1
    return round_half_up(score)


class ScoreSettings(QuotaSettings):
    min: int | None = None
    max: int | None = None
    disabled: list[int] = Field(default_factory=list)
    counts: dict[str, Any] = Field(default_factory=dict)
    percentages: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_distribution(self) -> bool:
        return bool(self.counts) or bool(self.percentages)


class ScoreCompiler(QuotaCompiler):
    prefix: str
    default_min: int

    @abstractmethod
    def score_of(self, item: Item) -> int | None:
        raise NotImplementedError

    def _score_matcher(self, test: Callable[[int], bool]) -> Matcher:
        def _matches(item: Item) -> bool:
            score = self.score_of(item)
            return score is not None and test(score)

        return _matches

    def build_baskets(
        self,
        settings: ScoreSettings,
        scope: Sequence[str] | None,
        context: CompileContext,
    ) -> list[Basket]:
        if not settings.has_distribution:
            return []
        suffix = basket_suffix(scope)
        lo = settings.min or self.default_min
        hi = settings.max or SCORE_CEILING
        disabled = frozenset(settings.disabled)

        if context.selection_mode.is_tiered:
            return [
                Basket(
                    id=f"{self.prefix}-aggregate-{lo}-{hi}-{suffix}",
                    min=0,
                    max=context.target_total,
                    matcher=scoped(
                        self._score_matcher(lambda s: lo <= s <= hi), scope
                    ),
                    label=f"{lo}-{hi}",
                )
            ]

        if settings.counts:
            quotas, mode = settings.counts, QuotaMode.COUNT
        else:
            quotas, mode = settings.percentages, QuotaMode.PERCENTAGE
        bounds = context.resolve(
            self.name,
            quotas,
            settings.model_copy(update={"mode": mode}),
            partition=False,
        )

        baskets = []
        explicit: set[int] = set()
        sum_lo = sum_hi = 0
        for label, (count_lo, count_hi) in bounds.items():
            try:
                score = int(label)
            except ValueError:
                continue
            explicit.add(score)
            sum_lo += count_lo
            sum_hi += count_hi
            if count_hi <= 0:
                continue
            baskets.append(
                Basket(
                    id=f"{self.prefix}-{score}-{suffix}",
                    min=count_lo,
                    max=count_hi,
                    matcher=scoped(
                        self._score_matcher(
                            lambda s, score=score: s == score
                            and s not in disabled
                        ),
                        scope,
                    ),
                    label=str(score),
                )
            )

        remaining_max = context.target_total - sum_lo
        if remaining_max > 0:
            baskets.append(
                Basket(
                    id=f"{self.prefix}-remaining-{suffix}",
                    min=max(0, context.target_total - sum_hi),
                    max=remaining_max,
                    matcher=scoped(
                        self._score_matcher(
                            lambda s: lo <= s <= hi
                            and s not in explicit
                            and s not in disabled
                        ),
                        scope,
                    ),
                    label="remaining",
                )
            )
        return baskets

    def eliminate(
        self,
        items: list[Item],
        settings: ScoreSettings,
        context: CompileContext,
    ) -> FilterOutcome | None:
        if settings.has_distribution:
            return None
        lo = settings.min if settings.min is not None else 1
        hi = settings.max if settings.max is not None else SCORE_CEILING
        disabled = frozenset(settings.disabled)
        full_range = lo == 1 and hi == SCORE_CEILING

        def _keep(item: Item) -> bool:
            score = self.score_of(item)
            if score is None:
                return full_range
            return lo <= score <= hi and score not in disabled

        return FilterOutcome(
            items=[item for item in items if _keep(item)],
            details={"range": f"{lo}-{hi}", "disabled": sorted(disabled)},
        )


class PlayerScoreCompiler(ScoreCompiler):
    kind = FilterKind.PLAYER_SCORE
    settings_model = ScoreSettings
    prefix = "playerScore"
    default_min = 1

    def score_of(self, item: Item) -> int | None:
        return normalize_player_score(item.player_score)


class AnimeScoreCompiler(ScoreCompiler):
    kind = FilterKind.ANIME_SCORE
    settings_model = ScoreSettings
    prefix = "animeScore"
    default_min = 2

    def score_of(self, item: Item) -> int | None:
        return normalize_anime_score(item.anime_score)
