from collections.abc import Sequence
from typing import Any

from pydantic import Field

from quizbasket.baskets import Basket, Matcher, basket_suffix, scoped
from quizbasket.core.models import FilterKind, Item
from quizbasket.filters.base import (
    CompileContext,
    QuotaCompiler,
    QuotaSettings,
    with_overrides,
)

SONG_TYPES = ("openings", "endings", "inserts")
SELECTION_CLASSES = ("random", "watched")


class SongTypeSettings(QuotaSettings):
    types: dict[str, Any] = Field(default_factory=dict)
    types_ranges: dict[str, Any] = Field(default_factory=dict)
    song_selection: dict[str, Any] = Field(default_factory=dict)
    song_selection_ranges: dict[str, Any] = Field(default_factory=dict)

    @property
    def selection_active(self) -> bool:
        return any(
            _positive(self.song_selection.get(name)) for name in SELECTION_CLASSES
        )


def _positive(raw: Any) -> bool:
    if isinstance(raw, dict):
        return any(
            isinstance(v, (int, float)) and not isinstance(v, bool) and v > 0
            for k, v in raw.items()
            if k != "enabled"
        )
    return isinstance(raw, (int, float)) and not isinstance(raw, bool) and raw > 0


def song_type_matcher(song_type: str) -> Matcher:
    def _matches(item: Item) -> bool:
        return item.song_type_group == song_type

    return _matches


def selection_matcher(selection_class: str) -> Matcher:
    def _matches(item: Item) -> bool:
        return item.selection_class == selection_class

    return _matches


class SongTypesCompiler(QuotaCompiler):
    kind = FilterKind.SONG_TYPES
    settings_model = SongTypeSettings

    def build_baskets(
        self,
        settings: SongTypeSettings,
        scope: Sequence[str] | None,
        context: CompileContext,
    ) -> list[Basket]:
        suffix = basket_suffix(scope)
        baskets: list[Basket] = []

        type_bounds = context.resolve(
            "song types",
            with_overrides(settings.types, settings.types_ranges),
            settings,
        )
        for song_type in SONG_TYPES:
            lo, hi = type_bounds.get(song_type, (0, 0))
            if hi <= 0:
                continue
            baskets.append(
                Basket(
                    id=f"songType-{song_type}-{suffix}",
                    min=lo,
                    max=hi,
                    matcher=scoped(song_type_matcher(song_type), scope),
                    label=song_type,
                )
            )

        selection_bounds = context.resolve(
            "song selection",
            with_overrides(
                settings.song_selection, settings.song_selection_ranges
            ),
            settings,
        )
        for selection_class in SELECTION_CLASSES:
            lo, hi = selection_bounds.get(selection_class, (0, 0))
            if hi <= 0:
                continue
            baskets.append(
                Basket(
                    id=f"songSelection-{selection_class}-{suffix}",
                    min=lo,
                    max=hi,
                    matcher=scoped(selection_matcher(selection_class), scope),
                    label=selection_class,
                )
            )
        return baskets
