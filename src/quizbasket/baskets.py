"""Basket definitions: named [min, max] capacity constraints over items."""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from quizbasket.core.models import Item
from quizbasket.core.results import BasketStatus
from quizbasket.core.sampling import round_half_up

Matcher = Callable[[Item], bool]


class BasketKind(str, Enum):
    SONG_TYPE = "songType"
    SONG_SELECTION = "songSelection"
    DIFFICULTY = "difficulty"
    ANIME_TYPE = "animeType"
    VINTAGE = "vintage"
    CATEGORY = "category"
    PLAYER_SCORE = "playerScore"
    ANIME_SCORE = "animeScore"
    GENRE = "genre"
    TAG = "tag"
    SONG_LIST = "songList"
    OTHER = "other"

    @property
    def constrains_admissibility(self) -> bool:
        return self not in _QUOTA_ONLY_KINDS


# Kinds that only count toward capacity. An item that matches none of them
# is still admissible.
_QUOTA_ONLY_KINDS = frozenset({BasketKind.OTHER, BasketKind.SONG_SELECTION})


def basket_kind(basket_id: str) -> BasketKind:
    prefix, sep, _ = basket_id.partition("-")
    if not sep:
        return BasketKind.OTHER
    try:
        return BasketKind(prefix)
    except ValueError:
        return BasketKind.OTHER


def basket_suffix(scope: Sequence[str] | None) -> str:
    if not scope:
        return "all"
    return "+".join(scope)


def scoped(matcher: Matcher, scope: Sequence[str] | None) -> Matcher:
    """Restrict a matcher to items whose basket source is in ``scope``."""
    if not scope:
        return matcher
    allowed = frozenset(scope)

    def _matches(item: Item) -> bool:
        return item.basket_key in allowed and matcher(item)

    return _matches


@dataclass
class Basket:
    id: str
    min: int
    max: int
    matcher: Matcher = field(repr=False)
    current: int = 0
    label: str = ""

    def __post_init__(self) -> None:
        self.max = max(0, int(self.max))
        self.min = min(max(0, int(self.min)), self.max)

    @property
    def kind(self) -> BasketKind:
        return basket_kind(self.id)

    def matches(self, item: Item) -> bool:
        return self.matcher(item)

    def needs_minimum(self) -> bool:
        return self.current < self.min

    def has_space(self) -> bool:
        return self.current < self.max

    def meets_minimum(self) -> bool:
        return self.current >= self.min

    def reset(self) -> None:
        self.current = 0

    def status(self) -> BasketStatus:
        percent = round_half_up(self.current / self.max * 100) if self.max else 0
        return BasketStatus(
            id=self.id,
            current=self.current,
            min=self.min,
            max=self.max,
            meets_min=self.meets_minimum(),
            percent_of_max=percent,
        )


def constraining_kinds(baskets: Iterable[Basket]) -> frozenset[BasketKind]:
    return frozenset(
        b.kind for b in baskets if b.kind.constrains_admissibility
    )


def is_admissible_profile(
    matched: Iterable[Basket],
    required_kinds: frozenset[BasketKind],
    any_baskets: bool,
) -> bool:
    """Check a precomputed set of matched baskets against the system.

    With no baskets every item is admissible. Otherwise the item must match
    at least one basket, and one basket of each constraining kind present.
    """
    if not any_baskets:
        return True
    kinds = {b.kind for b in matched}
    if not kinds:
        return False
    return required_kinds <= kinds


def is_admissible(item: Item, baskets: Sequence[Basket]) -> bool:
    matched = [b for b in baskets if b.matches(item)]
    return is_admissible_profile(
        matched, constraining_kinds(baskets), bool(baskets)
    )


def basket_statuses(baskets: Iterable[Basket]) -> list[BasketStatus]:
    return [b.status() for b in baskets]
