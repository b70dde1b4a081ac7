from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SEASONS = ("Winter", "Spring", "Summer", "Fall")
DEFAULT_VINTAGE = ("Winter", 1944)


class DuplicatePolicy(str, Enum):
    STRICT = "strict"
    PROBABILISTIC = "probabilistic"


class SelectionMode(str, Enum):
    DEFAULT = "default"
    MANY_SOURCES = "many-sources"
    FEW_SOURCES = "few-sources"

    @property
    def is_tiered(self) -> bool:
        return self is not SelectionMode.DEFAULT


class QuotaMode(str, Enum):
    COUNT = "count"
    PERCENTAGE = "percentage"


class FilterKind(str, Enum):
    SONG_TYPES = "songs-and-types"
    SONG_DIFFICULTY = "song-difficulty"
    VINTAGE = "vintage"
    ANIME_TYPE = "anime-type"
    SONG_CATEGORIES = "song-categories"
    PLAYER_SCORE = "player-score"
    ANIME_SCORE = "anime-score"
    GENRES = "genres"
    TAGS = "tags"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Tag(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    name: str
    rank: int = Field(default=0, description="Relevance rank, 0-100")


class Item(CamelModel):
    """A single candidate song as loaded from a source pool.

    Items are frozen. Source tagging produces copies via ``with_source``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    item_id: str = Field(description="Stable identity key of the song")
    name: str = ""
    artist: str = ""
    anime_id: str | None = Field(
        default=None, description="Parent show identity used for duplicates"
    )
    anime_name: str = ""
    song_type: str = Field(
        default="", description="e.g. 'Opening 2', 'Ending 1', 'Insert Song'"
    )
    song_category: str = Field(
        default="", description="standard, instrumental, chanting or character"
    )
    difficulty: float | None = Field(default=None, description="0-100")
    anime_type: str = Field(default="", description="TV, Movie, OVA, ...")
    vintage: str = Field(default="", description="'<Season> <Year>'")
    player_score: float | None = Field(default=None, description="0-10")
    anime_score: float | None = Field(
        default=None, description="Average score on a 0-100 scale"
    )
    genres: tuple[str, ...] = ()
    tags: tuple[Tag, ...] = ()
    is_dub: bool = False
    is_rebroadcast: bool = False

    source_id: str | None = None
    basket_source_id: str | None = None
    selection_class: str | None = Field(
        default=None, description="Song selection bucket: random or watched"
    )
    source_info: str | None = None

    @field_validator("item_id", "anime_id", mode="before")
    @classmethod
    def _coerce_identity(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def group_key(self) -> str:
        return self.anime_id or self.anime_name or self.item_id

    @property
    def basket_key(self) -> str | None:
        return self.basket_source_id or self.source_id

    @property
    def song_type_group(self) -> str | None:
        if "Opening" in self.song_type:
            return "openings"
        if "Ending" in self.song_type:
            return "endings"
        if "Insert" in self.song_type:
            return "inserts"
        return None

    @property
    def vintage_ordinal(self) -> int:
        season, year = parse_vintage(self.vintage)
        return vintage_ordinal(season, year)

    def with_source(
        self,
        source_id: str,
        basket_source_id: str | None = None,
        selection_class: str | None = None,
        source_info: str | None = None,
    ) -> "Item":
        update: dict[str, Any] = {
            "source_id": source_id,
            "basket_source_id": basket_source_id or source_id,
        }
        if selection_class is not None:
            update["selection_class"] = selection_class
        if source_info is not None:
            update["source_info"] = source_info
        return self.model_copy(update=update)


def parse_vintage(vintage: str | None) -> tuple[str, int]:
    """Parse '<Season> <Year>' into (season, year).

    Missing or malformed values fall back to Winter 1944 so they sort before
    every real release.
    """
    if not vintage:
        return DEFAULT_VINTAGE
    parts = vintage.split()
    if len(parts) != 2:
        return DEFAULT_VINTAGE
    season, year_text = parts
    if season not in SEASONS:
        return DEFAULT_VINTAGE
    try:
        year = int(year_text)
    except ValueError:
        return DEFAULT_VINTAGE
    return season, year


def vintage_ordinal(season: str, year: int) -> int:
    index = SEASONS.index(season) if season in SEASONS else 0
    return year * 4 + index
