import random
from typing import Any

import pytest

from helpers import make_item
from quizbasket.baskets import Basket
from quizbasket.core.models import FilterKind, Item, SelectionMode, Tag
from quizbasket.filters import (
    CompileContext,
    CompilerRegistry,
    default_registry,
    normalize_anime_score,
    normalize_player_score,
)
from quizbasket.filters.base import ViewModeSettings
from quizbasket.filters.include_exclude import IncludeExcludeCompiler
from quizbasket.filters.scores import ScoreCompiler


def _context(
    target: int = 10,
    mode: SelectionMode = SelectionMode.DEFAULT,
    rng: random.Random | None = None,
) -> CompileContext:
    return CompileContext(target_total=target, selection_mode=mode, rng=rng)


def _baskets(
    kind: FilterKind,
    settings: dict[str, Any],
    context: CompileContext | None = None,
    scope: tuple[str, ...] | None = None,
) -> dict[str, Basket]:
    compiler = default_registry().get(kind)
    parsed = compiler.parse(settings)
    built = compiler.build_baskets(parsed, scope, context or _context())
    return {b.id: b for b in built}


def _kept(
    kind: FilterKind, settings: dict[str, Any], items: list[Item]
) -> list[str] | None:
    compiler = default_registry().get(kind)
    outcome = compiler.eliminate(items, compiler.parse(settings), _context())
    if outcome is None:
        return None
    return [item.item_id for item in outcome.items]


def _bounds(baskets: dict[str, Basket]) -> dict[str, tuple[int, int]]:
    return {basket_id: (b.min, b.max) for basket_id, b in baskets.items()}


# ── Registry ─────────────────────────────────────────────────────────────


def test_default_registry_covers_every_kind() -> None:
    registry = default_registry()
    assert set(registry.kinds()) == set(FilterKind)
    assert default_registry() is not registry


def test_registry_get_unknown_kind() -> None:
    with pytest.raises(KeyError, match="vintage"):
        CompilerRegistry().get(FilterKind.VINTAGE)
    assert FilterKind.VINTAGE not in CompilerRegistry()


def test_view_mode_accepts_legacy_mode_key() -> None:
    settings = ViewModeSettings.model_validate(
        {"mode": "advanced", "quotaMode": "percentage"}
    )
    assert settings.view_mode == "advanced"
    assert settings.mode.value == "percentage"


# ── Song types ───────────────────────────────────────────────────────────


class TestSongTypes:
    def test_count_quotas(self) -> None:
        baskets = _baskets(
            FilterKind.SONG_TYPES,
            {"mode": "count", "types": {"openings": 6, "endings": 4, "inserts": 0}},
        )
        assert _bounds(baskets) == {
            "songType-openings-all": (6, 6),
            "songType-endings-all": (4, 4),
        }

    def test_percentage_quotas_use_group_total(self) -> None:
        baskets = _baskets(
            FilterKind.SONG_TYPES,
            {
                "mode": "percentage",
                "total": 20,
                "types": {"openings": 50, "endings": 30, "inserts": 20},
            },
        )
        assert _bounds(baskets) == {
            "songType-openings-all": (10, 10),
            "songType-endings-all": (6, 6),
            "songType-inserts-all": (4, 4),
        }

    def test_ranges_override_values(self) -> None:
        baskets = _baskets(
            FilterKind.SONG_TYPES,
            {
                "types": {"openings": 5, "endings": 5},
                "typesRanges": {"openings": {"min": 2, "max": 8}},
            },
        )
        assert _bounds(baskets)["songType-openings-all"] == (5, 5)

    def test_matchers_use_song_type_group(self) -> None:
        baskets = _baskets(FilterKind.SONG_TYPES, {"types": {"inserts": 10}})
        inserts = baskets["songType-inserts-all"]
        assert inserts.matches(make_item("a", song_type="Insert Song"))
        assert not inserts.matches(make_item("b", song_type="Opening 1"))

    def test_song_selection_baskets(self) -> None:
        baskets = _baskets(
            FilterKind.SONG_TYPES,
            {"songSelection": {"random": 3, "watched": 7}},
        )
        watched = baskets["songSelection-watched-all"]
        assert (watched.min, watched.max) == (7, 7)
        item = make_item("a").model_copy(update={"selection_class": "watched"})
        assert watched.matches(item)
        assert not baskets["songSelection-random-all"].matches(item)

    def test_scope_changes_suffix_and_matching(self) -> None:
        baskets = _baskets(
            FilterKind.SONG_TYPES,
            {"types": {"openings": 10}},
            scope=("list1", "list2"),
        )
        basket = baskets["songType-openings-list1+list2"]
        assert basket.matches(
            make_item("a", song_type="Opening 1", source_id="list2")
        )
        assert not basket.matches(
            make_item("b", song_type="Opening 1", source_id="list3")
        )

    def test_infeasible_group_is_flagged(self) -> None:
        context = _context(target=20)
        baskets = _baskets(
            FilterKind.SONG_TYPES,
            {
                "typesRanges": {
                    "openings": {"min": 0, "max": 3},
                    "endings": {"min": 0, "max": 3},
                }
            },
            context,
        )
        assert _bounds(baskets)["songType-openings-all"] == (0, 3)
        assert len(context.warnings) == 1
        assert "song types" in context.warnings[0]

    @pytest.mark.parametrize("seed", range(5))
    def test_concretized_ranges_are_exact(self, seed: int) -> None:
        baskets = _baskets(
            FilterKind.SONG_TYPES,
            {
                "typesRanges": {
                    "openings": {"min": 2, "max": 8},
                    "endings": {"min": 2, "max": 8},
                }
            },
            _context(rng=random.Random(seed)),
        )
        bounds = _bounds(baskets).values()
        assert all(lo == hi for lo, hi in bounds)
        assert sum(lo for lo, _ in bounds) == 10


# ── Difficulty ───────────────────────────────────────────────────────────


class TestDifficulty:
    def test_basic_tiers(self) -> None:
        baskets = _baskets(
            FilterKind.SONG_DIFFICULTY,
            {"difficulties": {"easy": 5, "medium": 3, "hard": 2}},
        )
        assert set(baskets) == {
            "difficulty-easy-all",
            "difficulty-medium-all",
            "difficulty-hard-all",
        }
        easy = baskets["difficulty-easy-all"]
        assert easy.matches(make_item("a", difficulty=60))
        assert easy.matches(make_item("b", difficulty=100))
        assert not easy.matches(make_item("c", difficulty=59.5))
        assert not easy.matches(make_item("d"))

    def test_advanced_ranges(self) -> None:
        baskets = _baskets(
            FilterKind.SONG_DIFFICULTY,
            {
                "viewMode": "advanced",
                "ranges": [
                    {"from": 0, "to": 40, "value": 4},
                    {"from": 40.5, "to": 100, "value": 6},
                ],
            },
        )
        assert _bounds(baskets) == {
            "difficulty-0-40-all": (4, 4),
            "difficulty-40.5-100-all": (6, 6),
        }
        assert baskets["difficulty-0-40-all"].matches(
            make_item("a", difficulty=40)
        )


# ── Vintage ──────────────────────────────────────────────────────────────


_NINETIES = {
    "from": {"season": "Winter", "year": 1990},
    "to": {"season": "Fall", "year": 1999},
}


class TestVintage:
    def test_range_basket(self) -> None:
        baskets = _baskets(
            FilterKind.VINTAGE, {"ranges": [{**_NINETIES, "value": 10}]}
        )
        basket = baskets["vintage-Winter1990-Fall1999-all"]
        assert (basket.min, basket.max) == (10, 10)
        assert basket.matches(make_item("a", vintage="Fall 1999"))
        assert not basket.matches(make_item("b", vintage="Winter 2000"))
        assert not basket.matches(make_item("c"))

    def test_ranges_without_quota_act_as_allow_list(self) -> None:
        items = [
            make_item("a", vintage="Spring 1995"),
            make_item("b", vintage="Spring 2005"),
            make_item("c"),
        ]
        settings = {"ranges": [_NINETIES]}
        assert _baskets(FilterKind.VINTAGE, settings) == {}
        assert _kept(FilterKind.VINTAGE, settings, items) == ["a"]

    def test_quota_disables_allow_list(self) -> None:
        settings = {"ranges": [{**_NINETIES, "value": 5}]}
        assert _kept(FilterKind.VINTAGE, settings, [make_item("a")]) is None


# ── Anime type ───────────────────────────────────────────────────────────


class TestAnimeType:
    def test_basic_mode_eliminates(self) -> None:
        items = [
            make_item("tv", anime_type="TV"),
            make_item("movie", anime_type="Movie"),
            make_item("dub", anime_type="TV", is_dub=True),
            make_item("rebroadcast", anime_type="TV", is_rebroadcast=True),
        ]
        settings = {"enabled": ["tv"], "dubbed": False}
        assert _kept(FilterKind.ANIME_TYPE, settings, items) == [
            "tv",
            "rebroadcast",
        ]
        assert _baskets(FilterKind.ANIME_TYPE, settings) == {}

    def test_advanced_mode_builds_baskets(self) -> None:
        settings = {
            "viewMode": "advanced",
            "types": {"TV": 7, "Movie": 3},
        }
        baskets = _baskets(FilterKind.ANIME_TYPE, settings)
        assert _bounds(baskets) == {
            "animeType-tv-all": (7, 7),
            "animeType-movie-all": (3, 3),
        }
        assert baskets["animeType-tv-all"].matches(
            make_item("a", anime_type="TV")
        )
        assert _kept(FilterKind.ANIME_TYPE, settings, [make_item("a")]) is None


# ── Song categories ──────────────────────────────────────────────────────


class TestSongCategories:
    def test_basic_mode_eliminates(self) -> None:
        items = [
            make_item("a", song_type="Opening 1", song_category="Standard"),
            make_item("b", song_type="Opening 2", song_category="Chanting"),
            make_item("c", song_type="Ending 1", song_category="Chanting"),
            make_item("d", song_category="Standard"),
        ]
        settings = {
            "enabled": {
                "openings": {"standard": True, "chanting": False},
                "endings": {"chanting": True},
            }
        }
        assert _kept(FilterKind.SONG_CATEGORIES, settings, items) == ["a", "c"]

    def test_advanced_mode_builds_baskets(self) -> None:
        baskets = _baskets(
            FilterKind.SONG_CATEGORIES,
            {
                "viewMode": "advanced",
                "categories": {
                    "openings": {"standard": 6, "instrumental": 0},
                    "endings": {"standard": 4},
                },
            },
        )
        assert _bounds(baskets) == {
            "category-openings-standard-all": (6, 6),
            "category-endings-standard-all": (4, 4),
        }
        basket = baskets["category-openings-standard-all"]
        assert basket.matches(
            make_item("a", song_type="Opening 1", song_category="standard")
        )
        assert not basket.matches(
            make_item("b", song_type="Ending 1", song_category="standard")
        )


# ── Scores ───────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, None), (0, 1), (4.5, 5), (4.49, 4), (10, 10)],
)
def test_normalize_player_score(raw: float | None, expected: int | None) -> None:
    assert normalize_player_score(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, None), (0, 1), (75, 8), (74, 7), (100, 10)],
)
def test_normalize_anime_score(raw: float | None, expected: int | None) -> None:
    assert normalize_anime_score(raw) == expected


class TestScores:
    def test_score_compilers_must_read_scores(self) -> None:
        class Partial(ScoreCompiler):
            kind = FilterKind.PLAYER_SCORE
            prefix = "playerScore"
            default_min = 1

        with pytest.raises(TypeError):
            Partial()

    def test_range_eliminator(self) -> None:
        items = [
            make_item("low", player_score=2),
            make_item("mid", player_score=6),
            make_item("disabled", player_score=7),
            make_item("missing"),
        ]
        settings = {"min": 5, "max": 9, "disabled": [7]}
        assert _kept(FilterKind.PLAYER_SCORE, settings, items) == ["mid"]

    def test_missing_score_passes_full_range(self) -> None:
        items = [make_item("missing"), make_item("scored", player_score=3)]
        assert _kept(FilterKind.PLAYER_SCORE, {}, items) == [
            "missing",
            "scored",
        ]

    def test_counts_build_exact_and_remaining_baskets(self) -> None:
        baskets = _baskets(
            FilterKind.PLAYER_SCORE,
            {"min": 1, "max": 10, "counts": {"9": 3, "10": 2}},
        )
        assert _bounds(baskets) == {
            "playerScore-9-all": (3, 3),
            "playerScore-10-all": (2, 2),
            "playerScore-remaining-all": (5, 5),
        }
        remaining = baskets["playerScore-remaining-all"]
        assert remaining.matches(make_item("a", player_score=5))
        assert not remaining.matches(make_item("b", player_score=9))
        assert not remaining.matches(make_item("c"))

    def test_counts_disable_eliminator(self) -> None:
        settings = {"counts": {"5": 1}}
        assert _kept(FilterKind.PLAYER_SCORE, settings, [make_item("a")]) is None

    def test_tiered_mode_builds_aggregate(self) -> None:
        baskets = _baskets(
            FilterKind.ANIME_SCORE,
            {"max": 8, "counts": {"7": 3}},
            _context(mode=SelectionMode.MANY_SOURCES),
        )
        assert _bounds(baskets) == {"animeScore-aggregate-2-8-all": (0, 10)}
        basket = baskets["animeScore-aggregate-2-8-all"]
        assert basket.matches(make_item("a", anime_score=70))
        assert not basket.matches(make_item("b", anime_score=90))


# ── Genres and tags ──────────────────────────────────────────────────────


class TestIncludeExclude:
    def test_genre_and_tag_compilers_must_read_values(self) -> None:
        class Partial(IncludeExcludeCompiler):
            kind = FilterKind.GENRES
            prefix = "genre"

        with pytest.raises(TypeError):
            Partial()

    def test_genre_eliminator(self) -> None:
        items = [
            make_item("a", genres=("Action", "Comedy")),
            make_item("b", genres=("Action", "Horror")),
            make_item("c", genres=("Comedy",)),
            make_item("d", genres=("Action", "Drama")),
        ]
        settings = {
            "included": ["Action"],
            "excluded": ["Horror"],
            "optional": ["Comedy", "Drama"],
        }
        assert _kept(FilterKind.GENRES, settings, items) == ["a", "d"]

    def test_no_constraints_means_no_elimination(self) -> None:
        assert _kept(FilterKind.GENRES, {}, [make_item("a")]) is None

    def test_tags_require_rank_above_threshold(self) -> None:
        items = [
            make_item("a", tags=(Tag(name="Mecha", rank=80),)),
            make_item("b", tags=(Tag(name="Mecha", rank=60),)),
        ]
        assert _kept(FilterKind.TAGS, {"included": ["Mecha"]}, items) == ["a"]

    def test_show_rates_builds_baskets(self) -> None:
        baskets = _baskets(
            FilterKind.GENRES,
            {
                "showRates": True,
                "items": [
                    {"label": "Action", "status": "include", "value": 4},
                    {"label": "Horror", "status": "exclude", "value": 2},
                    {"label": "Comedy", "status": "optional", "value": 0},
                ],
            },
        )
        assert _bounds(baskets) == {"genre-Action-all": (4, 4)}
        assert baskets["genre-Action-all"].matches(
            make_item("a", genres=("Action",))
        )

    def test_show_rates_reads_rules_from_item_statuses(self) -> None:
        items = [
            make_item("a", genres=("Action", "Comedy")),
            make_item("b", genres=("Action", "Horror")),
            make_item("c", genres=("Comedy",)),
            make_item("d", genres=("Action",)),
        ]
        settings = {
            "showRates": True,
            "included": ["Comedy"],
            "items": [
                {"label": "Action", "status": "include", "value": 3},
                {"label": "Horror", "status": "exclude", "value": 0},
            ],
        }
        assert _kept(FilterKind.GENRES, settings, items) == ["a", "d"]

    def test_show_rates_optional_status(self) -> None:
        items = [
            make_item("a", tags=(Tag(name="Mecha", rank=90),)),
            make_item("b", tags=(Tag(name="Idol", rank=90),)),
        ]
        settings = {
            "showRates": True,
            "items": [{"label": "Mecha", "status": "optional", "value": 0}],
        }
        assert _kept(FilterKind.TAGS, settings, items) == ["a"]

    def test_without_show_rates_no_baskets(self) -> None:
        settings = {"items": [{"label": "Action", "value": 4}]}
        assert _baskets(FilterKind.TAGS, settings) == {}
