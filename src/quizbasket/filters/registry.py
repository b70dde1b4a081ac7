from quizbasket.filters.anime_type import AnimeTypeCompiler
from quizbasket.filters.base import CompilerRegistry
from quizbasket.filters.difficulty import DifficultyCompiler
from quizbasket.filters.include_exclude import GenresCompiler, TagsCompiler
from quizbasket.filters.scores import AnimeScoreCompiler, PlayerScoreCompiler
from quizbasket.filters.song_categories import SongCategoriesCompiler
from quizbasket.filters.song_types import SongTypesCompiler
from quizbasket.filters.vintage import VintageCompiler


def default_registry() -> CompilerRegistry:
    """Build a fresh registry holding one compiler per filter kind."""
    return CompilerRegistry(
        [
            SongTypesCompiler(),
            DifficultyCompiler(),
            VintageCompiler(),
            AnimeTypeCompiler(),
            SongCategoriesCompiler(),
            PlayerScoreCompiler(),
            AnimeScoreCompiler(),
            GenresCompiler(),
            TagsCompiler(),
        ]
    )
