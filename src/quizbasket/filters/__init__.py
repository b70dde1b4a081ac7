"""Filter kinds: quota-to-basket compilers and hard eliminators."""

from quizbasket.filters.base import (
    CompileContext,
    CompilerRegistry,
    FilterOutcome,
    QuotaCompiler,
)
from quizbasket.filters.registry import default_registry
from quizbasket.filters.scores import (
    normalize_anime_score,
    normalize_player_score,
)

__all__ = [
    "CompileContext",
    "CompilerRegistry",
    "FilterOutcome",
    "QuotaCompiler",
    "default_registry",
    "normalize_anime_score",
    "normalize_player_score",
]
