"""Distribution engine: seeded multi-attempt basket filling."""

from quizbasket.distribution.engine import (
    Candidate,
    DistributionEngine,
    DistributionOutcome,
)
from quizbasket.distribution.scoring import AttemptScore, score_attempt

__all__ = [
    "AttemptScore",
    "Candidate",
    "DistributionEngine",
    "DistributionOutcome",
    "score_attempt",
]
