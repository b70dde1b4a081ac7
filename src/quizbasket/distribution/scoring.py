from collections.abc import Sequence
from dataclasses import asdict, dataclass


@dataclass(frozen=True, order=True)
class AttemptScore:
    """Quality of one attempt, compared field by field (higher is better)."""

    baskets_met: int
    overlap: int
    selected: int
    proximity: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def score_attempt(
    counts: Sequence[int],
    mins: Sequence[int],
    overlaps: Sequence[int],
) -> AttemptScore:
    met = 0
    proximity = 0.0
    for current, minimum in zip(counts, mins, strict=True):
        if current >= minimum:
            met += 1
            proximity += 1.0
        else:
            proximity += current / minimum
    return AttemptScore(
        baskets_met=met,
        overlap=sum(overlaps),
        selected=len(overlaps),
        proximity=proximity,
    )
