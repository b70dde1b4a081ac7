import math
import random
import string
import zlib
from typing import TypeVar

T = TypeVar("T")

SEED_LENGTH = 16


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always rounding up.

    Builtin ``round`` uses banker's rounding, which would make 2.5 -> 2 and
    shift quota boundaries.
    """
    return math.floor(value + 0.5)


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def random_int(rng: random.Random, lo: float, hi: float) -> int:
    """Sample an integer uniformly from the inclusive range [ceil(lo), floor(hi)].

    A collapsed or inverted range returns the rounded-up lower bound.
    """
    a = math.ceil(lo)
    b = math.floor(hi)
    if b <= a:
        return a
    return rng.randint(a, b)


def stable_seed(seed: str | int, *parts: str | int) -> int:
    key = ":".join(str(p) for p in (seed, *parts))
    return zlib.crc32(key.encode()) & 0xFFFFFFFF


def derived_rng(seed: str | int, *parts: str | int) -> random.Random:
    return random.Random(stable_seed(seed, *parts))


def generate_seed(rng: random.Random | None = None) -> str:
    """Return a fresh random seed of ASCII letters."""
    source = rng if rng is not None else random.Random()
    return "".join(source.choices(string.ascii_letters, k=SEED_LENGTH))


def shuffled(items: list[T], rng: random.Random) -> list[T]:
    out = list(items)
    rng.shuffle(out)
    return out
