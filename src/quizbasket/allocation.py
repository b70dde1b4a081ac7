"""Allocation resolver: turn declarative quotas into integer bounds.

A quota group is a list of ``AllocationEntry`` values (static counts or
ranges) that should jointly add up to a target total. ``analyze_group``
computes the narrowest per-entry window consistent with that sum and
classifies the group as deterministic or random. ``allocate_to_total`` draws
one concrete assignment from a seeded RNG.
"""

import logging
import random
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from quizbasket.core.models import QuotaMode
from quizbasket.core.sampling import clamp, random_int, round_half_up

logger = logging.getLogger(__name__)

COMBO_COUNT_CAP = 10_000
DEFAULT_SIMULATIONS = 50


class EntryKind(str, Enum):
    STATIC = "static"
    RANGE = "range"


class AllocationEntry(BaseModel):
    label: str
    kind: EntryKind
    value: float = 0
    min: float = 0
    max: float = 0

    @model_validator(mode="after")
    def _check_range(self) -> "AllocationEntry":
        if self.kind is EntryKind.RANGE and self.min > self.max:
            raise ValueError(
                f"range entry {self.label!r} is malformed: "
                f"min ({self.min}) must be <= max ({self.max})"
            )
        return self

    @classmethod
    def static(cls, label: str, value: float) -> "AllocationEntry":
        return cls(label=label, kind=EntryKind.STATIC, value=value)

    @classmethod
    def range(cls, label: str, lo: float, hi: float) -> "AllocationEntry":
        return cls(label=label, kind=EntryKind.RANGE, min=lo, max=hi)


class ResolvedAllocation(BaseModel):
    type: EntryKind
    value: int | None = None
    min: int | None = None
    max: int | None = None

    @property
    def bounds(self) -> tuple[int, int]:
        if self.type is EntryKind.STATIC:
            assert self.value is not None
            return (self.value, self.value)
        assert self.min is not None and self.max is not None
        return (self.min, self.max)


class GroupAnalysis(BaseModel):
    has_random: bool = Field(
        description="More than one concrete assignment is possible"
    )
    refined: dict[str, ResolvedAllocation]
    combo_count: int = Field(
        description="Distinct feasible assignments, saturated at 3"
    )
    unique: bool
    feasible: bool = True


class QuotaResolution(BaseModel):
    """Per-label count bounds for one quota group."""

    bounds: dict[str, tuple[int, int]]
    feasible: bool
    analysis: GroupAnalysis


# ── Joint analysis ───────────────────────────────────────────────────────


def _count_combinations(widths: list[int], need: int) -> int:
    if need < 0:
        return 0
    if need == 0:
        return 1
    limited = min(need, COMBO_COUNT_CAP)
    dp = [0] * (limited + 1)
    dp[0] = 1
    for width in widths:
        ndp = [0] * (limited + 1)
        for s in range(limited + 1):
            if dp[s] == 0:
                continue
            for k in range(min(width, limited - s) + 1):
                ndp[s + k] = min(3, ndp[s + k] + dp[s])
        dp = ndp
    if need > COMBO_COUNT_CAP:
        return 3
    return dp[limited]


def analyze_group(
    entries: list[AllocationEntry], target_total: float
) -> GroupAnalysis:
    ranges = [
        (e.label, round_half_up(e.min), round_half_up(e.max))
        for e in entries
        if e.kind is EntryKind.RANGE
    ]
    statics = [
        (e.label, round_half_up(e.value))
        for e in entries
        if e.kind is EntryKind.STATIC
    ]
    remaining = round_half_up(target_total - sum(v for _, v in statics))
    static_refined = {
        label: ResolvedAllocation(type=EntryKind.STATIC, value=value)
        for label, value in statics
    }

    if not ranges:
        return GroupAnalysis(
            has_random=False, refined=static_refined, combo_count=0, unique=True
        )

    sum_min = sum(lo for _, lo, _ in ranges)
    sum_max = sum(hi for _, _, hi in ranges)
    if remaining < sum_min or remaining > sum_max:
        refined = {
            label: ResolvedAllocation(type=EntryKind.RANGE, min=lo, max=lo)
            for label, lo, _ in ranges
        }
        refined.update(static_refined)
        return GroupAnalysis(
            has_random=False,
            refined=refined,
            combo_count=0,
            unique=True,
            feasible=False,
        )

    refined = {}
    for label, lo, hi in ranges:
        others_min = sum_min - lo
        others_max = sum_max - hi
        refined[label] = ResolvedAllocation(
            type=EntryKind.RANGE,
            min=max(lo, remaining - others_max),
            max=min(hi, remaining - others_min),
        )

    combo_count = _count_combinations(
        [hi - lo for _, lo, hi in ranges], remaining - sum_min
    )
    refined.update(static_refined)
    degenerate = all(r.bounds[0] == r.bounds[1] for r in refined.values())
    return GroupAnalysis(
        has_random=combo_count >= 2 and not degenerate,
        refined=refined,
        combo_count=combo_count,
        unique=combo_count <= 1 or degenerate,
    )


# ── Concrete allocation ──────────────────────────────────────────────────


def allocate_to_total(
    entries: list[AllocationEntry],
    target_total: float,
    rng: random.Random,
) -> dict[str, int]:
    """Assign a concrete integer to every entry so the values sum to target.

    Misconfigured groups are clamped into their feasible span, in which case
    the sum lands on the nearest reachable total instead.
    """
    assigned: dict[str, int] = {}
    statics = [e for e in entries if e.kind is EntryKind.STATIC]
    ranges = [e for e in entries if e.kind is EntryKind.RANGE]

    static_total = sum(round_half_up(e.value) for e in statics)
    remaining = max(0, round_half_up(target_total) - static_total)
    for entry in statics:
        assigned[entry.label] = round_half_up(entry.value)
    if not ranges:
        return assigned

    mins = [round_half_up(e.min) for e in ranges]
    maxs = [round_half_up(e.max) for e in ranges]
    if not sum(mins) <= remaining <= sum(maxs):
        logger.debug(
            "Clamping remaining %d into feasible span [%d, %d]",
            remaining,
            sum(mins),
            sum(maxs),
        )
    remaining = int(clamp(remaining, sum(mins), sum(maxs)))

    if len(ranges) == 1:
        assigned[ranges[0].label] = int(clamp(remaining, mins[0], maxs[0]))
        return assigned

    first = random_int(rng, 0, len(ranges) - 1)
    others = [i for i in range(len(ranges)) if i != first]
    lo = max(mins[first], remaining - (sum(maxs) - maxs[first]))
    hi = min(maxs[first], remaining - sum(mins[i] for i in others))
    chosen = int(clamp(random_int(rng, lo, hi), lo, hi))
    assigned[ranges[first].label] = chosen
    left = remaining - chosen

    for pos, i in enumerate(others):
        rest = others[pos + 1 :]
        lo = max(mins[i], left - sum(maxs[j] for j in rest))
        hi = min(maxs[i], left - sum(mins[j] for j in rest))
        if not rest:
            value = int(clamp(left, lo, hi))
        else:
            value = int(clamp(random_int(rng, lo, hi), lo, hi))
        assigned[ranges[i].label] = value
        left -= value
    return assigned


def analyze_allocation_ranges(
    entries: list[AllocationEntry],
    target_total: float,
    seed: str | int = "allocation-sim",
    simulations: int = DEFAULT_SIMULATIONS,
) -> dict[str, tuple[int, int]]:
    """Observed (min, max) per label over seeded simulated allocations."""
    if simulations < 1:
        raise ValueError(f"simulations must be >= 1, got {simulations}")
    observed: dict[str, tuple[int, int]] = {}
    for i in range(simulations):
        rng = random.Random(f"{seed}-{i}")
        for label, value in allocate_to_total(entries, target_total, rng).items():
            lo, hi = observed.get(label, (value, value))
            observed[label] = (min(lo, value), max(hi, value))
    return observed


# ── Settings parsing ─────────────────────────────────────────────────────


def calculate_count_or_percentage(
    value: float | None, mode: QuotaMode, total: int
) -> int:
    if value is None:
        return 0
    if mode is QuotaMode.PERCENTAGE:
        return round_half_up(total * value / 100)
    return round_half_up(value)


def _number(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw)
        except ValueError:
            return None
    return None


def _first_number(raw: dict[str, Any], keys: tuple[str, ...]) -> float | None:
    for key in keys:
        if key in raw:
            value = _number(raw[key])
            if value is not None:
                return value
    return None


def entry_from_setting(
    label: str, raw: Any, mode: QuotaMode = QuotaMode.COUNT
) -> AllocationEntry | None:
    """Parse a permissive quota value into an entry.

    Accepts a bare number, ``{min, max}`` (or the ``minCount``/``maxCount``,
    ``minPercentage``/``maxPercentage`` spellings), or ``{value}``,
    ``{count}``, ``{percentage}``. Spellings matching ``mode`` win when an
    object carries both. Disabled or unreadable values give None.
    """
    unit = "Percentage" if mode is QuotaMode.PERCENTAGE else "Count"
    number = _number(raw)
    if number is not None:
        return AllocationEntry.static(label, max(0.0, number))
    if not isinstance(raw, dict):
        return None
    if raw.get("enabled") is False:
        return None

    lo = _first_number(raw, (f"min{unit}", "min"))
    hi = _first_number(raw, (f"max{unit}", "max"))
    has_bounds = lo is not None or hi is not None
    random_range = raw.get("random", raw.get("randomRange", has_bounds))
    if random_range and has_bounds:
        lo = max(0.0, lo if lo is not None else 0.0)
        hi = max(lo, hi if hi is not None else lo)
        return AllocationEntry.range(label, lo, hi)

    value = _first_number(
        raw, (f"{unit.lower()}Value", unit.lower(), "value")
    )
    if value is None:
        return None
    return AllocationEntry.static(label, max(0.0, value))


def calculate_range_from_settings(
    raw: Any, mode: QuotaMode, total: int
) -> tuple[int, int]:
    entry = entry_from_setting("value", raw, mode)
    if entry is None:
        return (0, 0)
    return entry_bounds(entry, mode, total)


def entry_bounds(
    entry: AllocationEntry, mode: QuotaMode, total: int
) -> tuple[int, int]:
    if entry.kind is EntryKind.STATIC:
        value = calculate_count_or_percentage(entry.value, mode, total)
        return (value, value)
    return (
        calculate_count_or_percentage(entry.min, mode, total),
        calculate_count_or_percentage(entry.max, mode, total),
    )


def resolve_quota_group(
    entries: list[AllocationEntry],
    mode: QuotaMode,
    total: int,
    *,
    rng: random.Random | None = None,
) -> QuotaResolution:
    """Resolve a quota group to per-label count bounds.

    Feasibility is checked in the group's native space (100 for percentages,
    ``total`` for counts). Feasible groups use the jointly narrowed window.
    Infeasible groups keep their configured bounds and are only flagged.
    With ``rng`` every label is pinned to one concrete count drawn by
    ``allocate_to_total``.
    """
    native_total = 100 if mode is QuotaMode.PERCENTAGE else total
    analysis = analyze_group(entries, native_total)

    count_entries = []
    for entry in entries:
        if analysis.feasible:
            native_lo, native_hi = analysis.refined[entry.label].bounds
            lo = calculate_count_or_percentage(native_lo, mode, total)
            hi = calculate_count_or_percentage(native_hi, mode, total)
        else:
            lo, hi = entry_bounds(entry, mode, total)
        if entry.kind is EntryKind.STATIC:
            count_entries.append(AllocationEntry.static(entry.label, lo))
        else:
            count_entries.append(AllocationEntry.range(entry.label, lo, hi))

    if rng is not None:
        concrete = allocate_to_total(count_entries, total, rng)
        bounds = {label: (value, value) for label, value in concrete.items()}
    else:
        bounds = {
            e.label: entry_bounds(e, QuotaMode.COUNT, total)
            for e in count_entries
        }
    return QuotaResolution(
        bounds=bounds, feasible=analysis.feasible, analysis=analysis
    )
