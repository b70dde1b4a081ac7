"""Two-phase, multi-attempt basket filling.

Each attempt runs with its own RNG derived from (seed, attempt index):

1. Phase 1 walks the tiers in priority order and only takes items that help
   some basket reach its minimum.
2. Phase 2 fills whatever capacity is left, up to the target total.
3. When items are tiered by source overlap, a swap pass after each phase
   trades selected items from weaker tiers for unselected items of the
   preferred tier that count toward exactly the same baskets.

Attempts are scored and the best one wins. The loop stops early as soon as
an attempt meets every basket minimum.
"""

import logging
import math
import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from quizbasket.baskets import Basket, constraining_kinds, is_admissible_profile
from quizbasket.core.events import DistributionEvent, EventSink, NullSink
from quizbasket.core.models import DuplicatePolicy, Item, SelectionMode
from quizbasket.core.sampling import derived_rng, shuffled
from quizbasket.distribution.scoring import AttemptScore, score_attempt

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 100
PREFERRED_TIER_SWEEPS = 10
MAX_SWAPS = 20


# ── Candidates + attempt state ───────────────────────────────────────────


@dataclass(frozen=True)
class Candidate:
    item: Item
    baskets: tuple[int, ...]
    overlap: int = 1


@dataclass
class _AttemptState:
    counts: list[int]
    unmet: int
    selected: list[Candidate] = field(default_factory=list)
    selected_ids: set[str] = field(default_factory=set)
    groups: dict[str, int] = field(default_factory=dict)

    def add(self, candidate: Candidate, mins: Sequence[int]) -> None:
        self.selected.append(candidate)
        self.selected_ids.add(candidate.item.item_id)
        group = candidate.item.group_key
        self.groups[group] = self.groups.get(group, 0) + 1
        for b in candidate.baskets:
            self.counts[b] += 1
            if self.counts[b] == mins[b]:
                self.unmet -= 1

    def replace(self, position: int, candidate: Candidate) -> None:
        """Swap in a candidate with the same basket profile."""
        old = self.selected[position]
        self.selected[position] = candidate
        self.selected_ids.discard(old.item.item_id)
        self.selected_ids.add(candidate.item.item_id)
        old_group = old.item.group_key
        self.groups[old_group] -= 1
        if self.groups[old_group] == 0:
            del self.groups[old_group]
        new_group = candidate.item.group_key
        self.groups[new_group] = self.groups.get(new_group, 0) + 1


@dataclass
class DistributionOutcome:
    selected: list[Item]
    attempts: int
    success: bool
    score: AttemptScore | None = None
    counts: list[int] = field(default_factory=list)


# ── Engine ───────────────────────────────────────────────────────────────


class DistributionEngine:
    def __init__(
        self,
        duplicate_policy: DuplicatePolicy = DuplicatePolicy.PROBABILISTIC,
        selection_mode: SelectionMode = SelectionMode.DEFAULT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sink: EventSink | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.duplicate_policy = duplicate_policy
        self.selection_mode = selection_mode
        self.max_attempts = max_attempts
        self.sink: EventSink = sink or NullSink()

    def _emit(self, name: str, attempt: int | None = None, **data: Any) -> None:
        self.sink.emit(DistributionEvent(name=name, attempt=attempt, data=data))

    # ── Preparation ──────────────────────────────────────────────────────

    def prepare(
        self,
        items: Sequence[Item],
        baskets: Sequence[Basket],
        overlap_counts: Mapping[str, int] | None = None,
    ) -> list[Candidate]:
        """Match every item against the baskets once, dropping inadmissible
        items."""
        required = constraining_kinds(baskets)
        candidates = []
        for item in items:
            matched = tuple(i for i, b in enumerate(baskets) if b.matches(item))
            if not is_admissible_profile(
                [baskets[i] for i in matched], required, bool(baskets)
            ):
                continue
            overlap = 1
            if overlap_counts is not None:
                overlap = max(1, overlap_counts.get(item.item_id, 1))
            candidates.append(Candidate(item, matched, overlap))
        return candidates

    def tiers(
        self, candidates: Sequence[Candidate], rng: random.Random
    ) -> list[list[Candidate]]:
        """Group candidates by overlap count, preferred tier first."""
        if not self.selection_mode.is_tiered:
            return [shuffled(list(candidates), rng)]
        groups: dict[int, list[Candidate]] = {}
        for candidate in candidates:
            groups.setdefault(candidate.overlap, []).append(candidate)
        descending = self.selection_mode is SelectionMode.MANY_SOURCES
        return [
            shuffled(groups[key], rng)
            for key in sorted(groups, reverse=descending)
        ]

    # ── Admission ────────────────────────────────────────────────────────

    def _passes_duplicate_policy(
        self,
        state: _AttemptState,
        group: str,
        rng: random.Random,
        replacing: str | None = None,
    ) -> bool:
        n = state.groups.get(group, 0)
        if replacing == group:
            n -= 1
        if n <= 0:
            return True
        if self.duplicate_policy is DuplicatePolicy.STRICT:
            return False
        # Accept the (n+1)-th item of a group with probability 1/(n+1).
        return rng.random() >= n / (n + 1)

    def _try_add(
        self,
        state: _AttemptState,
        candidate: Candidate,
        phase_one: bool,
        target_total: int,
        mins: Sequence[int],
        maxs: Sequence[int],
        rng: random.Random,
    ) -> bool:
        if len(state.selected) >= target_total:
            return False
        if candidate.item.item_id in state.selected_ids:
            return False
        if not self._passes_duplicate_policy(
            state, candidate.item.group_key, rng
        ):
            return False
        if phase_one and not any(
            state.counts[b] < mins[b] for b in candidate.baskets
        ):
            return False
        if any(state.counts[b] >= maxs[b] for b in candidate.baskets):
            return False
        state.add(candidate, mins)
        return True

    def _sweep(
        self,
        state: _AttemptState,
        tier: Sequence[Candidate],
        max_sweeps: int,
        phase_one: bool,
        target_total: int,
        mins: Sequence[int],
        maxs: Sequence[int],
        rng: random.Random,
    ) -> None:
        for _ in range(max_sweeps):
            added = False
            for candidate in tier:
                if len(state.selected) >= target_total:
                    return
                if self._try_add(
                    state, candidate, phase_one, target_total, mins, maxs, rng
                ):
                    added = True
                    if phase_one and state.unmet == 0:
                        return
            if not added:
                return

    def _swap(
        self,
        state: _AttemptState,
        tiers: Sequence[Sequence[Candidate]],
        rng: random.Random,
    ) -> int:
        preferred = tiers[0]
        if not preferred:
            return 0
        rank = {tier[0].overlap: pos for pos, tier in enumerate(tiers) if tier}
        preferred_overlap = preferred[0].overlap
        weaker = sorted(
            (
                pos
                for pos, c in enumerate(state.selected)
                if c.overlap != preferred_overlap
            ),
            key=lambda pos: -rank[state.selected[pos].overlap],
        )
        limit = min(MAX_SWAPS, math.ceil(len(preferred) / 10))
        swaps = 0
        for pos in weaker:
            if swaps >= limit:
                break
            current = state.selected[pos]
            for candidate in preferred:
                if candidate.item.item_id in state.selected_ids:
                    continue
                if candidate.baskets != current.baskets:
                    continue
                if not self._passes_duplicate_policy(
                    state,
                    candidate.item.group_key,
                    rng,
                    replacing=current.item.group_key,
                ):
                    continue
                state.replace(pos, candidate)
                swaps += 1
                break
        return swaps

    # ── Attempts ─────────────────────────────────────────────────────────

    def run_attempt(
        self,
        attempt: int,
        candidates: Sequence[Candidate],
        target_total: int,
        mins: Sequence[int],
        maxs: Sequence[int],
        rng: random.Random,
    ) -> _AttemptState:
        state = _AttemptState(
            counts=[0] * len(mins), unmet=sum(1 for m in mins if m > 0)
        )
        tiers = self.tiers(candidates, rng)

        for tier in tiers:
            if state.unmet == 0 or len(state.selected) >= target_total:
                break
            sweeps = max(10, math.ceil(len(tier) / 10))
            self._sweep(
                state, tier, sweeps, True, target_total, mins, maxs, rng
            )
        if len(tiers) > 1:
            swapped = self._swap(state, tiers, rng)
            if swapped:
                self._emit("swap", attempt, phase=1, swaps=swapped)

        for position, tier in enumerate(tiers):
            if len(state.selected) >= target_total:
                break
            sweeps = PREFERRED_TIER_SWEEPS if position == 0 else 1
            self._sweep(
                state,
                shuffled(tier, rng),
                sweeps,
                False,
                target_total,
                mins,
                maxs,
                rng,
            )
        if len(tiers) > 1:
            swapped = self._swap(state, tiers, rng)
            if swapped:
                self._emit("swap", attempt, phase=2, swaps=swapped)
        return state

    def distribute(
        self,
        items: Sequence[Item],
        baskets: Sequence[Basket],
        target_total: int,
        seed: str | int,
        overlap_counts: Mapping[str, int] | None = None,
    ) -> DistributionOutcome:
        """Select up to ``target_total`` items satisfying the baskets.

        Basket ``current`` counters are reset first and hold the winning
        attempt's counts on return.
        """
        if target_total < 0:
            raise ValueError(f"target_total must be >= 0, got {target_total}")
        for basket in baskets:
            basket.reset()

        candidates = self.prepare(items, baskets, overlap_counts)
        mins = [b.min for b in baskets]
        maxs = [b.max for b in baskets]
        logger.debug(
            "Distributing %d/%d admissible items into %d baskets (target %d)",
            len(candidates),
            len(items),
            len(baskets),
            target_total,
        )

        best_score: AttemptScore | None = None
        best_state: _AttemptState | None = None
        attempts = 0
        for attempt in range(self.max_attempts):
            attempts = attempt + 1
            rng = derived_rng(seed, "attempt", attempt)
            state = self.run_attempt(
                attempt, candidates, target_total, mins, maxs, rng
            )
            score = score_attempt(
                state.counts, mins, [c.overlap for c in state.selected]
            )
            self._emit("attempt_scored", attempt, **score.as_dict())
            if best_score is None or score > best_score:
                best_score, best_state = score, state
                self._emit("new_best", attempt, **score.as_dict())
            if score.baskets_met == len(baskets):
                self._emit("early_exit", attempt)
                break

        assert best_state is not None
        for basket, count in zip(baskets, best_state.counts, strict=True):
            basket.current = count
        success = best_state.unmet == 0
        self._emit(
            "distribution_complete",
            attempts=attempts,
            success=success,
            selected=len(best_state.selected),
        )
        logger.debug(
            "Best attempt selected %d items after %d attempt(s), success=%s",
            len(best_state.selected),
            attempts,
            success,
        )
        return DistributionOutcome(
            selected=[c.item for c in best_state.selected],
            attempts=attempts,
            success=success,
            score=best_score,
            counts=list(best_state.counts),
        )
