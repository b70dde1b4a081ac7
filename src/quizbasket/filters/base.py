import logging
import random
from abc import ABC
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from quizbasket.allocation import (
    AllocationEntry,
    QuotaResolution,
    entry_bounds,
    entry_from_setting,
    resolve_quota_group,
)
from quizbasket.baskets import Basket
from quizbasket.core.models import FilterKind, Item, QuotaMode, SelectionMode

logger = logging.getLogger(__name__)


class FilterSettings(BaseModel):
    """Base for per-kind settings. Unknown keys are ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class QuotaSettings(FilterSettings):
    mode: QuotaMode = QuotaMode.COUNT
    total: int | None = Field(
        default=None, description="Group total; defaults to the target"
    )


class ViewModeSettings(QuotaSettings):
    """Settings with a basic (hard filter) and an advanced (quota) view."""

    view_mode: Literal["basic", "advanced"] = "basic"

    @model_validator(mode="before")
    @classmethod
    def _split_legacy_mode(cls, data: Any) -> Any:
        # Older exports put the view in ``mode`` and the quota mode in
        # ``quotaMode``.
        if not isinstance(data, dict):
            return data
        mode = data.get("mode")
        if mode in ("basic", "advanced") and "viewMode" not in data:
            data = {**data, "viewMode": mode}
            data["mode"] = data.get("quotaMode", QuotaMode.COUNT.value)
        return data


def with_overrides(
    values: dict[str, Any], overrides: dict[str, Any]
) -> dict[str, Any]:
    """Merge per-label range overrides over plain quota values."""
    merged = {}
    for label in {**values, **overrides}:
        raw = overrides.get(label) or values.get(label)
        if raw is not None:
            merged[label] = raw
    return merged


@dataclass
class CompileContext:
    target_total: int
    selection_mode: SelectionMode = SelectionMode.DEFAULT
    rng: random.Random | None = None
    warnings: list[str] = field(default_factory=list)

    def group_total(self, settings: QuotaSettings) -> int:
        if settings.total is None or settings.total <= 0:
            return self.target_total
        return settings.total

    def resolve(
        self,
        name: str,
        raw: dict[str, Any],
        settings: QuotaSettings,
        *,
        partition: bool = True,
    ) -> dict[str, tuple[int, int]]:
        """Resolve a ``{label: quota}`` mapping to count bounds.

        A partition group is expected to add up to the group total: it is
        checked for feasibility and concretized when an RNG is set. Other
        groups (per-score or per-genre counts) keep their bounds as given.
        """
        entries: list[AllocationEntry] = []
        for label, value in raw.items():
            entry = entry_from_setting(label, value, settings.mode)
            if entry is not None:
                entries.append(entry)
        if not entries:
            return {}
        if not partition:
            total = self.group_total(settings)
            return {
                e.label: entry_bounds(e, settings.mode, total) for e in entries
            }
        resolution: QuotaResolution = resolve_quota_group(
            entries,
            settings.mode,
            self.group_total(settings),
            rng=self.rng,
        )
        if not resolution.feasible:
            message = (
                f"{name}: quotas {sorted(resolution.bounds)} cannot sum to "
                f"{self.group_total(settings)}; configured bounds kept"
            )
            logger.warning("%s", message)
            self.warnings.append(message)
        return resolution.bounds


@dataclass
class FilterOutcome:
    items: list[Item]
    details: dict[str, Any] = field(default_factory=dict)


class QuotaCompiler(ABC):
    """Turns one filter kind's settings into baskets and/or hard filters.

    Subclasses override ``build_baskets``, ``eliminate`` or both. The
    defaults contribute nothing.
    """

    kind: ClassVar[FilterKind]
    settings_model: ClassVar[type[FilterSettings]] = FilterSettings

    @property
    def name(self) -> str:
        return self.kind.value

    def parse(self, raw: dict[str, Any]) -> Any:
        return self.settings_model.model_validate(raw or {})

    def build_baskets(
        self,
        settings: Any,
        scope: Sequence[str] | None,
        context: CompileContext,
    ) -> list[Basket]:
        return []

    def eliminate(
        self,
        items: list[Item],
        settings: Any,
        context: CompileContext,
    ) -> FilterOutcome | None:
        return None


class CompilerRegistry:
    """Dispatch table from filter kind to compiler."""

    def __init__(self, compilers: Sequence[QuotaCompiler] = ()) -> None:
        self._compilers: dict[FilterKind, QuotaCompiler] = {}
        for compiler in compilers:
            self.register(compiler)

    def register(self, compiler: QuotaCompiler) -> None:
        self._compilers[compiler.kind] = compiler

    def get(self, kind: FilterKind) -> QuotaCompiler:
        try:
            return self._compilers[kind]
        except KeyError:
            raise KeyError(
                f"No compiler registered for filter kind {kind.value!r}"
            ) from None

    def __contains__(self, kind: object) -> bool:
        return kind in self._compilers

    def kinds(self) -> list[FilterKind]:
        return list(self._compilers)
