from typing import Any

from pydantic import Field, model_validator

from quizbasket.core.models import (
    CamelModel,
    DuplicatePolicy,
    FilterKind,
    SelectionMode,
)


class FilterConfiguration(CamelModel):
    kind: FilterKind
    settings: dict[str, Any] = Field(default_factory=dict)
    target_source_ids: list[str] | None = Field(
        default=None,
        description="Restrict the filter to items from these sources",
    )

    @model_validator(mode="before")
    @classmethod
    def _accept_single_source_id(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        single = data.get("targetSourceId", data.get("target_source_id"))
        has_many = "targetSourceIds" in data or "target_source_ids" in data
        if single and not has_many:
            data = {**data, "targetSourceIds": [single]}
        return data

    @property
    def scope(self) -> tuple[str, ...] | None:
        if not self.target_source_ids:
            return None
        return tuple(self.target_source_ids)


class SourceShare(CamelModel):
    source_id: str
    percentage: float | None = Field(
        default=None, description="Share of the final selection, 0-100"
    )


class Configuration(CamelModel):
    """Input to a generation run.

    Everything the engine needs besides the item pool itself. A run is a pure
    function of (pool, configuration); ``seed`` pins the outcome.
    """

    target_total: int = Field(ge=0)
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.PROBABILISTIC
    selection_mode: SelectionMode = SelectionMode.DEFAULT
    seed: str | None = None
    filters: list[FilterConfiguration] = Field(default_factory=list)
    sources: list[SourceShare] = Field(default_factory=list)
    max_attempts: int = Field(default=100, ge=1)
    use_entire_pool: bool = Field(
        default=False,
        description="Skip every filter and apply source shares only",
    )
    training_mode: bool = Field(
        default=False,
        description="Return the admissible pool without distribution",
    )
    concretize_ranges: bool = Field(
        default=False,
        description="Resolve range quotas to seeded exact counts",
    )

    def filters_of(self, kind: FilterKind) -> list[FilterConfiguration]:
        return [f for f in self.filters if f.kind is kind]
