from typing import Any

from pydantic import Field

from quizbasket.core.models import CamelModel, Item


class BasketStatus(CamelModel):
    id: str
    current: int
    min: int
    max: int
    meets_min: bool
    percent_of_max: int = Field(description="current / max as a percentage")


class FilterStatistic(CamelModel):
    name: str
    before: int
    after: int
    removed: int
    details: dict[str, Any] = Field(default_factory=dict)


class LoadingError(CamelModel):
    source_id: str
    path: str | None = None
    message: str


class GenerationResult(CamelModel):
    selected_items: list[Item] = Field(default_factory=list)
    seed_used: str
    attempts: int = 0
    success: bool = Field(
        default=False, description="True only when every basket minimum is met"
    )
    basket_status: list[BasketStatus] = Field(default_factory=list)
    failed_baskets: list[BasketStatus] = Field(default_factory=list)
    target_count: int = 0
    final_count: int = 0
    source_item_count: int = 0
    eligible_item_count: int = 0
    filter_statistics: list[FilterStatistic] = Field(default_factory=list)
    loading_errors: list[LoadingError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
