from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from quizbasket.core.models import Item
from quizbasket.core.results import BasketStatus
from selection_viewer.loader import SelectionStore


class ItemSummary(BaseModel):
    """Lightweight item payload for list views."""

    item_id: str
    name: str
    anime_name: str
    song_type: str
    source_id: str | None = None
    difficulty: float | None = None


class ItemListResponse(BaseModel):
    """Paginated item summary response."""

    items: list[ItemSummary]
    total: int
    offset: int
    limit: int


class ReportSummary(BaseModel):
    seed_used: str
    success: bool
    target_count: int
    final_count: int
    attempts: int
    warnings: list[str]


def create_routes(store: SelectionStore) -> APIRouter:
    """Create API routes with access to the selection store."""
    router = APIRouter(prefix="/api")

    @router.get("/items")
    def list_items(
        source_id: str | None = None,
        song_type: str | None = None,
        offset: int = Query(default=0, ge=0),
        limit: int = Query(default=100, ge=1, le=500),
    ) -> ItemListResponse:
        """List item summaries with optional filters and pagination."""
        items = store.list_items(source_id, song_type)
        page = items[offset : offset + limit]
        return ItemListResponse(
            items=[
                ItemSummary(
                    item_id=i.item_id,
                    name=i.name,
                    anime_name=i.anime_name,
                    song_type=i.song_type,
                    source_id=i.source_id,
                    difficulty=i.difficulty,
                )
                for i in page
            ],
            total=len(items),
            offset=offset,
            limit=limit,
        )

    @router.get("/items/{item_id}")
    def get_item(item_id: str) -> Item:
        """Get a single item by ID."""
        item = store.get_item(item_id)
        if item is None:
            raise HTTPException(status_code=404, detail="Item not found")
        return item

    @router.get("/sources")
    def list_sources() -> list[str]:
        return store.get_sources()

    @router.get("/report")
    def get_report() -> ReportSummary:
        report = store.report
        if report is None:
            raise HTTPException(status_code=404, detail="No report loaded")
        return ReportSummary(
            seed_used=report.seed_used,
            success=report.success,
            target_count=report.target_count,
            final_count=report.final_count,
            attempts=report.attempts,
            warnings=report.warnings,
        )

    @router.get("/baskets")
    def list_baskets(
        unmet_only: bool = False,
    ) -> list[BasketStatus]:
        """Basket fill status from the report, optionally only shortfalls."""
        report = store.report
        if report is None:
            raise HTTPException(status_code=404, detail="No report loaded")
        if unmet_only:
            return report.failed_baskets
        return report.basket_status

    return router
