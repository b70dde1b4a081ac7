from pathlib import Path

import srsly

from quizbasket.core.models import Item
from quizbasket.core.results import GenerationResult


class SelectionStore:
    """In-memory store for one generated selection and its report."""

    def __init__(self) -> None:
        self._items: dict[str, Item] = {}
        self.report: GenerationResult | None = None

    def load_jsonl(self, path: Path) -> int:
        """Load selected items from JSONL. Returns count of lines processed."""
        total_loaded = 0
        for line in srsly.read_jsonl(path):
            item = Item.model_validate(line)
            self._items[item.item_id] = item
            total_loaded += 1
        return total_loaded

    def load_report(self, path: Path) -> GenerationResult:
        self.report = GenerationResult.model_validate(srsly.read_json(path))
        return self.report

    def list_items(
        self,
        source_id: str | None = None,
        song_type: str | None = None,
    ) -> list[Item]:
        """List items, optionally filtered by source and song type group."""
        items = list(self._items.values())
        if source_id:
            items = [i for i in items if i.source_id == source_id]
        if song_type:
            items = [i for i in items if i.song_type_group == song_type]
        return items

    def get_item(self, item_id: str) -> Item | None:
        return self._items.get(item_id)

    def get_sources(self) -> list[str]:
        return sorted({i.source_id for i in self._items.values() if i.source_id})

    @property
    def count(self) -> int:
        return len(self._items)
