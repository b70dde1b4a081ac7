from collections.abc import Sequence
from pathlib import Path
from typing import Any

import srsly

from quizbasket.core.models import Item


def make_item(item_id: str | int, **fields: Any) -> Item:
    """Build an item with its own anime unless ``anime_id`` is given."""
    fields.setdefault("anime_id", f"anime-{item_id}")
    fields.setdefault("name", f"Song {item_id}")
    source_id = fields.pop("source_id", None)
    item = Item(item_id=str(item_id), **fields)
    if source_id is not None:
        item = item.with_source(source_id)
    return item


def make_pool(
    count: int, *, prefix: str = "s", start: int = 0, **fields: Any
) -> list[Item]:
    return [
        make_item(f"{prefix}{i}", **fields)
        for i in range(start, start + count)
    ]


def ids(items: Sequence[Item]) -> list[str]:
    return [item.item_id for item in items]


def write_pool(path: Path, items: Sequence[Item]) -> Path:
    srsly.write_jsonl(
        path, [item.model_dump(mode="json", by_alias=True) for item in items]
    )
    return path
