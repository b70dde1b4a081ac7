"""Loading source pools from JSONL and tagging items with their source."""

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from pathlib import Path

import srsly
from pydantic import Field

from quizbasket.core.config import SourceShare
from quizbasket.core.models import CamelModel, Item
from quizbasket.core.results import LoadingError

logger = logging.getLogger(__name__)


class SourceFile(CamelModel):
    source_id: str
    path: str
    basket_source_id: str | None = Field(
        default=None, description="Group identity for source-share baskets"
    )
    percentage: float | None = None
    selection_class: str | None = None
    list_info: str = ""


class LoadedPool(CamelModel):
    items: list[Item] = Field(default_factory=list)
    loading_errors: list[LoadingError] = Field(default_factory=list)
    shares: list[SourceShare] = Field(default_factory=list)

    def by_source(self) -> dict[str, int]:
        return dict(Counter(item.source_id or "" for item in self.items))


class BatchMember(CamelModel):
    username: str = ""
    path: str
    percentage: float | None = None


class BatchSource(CamelModel):
    """Several users' lists configured together as one source node."""

    node_id: str
    percentage: float | None = None
    members: list[BatchMember] = Field(default_factory=list)
    list_info: str = ""


def read_items(path: str | Path) -> list[Item]:
    return [Item.model_validate(record) for record in srsly.read_jsonl(path)]


def load_sources(files: Sequence[SourceFile]) -> LoadedPool:
    """Load every source, collecting failures instead of raising."""
    pool = LoadedPool()
    for source in files:
        try:
            items = read_items(source.path)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load source %s: %s", source.source_id, exc)
            pool.loading_errors.append(
                LoadingError(
                    source_id=source.source_id,
                    path=source.path,
                    message=str(exc),
                )
            )
            continue
        pool.items.extend(
            item.with_source(
                source.source_id,
                basket_source_id=source.basket_source_id,
                selection_class=source.selection_class,
                source_info=source.list_info or None,
            )
            for item in items
        )
        logger.debug("Loaded %d items from %s", len(items), source.source_id)

    seen: set[str] = set()
    for source in files:
        share_id = source.basket_source_id or source.source_id
        if source.percentage is None or share_id in seen:
            continue
        seen.add(share_id)
        pool.shares.append(
            SourceShare(source_id=share_id, percentage=source.percentage)
        )
    return pool


def compute_overlap_counts(items: Iterable[Item]) -> dict[str, int]:
    """Number of distinct sources containing each item id."""
    sources: dict[str, set[str]] = {}
    for item in items:
        sources.setdefault(item.item_id, set()).add(item.source_id or "")
    return {item_id: len(ids) for item_id, ids in sources.items()}


def expand_batch_source(batch: BatchSource) -> list[SourceFile]:
    """Expand a batch node into one source per member.

    With a node percentage and per-member percentages, each member gets
    ``node * member / 100``. With only a node percentage, all members share
    the node id as their basket source and the node percentage is attached
    to the first member (one share for the whole group). With only member
    percentages each member keeps its own. Without any, no shares apply.
    """
    node_pct = batch.percentage
    has_member_pct = any(m.percentage is not None for m in batch.members)
    label = batch.list_info or batch.node_id
    files = []
    for i, member in enumerate(batch.members):
        source_id = f"{batch.node_id}-user-{i}"
        list_info = f"{label} - {member.username or f'User {i + 1}'}"
        member_pct = member.percentage or 0.0
        match (node_pct is not None, has_member_pct):
            case (True, True):
                assert node_pct is not None
                files.append(
                    SourceFile(
                        source_id=source_id,
                        path=member.path,
                        percentage=node_pct * member_pct / 100,
                        list_info=list_info,
                    )
                )
            case (True, False):
                files.append(
                    SourceFile(
                        source_id=source_id,
                        path=member.path,
                        basket_source_id=batch.node_id,
                        percentage=node_pct if i == 0 else None,
                        list_info=list_info,
                    )
                )
            case (False, True):
                files.append(
                    SourceFile(
                        source_id=source_id,
                        path=member.path,
                        percentage=member_pct,
                        list_info=list_info,
                    )
                )
            case _:
                files.append(
                    SourceFile(
                        source_id=source_id, path=member.path, list_info=list_info
                    )
                )
    return files
