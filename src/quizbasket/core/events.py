import logging
from typing import Any, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class DistributionEvent(BaseModel):
    """Single structured event emitted while distributing a selection."""

    name: str = Field(description="Event identifier, e.g. 'attempt_scored'")
    attempt: int | None = Field(
        default=None, description="Zero-based attempt index, if any"
    )
    data: dict[str, Any] = Field(
        default_factory=dict, description="Serializable event payload"
    )


class EventSink(Protocol):
    def emit(self, event: DistributionEvent) -> None: ...


class NullSink:
    def emit(self, event: DistributionEvent) -> None:
        return None


class CollectingSink:
    def __init__(self) -> None:
        self.events: list[DistributionEvent] = []

    def emit(self, event: DistributionEvent) -> None:
        self.events.append(event)

    def named(self, name: str) -> list[DistributionEvent]:
        return [event for event in self.events if event.name == name]


class LoggingSink:
    def __init__(self, level: int = logging.DEBUG) -> None:
        self.level = level

    def emit(self, event: DistributionEvent) -> None:
        logger.log(
            self.level, "%s attempt=%s %s", event.name, event.attempt, event.data
        )
