"""EventBus and event types for cache invalidation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .utils import parent_path

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of namespace mutations that invalidate cached views."""

    FILE_WRITTEN = "file_written"
    FILE_DELETED = "file_deleted"
    FILE_MOVED = "file_moved"
    DIR_CREATED = "dir_created"
    DIR_REMOVED = "dir_removed"
    MOUNTS_CHANGED = "mounts_changed"


@dataclass(frozen=True, slots=True)
class NamespaceEvent:
    """Immutable record of a namespace mutation.

    Attributes:
        event_type: The kind of mutation that occurred.
        path: Path of the affected object (destination for moves,
            mount point for mount changes).
        old_path: Previous path (moves only).
    """

    event_type: EventType
    path: str
    old_path: str | None = None

    @property
    def invalidated_listings(self) -> tuple[str, ...]:
        """Directory listings a cache must refresh after this event."""
        listings = [parent_path(self.path)]
        if self.old_path is not None and parent_path(self.old_path) not in listings:
            listings.append(parent_path(self.old_path))
        if self.event_type is EventType.MOUNTS_CHANGED and self.path not in listings:
            listings.append(self.path)
        return tuple(listings)

    @property
    def removed_paths(self) -> tuple[str, ...]:
        """Paths whose cached content must be dropped."""
        if self.event_type is EventType.FILE_MOVED and self.old_path is not None:
            return (self.old_path,)
        if self.event_type in (EventType.FILE_DELETED, EventType.DIR_REMOVED):
            return (self.path,)
        return ()


class EventBus:
    """Dispatches namespace events to registered handlers.

    Handlers are called sequentially in registration order.
    Exceptions are logged but never propagated — a failing handler
    leaves a stale cache, it does not fail the mutation that already
    happened.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(self, event_type: EventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def register_all(self, handler: Callable[..., Any]) -> None:
        """Register *handler* for every event type."""
        for event_type in EventType:
            self.register(event_type, handler)

    def unregister(self, event_type: EventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    async def emit(self, event: NamespaceEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        for handler in self._handlers[event.event_type]:
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s",
                    handler,
                    event.event_type.value,
                    event.path,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()
