"""Tests for EventBus and namespace event types."""

from __future__ import annotations

import logging

import pytest

from fedns.fs.events import EventBus, EventType, NamespaceEvent

# =========================================================================
# Helpers
# =========================================================================


async def _collecting_handler(events: list[NamespaceEvent], event: NamespaceEvent) -> None:
    """Append event to a list for assertion."""
    events.append(event)


async def _failing_handler(event: NamespaceEvent) -> None:
    """Handler that always raises."""
    raise RuntimeError(f"boom on {event.path}")


# =========================================================================
# EventType
# =========================================================================


class TestEventType:
    def test_member_count(self) -> None:
        assert len(EventType) == 6

    def test_values(self) -> None:
        assert EventType.FILE_WRITTEN.value == "file_written"
        assert EventType.MOUNTS_CHANGED.value == "mounts_changed"

    def test_unique_values(self) -> None:
        values = [et.value for et in EventType]
        assert len(values) == len(set(values))


# =========================================================================
# NamespaceEvent
# =========================================================================


class TestNamespaceEvent:
    def test_construction(self) -> None:
        evt = NamespaceEvent(EventType.FILE_WRITTEN, "/a/b.txt")
        assert evt.path == "/a/b.txt"
        assert evt.old_path is None

    def test_immutable(self) -> None:
        evt = NamespaceEvent(EventType.FILE_WRITTEN, "/a.txt")
        with pytest.raises(AttributeError):
            evt.path = "/b.txt"  # type: ignore[misc]

    def test_write_invalidates_parent_listing(self) -> None:
        evt = NamespaceEvent(EventType.FILE_WRITTEN, "/a/b.txt")
        assert evt.invalidated_listings == ("/a",)
        assert evt.removed_paths == ()

    def test_move_invalidates_both_parents(self) -> None:
        evt = NamespaceEvent(EventType.FILE_MOVED, "/dst/f.txt", old_path="/src/f.txt")
        assert evt.invalidated_listings == ("/dst", "/src")
        assert evt.removed_paths == ("/src/f.txt",)

    def test_move_within_directory(self) -> None:
        evt = NamespaceEvent(EventType.FILE_MOVED, "/d/new.txt", old_path="/d/old.txt")
        assert evt.invalidated_listings == ("/d",)

    def test_delete_removes_path(self) -> None:
        evt = NamespaceEvent(EventType.DIR_REMOVED, "/d")
        assert evt.removed_paths == ("/d",)

    def test_mounts_changed_invalidates_mount_listing(self) -> None:
        evt = NamespaceEvent(EventType.MOUNTS_CHANGED, "/mnt/gcs")
        assert evt.invalidated_listings == ("/mnt", "/mnt/gcs")


# =========================================================================
# EventBus — registration
# =========================================================================


class TestEventBusRegistration:
    def test_initial_handler_count(self) -> None:
        assert EventBus().handler_count == 0

    def test_register_all(self) -> None:
        bus = EventBus()
        bus.register_all(_failing_handler)
        assert bus.handler_count == len(EventType)

    def test_unregister(self) -> None:
        bus = EventBus()
        bus.register(EventType.FILE_DELETED, _failing_handler)
        assert bus.unregister(EventType.FILE_DELETED, _failing_handler) is True
        assert bus.unregister(EventType.FILE_DELETED, _failing_handler) is False
        assert bus.handler_count == 0

    def test_clear(self) -> None:
        bus = EventBus()
        bus.register_all(_failing_handler)
        bus.clear()
        assert bus.handler_count == 0


# =========================================================================
# EventBus — emit
# =========================================================================


class TestEventBusEmit:
    async def test_handlers_called_in_order(self) -> None:
        bus = EventBus()
        order: list[str] = []

        async def first(event: NamespaceEvent) -> None:
            order.append("first")

        async def second(event: NamespaceEvent) -> None:
            order.append("second")

        bus.register(EventType.FILE_WRITTEN, first)
        bus.register(EventType.FILE_WRITTEN, second)
        await bus.emit(NamespaceEvent(EventType.FILE_WRITTEN, "/a"))
        assert order == ["first", "second"]

    async def test_type_filtering(self) -> None:
        bus = EventBus()
        events: list[NamespaceEvent] = []
        bus.register(EventType.FILE_DELETED, lambda e: _collecting_handler(events, e))

        await bus.emit(NamespaceEvent(EventType.FILE_WRITTEN, "/a"))
        await bus.emit(NamespaceEvent(EventType.FILE_DELETED, "/b"))

        assert [e.path for e in events] == ["/b"]

    async def test_error_isolation(self) -> None:
        bus = EventBus()
        events: list[NamespaceEvent] = []
        bus.register(EventType.FILE_WRITTEN, _failing_handler)
        bus.register(EventType.FILE_WRITTEN, lambda e: _collecting_handler(events, e))

        await bus.emit(NamespaceEvent(EventType.FILE_WRITTEN, "/a"))
        assert len(events) == 1

    async def test_error_logging(self, caplog: pytest.LogCaptureFixture) -> None:
        bus = EventBus()
        bus.register(EventType.FILE_WRITTEN, _failing_handler)
        with caplog.at_level(logging.WARNING, logger="fedns.fs.events"):
            await bus.emit(NamespaceEvent(EventType.FILE_WRITTEN, "/boom.txt"))
        assert "file_written" in caplog.text
        assert "/boom.txt" in caplog.text
