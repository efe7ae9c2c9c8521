"""Tests for sync: result decoding, the in-flight guard, reconciliation."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError

from fedns.fs.events import EventBus, EventType, NamespaceEvent
from fedns.fs.exceptions import (
    BackendError,
    NotFoundError,
    PartialFailure,
    SyncInProgressError,
    ValidationError,
)
from fedns.fs.namespace import NamespaceClient
from fedns.fs.sync import SyncEngine, SyncResultDecoder
from fedns.fs.types import SyncResult
from fedns.models.files import FileRecord
from fedns.rpc.transport import LocalTransport
from fedns.server.backends.connector import ConnectorBackend
from fedns.server.backends.memory import MemoryBackend
from fedns.server.metadata import MetadataCache

# =========================================================================
# Decoder
# =========================================================================


class TestSyncResultDecoder:
    def test_v2_fields(self):
        raw = {
            "files_scanned": 10,
            "files_created": 3,
            "files_updated": 2,
            "files_deleted": 1,
            "errors": 0,
        }
        assert SyncResultDecoder().decode(raw) == SyncResult(10, 2, 3, 1, 0)

    def test_v1_fields(self):
        raw = {"files_found": 7, "files_added": 4, "files_updated": 1}
        result = SyncResultDecoder().decode(raw)
        assert result.files_scanned == 7
        assert result.files_created == 4
        assert result.files_updated == 1
        assert result.files_deleted == 0

    def test_v2_wins_when_both_present(self):
        raw = {"files_found": 1, "files_scanned": 9, "files_added": 2, "files_created": 8}
        result = SyncResultDecoder().decode(raw)
        assert (result.files_scanned, result.files_created) == (9, 8)

    def test_missing_fields_are_zero(self):
        assert SyncResultDecoder().decode({}) == SyncResult()

    def test_none_is_empty_result(self):
        assert SyncResultDecoder().decode(None) == SyncResult()

    def test_not_a_mapping(self):
        with pytest.raises(BackendError):
            SyncResultDecoder().decode([1, 2])

    def test_non_numeric(self):
        with pytest.raises(BackendError):
            SyncResultDecoder().decode({"files_scanned": "many"})

    def test_detect_version(self):
        decoder = SyncResultDecoder()
        assert decoder.detect_version({"files_scanned": 1}) == 2
        assert decoder.detect_version({"files_added": 1}) == 1
        assert decoder.detect_version({"errors": 1}) is None

    def test_result_helpers(self):
        result = SyncResult(errors=2)
        assert result.has_errors
        assert result.to_dict()["errors"] == 2


# =========================================================================
# Engine
# =========================================================================


class GatedTransport:
    """Holds each sync call until ``release`` is set."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self.calls: list[dict[str, Any]] = []
        self.result: Any = {"files_scanned": 1}

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        self.calls.append(params or {})
        self.started.set()
        await self.release.wait()
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    async def close(self) -> None:
        pass


class TestSyncEngine:
    async def test_sends_parameters(self):
        transport = GatedTransport()
        transport.release.set()
        await SyncEngine(transport).sync("/mnt/gcs/", recursive=False, dry_run=True)
        assert transport.calls == [{"mount_point": "/mnt/gcs", "recursive": False, "dry_run": True}]

    async def test_concurrent_sync_same_mount_rejected(self):
        transport = GatedTransport()
        engine = SyncEngine(transport)

        first = asyncio.create_task(engine.sync("/mnt/gcs"))
        await transport.started.wait()
        assert engine.is_syncing("/mnt/gcs")

        with pytest.raises(SyncInProgressError):
            await engine.sync("/mnt/gcs/")

        transport.release.set()
        assert (await first).files_scanned == 1
        assert not engine.is_syncing("/mnt/gcs")

    async def test_different_mounts_run_concurrently(self):
        transport = GatedTransport()
        engine = SyncEngine(transport)

        first = asyncio.create_task(engine.sync("/mnt/a"))
        second = asyncio.create_task(engine.sync("/mnt/b"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert engine.is_syncing("/mnt/a")
        assert engine.is_syncing("/mnt/b")

        transport.release.set()
        await asyncio.gather(first, second)
        assert len(transport.calls) == 2

    async def test_guard_released_after_failure(self):
        transport = GatedTransport()
        transport.release.set()
        transport.result = BackendError("down")
        engine = SyncEngine(transport)

        with pytest.raises(BackendError):
            await engine.sync("/mnt/gcs")
        assert not engine.is_syncing("/mnt/gcs")

        transport.result = {"files_scanned": 2}
        assert (await engine.sync("/mnt/gcs")).files_scanned == 2

    async def test_raise_on_errors(self):
        transport = GatedTransport()
        transport.release.set()
        transport.result = {"files_scanned": 5, "errors": 2}
        engine = SyncEngine(transport)

        assert (await engine.sync("/mnt/gcs")).errors == 2
        with pytest.raises(PartialFailure) as info:
            await engine.sync("/mnt/gcs", raise_on_errors=True)
        assert info.value.result.errors == 2

    async def test_mount_point_required(self):
        with pytest.raises(ValidationError):
            await SyncEngine(GatedTransport()).sync("  ")


# =========================================================================
# Reconciliation against a local connector
# =========================================================================


@pytest.fixture
def source_dir(tmp_path):
    root = tmp_path / "source"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("alpha")
    (root / "sub" / "b.txt").write_text("beta")
    return root


@pytest.fixture
async def ns(client, source_dir) -> NamespaceClient:
    await client.mount_store.save("/mnt/docs", "local_connector", {"root_path": str(source_dir)})
    await client.load_mount("/mnt/docs")
    return client


class TestConnectorSync:
    async def test_listing_empty_until_synced(self, ns):
        assert await ns.list("/mnt/docs") == []

    async def test_dry_run_changes_nothing(self, ns):
        result = await ns.sync("/mnt/docs", dry_run=True)
        assert (result.files_scanned, result.files_created) == (3, 3)
        assert await ns.list("/mnt/docs") == []

        again = await ns.sync("/mnt/docs", dry_run=True)
        assert again == result

    async def test_sync_populates_listing(self, ns):
        result = await ns.sync("/mnt/docs")
        assert result == SyncResult(files_scanned=3, files_created=3)

        entries = await ns.list("/mnt/docs")
        assert [(e.path, e.is_directory) for e in entries] == [
            ("/mnt/docs/sub", True),
            ("/mnt/docs/a.txt", False),
        ]
        assert entries[1].size == 5

    async def test_second_sync_is_quiet(self, ns):
        await ns.sync("/mnt/docs")
        result = await ns.sync("/mnt/docs")
        assert result == SyncResult(files_scanned=3)

    async def test_external_changes_seen_only_after_sync(self, ns, source_dir):
        await ns.sync("/mnt/docs")
        (source_dir / "a.txt").write_text("alpha, longer now")
        (source_dir / "sub" / "b.txt").unlink()
        (source_dir / "c.txt").write_text("new")

        listed = {e.path for e in await ns.list("/mnt/docs", recursive=True)}
        assert "/mnt/docs/sub/b.txt" in listed
        assert "/mnt/docs/c.txt" not in listed

        preview = await ns.sync("/mnt/docs", dry_run=True)
        assert preview == SyncResult(
            files_scanned=3, files_updated=1, files_created=1, files_deleted=1
        )
        listed = {e.path for e in await ns.list("/mnt/docs", recursive=True)}
        assert "/mnt/docs/c.txt" not in listed

        result = await ns.sync("/mnt/docs")
        assert result == preview
        listed = {e.path for e in await ns.list("/mnt/docs", recursive=True)}
        assert listed == {"/mnt/docs/a.txt", "/mnt/docs/c.txt", "/mnt/docs/sub"}

    async def test_content_reads_go_to_source(self, ns):
        await ns.sync("/mnt/docs")
        assert await ns.read("/mnt/docs/sub/b.txt") == b"beta"

    async def test_write_through_namespace_updates_cache(self, ns, source_dir):
        await ns.write("/mnt/docs/notes/new.md", "# new")
        assert (source_dir / "notes" / "new.md").read_text() == "# new"
        paths = [e.path for e in await ns.list("/mnt/docs/notes")]
        assert paths == ["/mnt/docs/notes/new.md"]

    async def test_non_recursive_sync(self, ns):
        result = await ns.sync("/mnt/docs", recursive=False)
        assert result.files_scanned == 2
        assert [e.path for e in await ns.list("/mnt/docs/sub")] == []

    async def test_sync_emits_mounts_changed(self, service, ns):
        bus = EventBus()
        seen: list[NamespaceEvent] = []

        async def collect(event: NamespaceEvent) -> None:
            seen.append(event)

        bus.register(EventType.MOUNTS_CHANGED, collect)
        watched = NamespaceClient(LocalTransport(service), event_bus=bus)
        await watched.sync("/mnt/docs", dry_run=True)
        assert seen == []
        await watched.sync("/mnt/docs")
        assert [e.path for e in seen] == ["/mnt/docs"]

    async def test_partial_failure_still_emits_mounts_changed(self):
        transport = GatedTransport()
        transport.release.set()
        transport.result = {"files_scanned": 2, "files_created": 1, "errors": 1}
        bus = EventBus()
        seen: list[NamespaceEvent] = []

        async def collect(event: NamespaceEvent) -> None:
            seen.append(event)

        bus.register(EventType.MOUNTS_CHANGED, collect)
        watched = NamespaceClient(transport, event_bus=bus)

        with pytest.raises(PartialFailure) as info:
            await watched.sync("/mnt/docs", raise_on_errors=True)

        assert info.value.result.files_created == 1
        assert [e.path for e in seen] == ["/mnt/docs"]

    async def test_sync_inactive_mount(self, client):
        with pytest.raises(NotFoundError):
            await client.sync("/mnt/nothing")

    async def test_sync_non_connector_mount(self, client):
        await client.mount_store.save("/mnt/mem", "memory")
        await client.load_mount("/mnt/mem")
        with pytest.raises(ValidationError):
            await client.sync("/mnt/mem")


# =========================================================================
# Per-object failures
# =========================================================================


class FlakySource(MemoryBackend):
    """Memory source whose stat fails for one path."""

    def __init__(self, bad: str) -> None:
        super().__init__()
        self.bad = bad

    async def stat(self, path: str):
        if path == self.bad:
            raise BackendError(f"cannot stat {path}")
        return await super().stat(path)


class TestReconcileErrors:
    async def test_one_bad_object_counts_and_continues(self, session_factory):
        source = FlakySource("/bad.txt")
        for name in ("/a.txt", "/bad.txt", "/c.txt"):
            await source.write(name, b"data")
        connector = ConnectorBackend(source, MetadataCache(session_factory, "/mnt/flaky"))

        result = await connector.reconcile()

        assert result == SyncResult(files_scanned=3, files_created=2, errors=1)
        listed = [e.path for e in await connector.list_dir("/")]
        assert listed == ["/a.txt", "/c.txt"]

    async def test_dry_run_rolls_back(self, session_factory):
        source = MemoryBackend()
        await source.write("/a.txt", b"a")
        cache = MetadataCache(session_factory, "/mnt/dry")
        connector = ConnectorBackend(source, cache)

        result = await connector.reconcile(dry_run=True)

        assert result.files_created == 1
        async with cache.session() as session:
            assert await cache.all_records(session) == {}

    async def test_database_error_rolls_back_only_that_object(self, session_factory):
        source = MemoryBackend()
        for name in ("/a.txt", "/bad.txt", "/c.txt"):
            await source.write(name, b"data")
        cache = DuplicatingCache(session_factory, "/mnt/dup", bad="/bad.txt")
        connector = ConnectorBackend(source, cache)

        result = await connector.reconcile()

        assert result == SyncResult(files_scanned=3, files_created=2, errors=1)
        listed = [e.path for e in await connector.list_dir("/")]
        assert listed == ["/a.txt", "/c.txt"]

    async def test_failed_upsert_is_not_counted_as_created(self, session_factory):
        source = MemoryBackend()
        for name in ("/a.txt", "/bad.txt", "/c.txt"):
            await source.write(name, b"data")
        cache = BrokenCache(session_factory, "/mnt/broken", bad="/bad.txt")

        result = await ConnectorBackend(source, cache).reconcile()

        assert result == SyncResult(files_scanned=3, files_created=2, errors=1)

    async def test_failed_update_is_not_counted_as_updated(self, session_factory):
        source = MemoryBackend()
        await source.write("/a.txt", b"one")
        cache = BrokenCache(session_factory, "/mnt/broken", bad="/never")
        connector = ConnectorBackend(source, cache)
        await connector.reconcile()

        await source.write("/a.txt", b"changed")
        cache.bad = "/a.txt"
        result = await connector.reconcile()

        assert result == SyncResult(files_scanned=1, errors=1)


class DuplicatingCache(MetadataCache):
    """Cache whose upsert for one path breaks the (mount_point, path) constraint."""

    def __init__(self, session_factory, mount_point: str, *, bad: str) -> None:
        super().__init__(session_factory, mount_point)
        self.bad = bad

    async def upsert(self, session, entry):
        if entry.path == self.bad:
            for _ in range(2):
                session.add(FileRecord(mount_point=self.mount_point, path=entry.path))
            await session.flush()
        return await super().upsert(session, entry)


class BrokenCache(MetadataCache):
    """Cache whose upsert raises a database error for one path."""

    def __init__(self, session_factory, mount_point: str, *, bad: str) -> None:
        super().__init__(session_factory, mount_point)
        self.bad = bad

    async def upsert(self, session, entry):
        if entry.path == self.bad:
            raise OperationalError("UPDATE fedns_file_records", {}, Exception("database is locked"))
        return await super().upsert(session, entry)
