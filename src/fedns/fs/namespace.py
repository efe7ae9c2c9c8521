"""NamespaceClient — the file-operation façade over the RPC transport."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from fedns.rpc.codec import encode_bytes
from fedns.rpc.errors import METHOD_NOT_FOUND

from .decoding import decode_file_entries, decode_grep_match
from .enrichment import enrich as enrich_entries
from .events import EventType, NamespaceEvent
from .exceptions import BackendError, FedNSError, NotFoundError, PartialFailure, ValidationError
from .mount_store import MountStore
from .mounts import BackendRegistry
from .sync import SyncEngine
from .types import BatchResult, FileEntry, ItemFailure
from .utils import normalize_path, validate_path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from fedns.config import ClientConfig
    from fedns.rpc.transport import Transport

    from .events import EventBus
    from .types import GrepMatch, Mount, SavedMount, SyncResult

logger = logging.getLogger(__name__)


def _omit_none(**params: Any) -> dict[str, Any]:
    """Drop unset optional parameters; some backends treat null as a value."""
    return {k: v for k, v in params.items() if v is not None}


# =============================================================================
# Rename journal
# =============================================================================


class RenameStep(Enum):
    """Progress of a rename composed from read, write and delete."""

    PENDING = "pending"
    READ = "read"
    WRITTEN = "written"
    COMPLETED = "completed"
    ROLLED_BACK = "rolled_back"


@dataclass
class RenameJournal:
    """Observable record of one composed rename.

    A journal left at ``WRITTEN`` means both copies exist: the rename
    can be resumed (delete the source) or rolled back (delete the
    destination) with ``NamespaceClient.recover_rename``.
    """

    old_path: str
    new_path: str
    step: RenameStep = RenameStep.PENDING
    error: Exception | None = None

    @property
    def in_doubt(self) -> bool:
        return self.step is RenameStep.WRITTEN

    @property
    def done(self) -> bool:
        return self.step in (RenameStep.COMPLETED, RenameStep.ROLLED_BACK)


# =============================================================================
# Client
# =============================================================================


class NamespaceClient:
    """Canonical file-operation surface of the federated namespace.

    Every operation addresses a path; the server picks the owning
    backend.  Operations on the same path are not serialized here.

    Usage::

        async with NamespaceClient.from_config(ClientConfig.from_env()) as ns:
            await ns.write("/workspace/notes.md", "# hi")
            entries = await ns.list("/", enrich=True)
    """

    def __init__(self, transport: Transport, *, event_bus: EventBus | None = None) -> None:
        self._transport = transport
        self._event_bus = event_bus
        self.registry = BackendRegistry(transport)
        self.mount_store = MountStore(transport, event_bus)
        self.sync_engine = SyncEngine(transport)
        self._pending_renames: list[RenameJournal] = []

    @classmethod
    def from_config(cls, config: ClientConfig, *, event_bus: EventBus | None = None) -> NamespaceClient:
        """Build a client talking HTTP to the server described by *config*."""
        from fedns.rpc.transport import HTTPTransport

        transport = HTTPTransport(
            config.base_url,
            config.api_key,
            timeout=config.timeout,
            rpc_prefix=config.rpc_prefix,
        )
        return cls(transport, event_bus=event_bus)

    async def close(self) -> None:
        await self._transport.close()

    async def __aenter__(self) -> NamespaceClient:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _path(path: str) -> str:
        valid, error = validate_path(path)
        if not valid:
            raise ValidationError(error)
        return normalize_path(path)

    async def _emit(self, event_type: EventType, path: str, old_path: str | None = None) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit(NamespaceEvent(event_type, path, old_path))

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list(
        self,
        path: str = "/",
        *,
        recursive: bool = False,
        details: bool = True,
        prefix: str | None = None,
        show_parsed: bool | None = None,
        enrich: bool = False,
    ) -> list[FileEntry]:
        """List *path*; with *enrich* annotate mount-root entries.

        Enrichment uses a fresh snapshot of active mounts.  If either
        call fails, nothing is returned.
        """
        path = self._path(path)
        result = await self._transport.call(
            "list",
            _omit_none(
                path=path,
                recursive=recursive,
                details=details,
                prefix=prefix,
                show_parsed=show_parsed,
            ),
        )
        entries = decode_file_entries(result)
        if not enrich:
            return entries
        mounts = await self.registry.list_active()
        return enrich_entries(entries, mounts)

    async def read(self, path: str) -> bytes:
        """Read a file's raw bytes.

        Raises ``NotFoundError`` if the path is missing or a directory.
        """
        path = self._path(path)
        result = await self._transport.call("read", {"path": path})
        if isinstance(result, bytes):
            return result
        if isinstance(result, str):
            return result.encode("utf-8")
        if result is None:
            raise NotFoundError(f"File not found: {path}")
        raise BackendError(f"Unexpected read result for {path}: {type(result).__name__}")

    async def read_text(self, path: str, encoding: str = "utf-8") -> str:
        return (await self.read(path)).decode(encoding)

    async def exists(self, path: str) -> bool:
        path = self._path(path)
        result = await self._transport.call("exists", {"path": path})
        return bool(result.get("exists") if isinstance(result, dict) else result)

    async def is_directory(self, path: str) -> bool:
        path = self._path(path)
        result = await self._transport.call("is_directory", {"path": path})
        return bool(result.get("is_directory") if isinstance(result, dict) else result)

    async def glob(self, pattern: str, path: str = "/") -> list[str]:
        """Paths under *path* matching *pattern*."""
        if not pattern:
            raise ValidationError("pattern is required")
        path = self._path(path)
        result = await self._transport.call("glob", {"pattern": pattern, "path": path})
        matches = result.get("matches", []) if isinstance(result, dict) else result
        return [normalize_path(m) for m in matches or []]

    async def grep(
        self,
        pattern: str,
        *,
        path: str = "/",
        file_pattern: str | None = None,
        ignore_case: bool = False,
        max_results: int = 100,
    ) -> list[GrepMatch]:
        """Search file contents; at most *max_results* matches are returned."""
        if not pattern:
            raise ValidationError("pattern is required")
        if max_results < 1:
            raise ValidationError("max_results must be positive")
        path = self._path(path)
        result = await self._transport.call(
            "grep",
            _omit_none(
                pattern=pattern,
                path=path,
                file_pattern=file_pattern,
                ignore_case=ignore_case,
                max_results=max_results,
            ),
        )
        raw = result.get("results", []) if isinstance(result, dict) else result
        return [decode_grep_match(m) for m in (raw or [])[:max_results]]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def write(self, path: str, content: str | bytes) -> None:
        """Write *content*; text is UTF-8 encoded and sent as bytes."""
        path = self._path(path)
        try:
            envelope = encode_bytes(content)
        except TypeError as e:
            raise ValidationError(str(e)) from e
        await self._transport.call("write", {"path": path, "content": envelope})
        await self._emit(EventType.FILE_WRITTEN, path)

    async def delete(self, path: str) -> None:
        """Delete a file.  Non-empty directories need ``rmdir(recursive=True)``."""
        path = self._path(path)
        await self._transport.call("delete", {"path": path})
        await self._emit(EventType.FILE_DELETED, path)

    async def mkdir(self, path: str, *, parents: bool = True, exist_ok: bool = False) -> None:
        path = self._path(path)
        await self._transport.call("mkdir", {"path": path, "parents": parents, "exist_ok": exist_ok})
        await self._emit(EventType.DIR_CREATED, path)

    async def rmdir(self, path: str, recursive: bool = False) -> None:
        path = self._path(path)
        await self._transport.call("rmdir", {"path": path, "recursive": recursive})
        await self._emit(EventType.DIR_REMOVED, path)

    async def remove(self, path: str, *, is_directory: bool) -> None:
        """Remove a file, or a directory with everything under it."""
        if is_directory:
            await self.rmdir(path, recursive=True)
        else:
            await self.delete(path)

    async def delete_many(self, targets: Iterable[FileEntry | str]) -> BatchResult:
        """Remove every target, continuing past failures.

        ``FileEntry`` directories are removed recursively; bare strings
        are deleted as files.
        """
        result = BatchResult()
        for target in targets:
            if isinstance(target, FileEntry):
                path, is_dir = target.path, target.is_directory
            else:
                path, is_dir = target, False
            try:
                await self.remove(path, is_directory=is_dir)
            except FedNSError as e:
                logger.warning("Failed to remove %s: %s", path, e)
                result.failures.append(ItemFailure(path, e))
            else:
                result.succeeded.append(normalize_path(path))
        return result

    # ------------------------------------------------------------------
    # Rename / Move
    # ------------------------------------------------------------------

    @property
    def pending_renames(self) -> list[RenameJournal]:
        """Renames that stopped with both copies present."""
        return list(self._pending_renames)

    async def rename(self, old_path: str, new_path: str) -> RenameJournal:
        """Rename by reading the source, writing the copy, deleting the source.

        Not atomic.  A failure while reading or writing leaves only the
        source; a failure while deleting leaves both copies and keeps
        the journal in ``pending_renames``.
        """
        old_path = self._path(old_path)
        new_path = self._path(new_path)
        if old_path == new_path:
            raise ValidationError(f"Source and destination are the same: {old_path}")

        journal = RenameJournal(old_path, new_path)
        self._pending_renames.append(journal)
        try:
            content = await self.read(old_path)
            journal.step = RenameStep.READ
            await self.write(new_path, content)
            journal.step = RenameStep.WRITTEN
            await self.delete(old_path)
            journal.step = RenameStep.COMPLETED
        except FedNSError as e:
            journal.error = e
            e.journal = journal  # type: ignore[attr-defined]
            raise
        finally:
            if journal.step is not RenameStep.WRITTEN:
                self._pending_renames.remove(journal)

        await self._emit(EventType.FILE_MOVED, new_path, old_path)
        return journal

    async def recover_rename(self, journal: RenameJournal, *, rollback: bool = False) -> None:
        """Finish or undo a rename that stopped after writing the copy."""
        if not journal.in_doubt:
            raise ValidationError(f"Rename {journal.old_path} -> {journal.new_path} is not in doubt")
        if rollback:
            await self.delete(journal.new_path)
            journal.step = RenameStep.ROLLED_BACK
        else:
            await self.delete(journal.old_path)
            journal.step = RenameStep.COMPLETED
            await self._emit(EventType.FILE_MOVED, journal.new_path, journal.old_path)
        journal.error = None
        if journal in self._pending_renames:
            self._pending_renames.remove(journal)

    async def move(self, old_path: str, new_path: str) -> None:
        """Move via the server's single ``rename`` call.

        Falls back to ``rename`` when the server does not offer it.
        """
        old_path = self._path(old_path)
        new_path = self._path(new_path)
        try:
            await self._transport.call("rename", {"old_path": old_path, "new_path": new_path})
        except BackendError as e:
            if e.code != METHOD_NOT_FOUND:
                raise
            logger.debug("Server has no rename; composing %s -> %s", old_path, new_path)
            await self.rename(old_path, new_path)
            return
        await self._emit(EventType.FILE_MOVED, new_path, old_path)

    # ------------------------------------------------------------------
    # Mounts
    # ------------------------------------------------------------------

    async def list_mounts(self) -> list[Mount]:
        return await self.registry.list_active()

    list_connectors = list_mounts

    async def list_saved_mounts(self) -> list[SavedMount]:
        return await self.mount_store.list_saved()

    list_saved_connectors = list_saved_mounts

    async def load_mount(self, mount_point: str) -> str:
        return await self.mount_store.load(mount_point)

    async def delete_saved_mount(self, mount_point: str) -> bool:
        return await self.mount_store.delete(mount_point)

    async def sync(
        self,
        mount_point: str,
        *,
        recursive: bool = True,
        dry_run: bool = False,
        raise_on_errors: bool = False,
    ) -> SyncResult:
        try:
            result = await self.sync_engine.sync(
                mount_point, recursive=recursive, dry_run=dry_run, raise_on_errors=raise_on_errors
            )
        except PartialFailure:
            if not dry_run:
                await self._emit(EventType.MOUNTS_CHANGED, normalize_path(mount_point))
            raise
        if not dry_run:
            await self._emit(EventType.MOUNTS_CHANGED, normalize_path(mount_point))
        return result
