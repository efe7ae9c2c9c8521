"""ConnectorBackend — an external source seen through cached metadata.

Listings and stats come from the ``FileRecord`` cache, so changes made
directly in the external source stay invisible until a sync reconciles
them.  Content reads and writes go to the source; writes made through
the namespace update the cache as they happen.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from fedns.fs.exceptions import FedNSError, NotFoundError, ValidationError
from fedns.fs.types import SyncResult
from fedns.fs.utils import normalize_path, parent_path

from .memory import sort_entries
from .protocol import BackendEntry

if TYPE_CHECKING:
    from fedns.server.metadata import MetadataCache

    from .protocol import StorageBackend

logger = logging.getLogger(__name__)


class ConnectorBackend:
    """Wraps a source backend with a per-mount metadata cache.

    Implements ``StorageBackend`` and ``SupportsSync``.
    """

    def __init__(self, source: StorageBackend, cache: MetadataCache) -> None:
        self.source = source
        self.cache = cache

    async def open(self) -> None:
        await self.source.open()

    async def close(self) -> None:
        await self.source.close()

    # ------------------------------------------------------------------
    # Read (cache)
    # ------------------------------------------------------------------

    async def stat(self, path: str) -> BackendEntry | None:
        path = normalize_path(path)
        if path == "/":
            return BackendEntry(path="/", is_directory=True)
        async with self.cache.session() as session:
            record = await self.cache.get(session, path)
            return self.cache.to_entry(record) if record is not None else None

    async def list_dir(self, path: str = "/", *, recursive: bool = False) -> list[BackendEntry]:
        path = normalize_path(path)
        async with self.cache.session() as session:
            if path != "/":
                record = await self.cache.get(session, path)
                if record is None:
                    raise NotFoundError(f"Directory not found: {path}")
                if not record.is_directory:
                    raise ValidationError(f"Not a directory: {path}")
            records = await self.cache.list_children(session, path, recursive=recursive)
            return sort_entries([self.cache.to_entry(r) for r in records])

    async def read(self, path: str) -> bytes:
        return await self.source.read(path)

    # ------------------------------------------------------------------
    # Write (source, then cache)
    # ------------------------------------------------------------------

    async def _refresh(self, path: str) -> None:
        """Re-stat *path* and its ancestors from the source into the cache."""
        path = normalize_path(path)
        async with self.cache.session() as session:
            current = path
            while current != "/":
                entry = await self.source.stat(current)
                if entry is None:
                    await self.cache.remove(session, current, recursive=True)
                else:
                    await self.cache.upsert(session, entry)
                current = parent_path(current)

    async def write(self, path: str, data: bytes) -> None:
        await self.source.write(path, data)
        await self._refresh(path)

    async def delete(self, path: str) -> None:
        await self.source.delete(path)
        async with self.cache.session() as session:
            await self.cache.remove(session, path)

    async def mkdir(self, path: str, *, parents: bool = True, exist_ok: bool = False) -> None:
        await self.source.mkdir(path, parents=parents, exist_ok=exist_ok)
        await self._refresh(path)

    async def rmdir(self, path: str, *, recursive: bool = False) -> None:
        await self.source.rmdir(path, recursive=recursive)
        async with self.cache.session() as session:
            await self.cache.remove(session, path, recursive=True)

    async def move(self, src: str, dest: str) -> None:
        await self.source.move(src, dest)
        moved = [await self.source.stat(dest)]
        if moved[0] is not None and moved[0].is_directory:
            moved.extend(await self.source.list_dir(dest, recursive=True))
        async with self.cache.session() as session:
            await self.cache.remove(session, src, recursive=True)
            for entry in moved:
                if entry is not None:
                    await self.cache.upsert(session, entry)
        await self._refresh(parent_path(dest))

    # ------------------------------------------------------------------
    # Capability: SupportsSync
    # ------------------------------------------------------------------

    async def reconcile(self, *, recursive: bool = True, dry_run: bool = False) -> SyncResult:
        """Walk the source and bring the cache in line with it.

        Every visited source object counts as scanned and ends up as at
        most one of created / updated / failed.  Cached records with no
        source object are deleted.  Each object is written under its own
        savepoint, so a failure on one object is counted in ``errors``
        and rolls back only that object.  With *dry_run* the session is
        rolled back, so nothing is persisted.
        """
        result = SyncResult()
        listing = await self.source.list_dir("/", recursive=recursive)
        seen: set[str] = set()

        async with self.cache.session(commit=not dry_run) as session:
            cached = await self.cache.all_records(session)

            for listed in listing:
                result.files_scanned += 1
                seen.add(listed.path)
                try:
                    entry = await self.source.stat(listed.path)
                    if entry is None:
                        raise NotFoundError(f"Vanished during sync: {listed.path}")
                    record = cached.get(entry.path)
                    if record is None:
                        created = True
                    elif (
                        record.etag != entry.etag
                        or record.size_bytes != entry.size
                        or record.is_directory != entry.is_directory
                    ):
                        created = False
                    else:
                        continue
                    if not dry_run:
                        async with session.begin_nested():
                            await self.cache.upsert(session, entry)
                except (FedNSError, OSError, SQLAlchemyError) as e:
                    result.errors += 1
                    logger.warning(
                        "Sync of %s failed for %s: %s", self.cache.mount_point, listed.path, e
                    )
                    continue
                if created:
                    result.files_created += 1
                else:
                    result.files_updated += 1

            for path in cached:
                if path in seen:
                    continue
                if not recursive and parent_path(path) != "/":
                    continue
                if not dry_run:
                    try:
                        async with session.begin_nested():
                            await self.cache.remove(session, path)
                    except SQLAlchemyError as e:
                        result.errors += 1
                        logger.warning(
                            "Sync of %s failed to drop %s: %s", self.cache.mount_point, path, e
                        )
                        continue
                result.files_deleted += 1

        logger.info(
            "Synced %s: %d scanned, %d created, %d updated, %d deleted, %d errors",
            self.cache.mount_point,
            result.files_scanned,
            result.files_created,
            result.files_updated,
            result.files_deleted,
            result.errors,
        )
        return result
