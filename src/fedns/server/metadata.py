"""MetadataCache — per-mount lookups and updates of cached file records."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, or_
from sqlmodel import select

from fedns.fs.utils import normalize_path, parent_path
from fedns.models.files import FileRecord

from .backends.protocol import BackendEntry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession

    from fedns.models.files import FileRecordBase


@asynccontextmanager
async def session_scope(
    session_factory: Callable[..., AsyncSession], *, commit: bool = True
) -> AsyncGenerator[AsyncSession]:
    """Yield a session; commit on success unless *commit* is False, else roll back."""
    session = session_factory()
    try:
        yield session
        if commit:
            await session.commit()
        else:
            await session.rollback()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


class MetadataCache:
    """Cached metadata for one mount point.

    Receives the concrete record model at construction so callers can
    use custom SQLModel subclasses.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        mount_point: str,
        file_model: type[FileRecordBase] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.mount_point = normalize_path(mount_point)
        self._model = file_model or FileRecord

    def session(self, *, commit: bool = True) -> AbstractAsyncContextManager[AsyncSession]:
        return session_scope(self._session_factory, commit=commit)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get(self, session: AsyncSession, path: str) -> FileRecordBase | None:
        model = self._model
        result = await session.execute(
            select(model).where(
                model.mount_point == self.mount_point,
                model.path == normalize_path(path),
            )
        )
        return result.scalar_one_or_none()

    async def list_children(
        self, session: AsyncSession, path: str, *, recursive: bool = False
    ) -> list[FileRecordBase]:
        path = normalize_path(path)
        model = self._model
        query = select(model).where(model.mount_point == self.mount_point)
        if recursive:
            if path != "/":
                query = query.where(model.path.startswith(path + "/", autoescape=True))  # type: ignore[attr-defined]
        else:
            query = query.where(model.parent_path == path, model.path != "/")
        result = await session.execute(query)
        return list(result.scalars().all())

    async def all_records(self, session: AsyncSession) -> dict[str, FileRecordBase]:
        return {r.path: r for r in await self.list_children(session, "/", recursive=True)}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def upsert(self, session: AsyncSession, entry: BackendEntry) -> FileRecordBase:
        record = await self.get(session, entry.path)
        if record is None:
            record = self._model(mount_point=self.mount_point, path=normalize_path(entry.path))
        record.parent_path = parent_path(entry.path)
        record.is_directory = entry.is_directory
        record.size_bytes = entry.size
        record.etag = entry.etag
        record.mime_type = entry.mime_type
        record.modified_at = entry.modified_at
        record.synced_at = datetime.now(UTC)
        session.add(record)
        await session.flush()
        return record

    async def remove(self, session: AsyncSession, path: str, *, recursive: bool = False) -> None:
        path = normalize_path(path)
        model = self._model
        condition = model.path == path
        if recursive:
            condition = or_(condition, model.path.startswith(path + "/", autoescape=True))  # type: ignore[attr-defined]
        await session.execute(
            delete(model).where(model.mount_point == self.mount_point, condition)  # type: ignore[arg-type]
        )
        await session.flush()

    @staticmethod
    def to_entry(record: FileRecordBase) -> BackendEntry:
        return BackendEntry(
            path=record.path,
            is_directory=record.is_directory,
            size=record.size_bytes,
            mime_type=record.mime_type,
            etag=record.etag,
            modified_at=record.modified_at,
        )
