"""StorageBackend protocol — runtime-checkable interfaces.

Split into a core protocol and an opt-in sync capability so that plain
storage backends do not have to pretend to reconcile anything.

Paths handed to a backend are relative to its mount point and always
absolute (``/`` is the mount root).  Backends raise ``NotFoundError``,
``ValidationError`` or ``BackendError``; the service turns those into
JSON-RPC errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from fedns.fs.types import SyncResult


@dataclass(frozen=True)
class BackendEntry:
    """Metadata for one object, as a backend sees it."""

    path: str
    is_directory: bool
    size: int | None = None
    mime_type: str | None = None
    etag: str | None = None
    modified_at: datetime | None = None
    created_at: datetime | None = None

    def to_wire(self, path: str) -> dict[str, Any]:
        """Wire record for this entry, published at namespace *path*."""
        return {
            "path": path,
            "is_directory": self.is_directory,
            "size": self.size,
            "etag": self.etag,
            "mime_type": self.mime_type,
            "modified_at": self.modified_at.isoformat() if self.modified_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@runtime_checkable
class StorageBackend(Protocol):
    """Core interface every backend must implement."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Called at load time.  Raise ``BackendError`` if unusable."""
        ...

    async def close(self) -> None:
        """Called on deactivation / shutdown."""
        ...

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def stat(self, path: str) -> BackendEntry | None: ...

    async def list_dir(self, path: str = "/", *, recursive: bool = False) -> list[BackendEntry]: ...

    async def read(self, path: str) -> bytes: ...

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def write(self, path: str, data: bytes) -> None: ...

    async def delete(self, path: str) -> None: ...

    async def mkdir(self, path: str, *, parents: bool = True, exist_ok: bool = False) -> None: ...

    async def rmdir(self, path: str, *, recursive: bool = False) -> None: ...

    async def move(self, src: str, dest: str) -> None: ...


@runtime_checkable
class SupportsSync(Protocol):
    """Backends whose listings come from cached metadata of an external source."""

    async def reconcile(self, *, recursive: bool = True, dry_run: bool = False) -> SyncResult:
        """Rescan the external source and reconcile the cached metadata."""
        ...
