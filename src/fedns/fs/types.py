"""Result and record types: FileEntry, Mount, SavedMount, SyncResult, etc."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .exceptions import PartialFailure
from .utils import basename, normalize_path

if TYPE_CHECKING:
    from datetime import datetime

    from .backend_config import BackendConfig


@dataclass(frozen=True)
class FileEntry:
    """One filesystem object in the namespace.

    ``is_directory`` is decided once, when the entry is decoded, and
    carried unchanged through every copy.
    """

    path: str
    is_directory: bool = False
    size: int | None = None
    content_type: str | None = None
    etag: str | None = None
    modified_at: datetime | None = None
    created_at: datetime | None = None
    accessed_at: datetime | None = None
    mount_point: str | None = None
    """Set by enrichment, only on the entry at the mount root."""
    backend_type: str | None = None
    """Set by enrichment, only on the entry at the mount root."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", normalize_path(self.path))

    @property
    def name(self) -> str:
        """Final path component (empty for root)."""
        return basename(self.path)

    @property
    def is_mount_root(self) -> bool:
        return self.mount_point is not None

    def with_provenance(self, mount: Mount) -> FileEntry:
        """Return a copy annotated with *mount*'s identity."""
        return dataclasses.replace(
            self, mount_point=mount.mount_point, backend_type=mount.backend_type
        )


@dataclass(frozen=True)
class Mount:
    """An active mount: runtime projection of the backend's live registry."""

    mount_point: str
    backend_type: str
    priority: int = 0
    readonly: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "mount_point", normalize_path(self.mount_point))


@dataclass
class SavedMount:
    """A persisted mount configuration, independent of activation state."""

    mount_point: str
    backend_type: str
    backend_config: dict[str, Any] = field(default_factory=dict)
    priority: int = 10
    readonly: bool = False
    description: str | None = None
    owner_user_id: str | None = None
    tenant_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.mount_point = normalize_path(self.mount_point)

    def typed_config(self) -> BackendConfig:
        """Validate ``backend_config`` against the schema of ``backend_type``."""
        from .backend_config import parse_backend_config

        return parse_backend_config(self.backend_type, self.backend_config)


@dataclass
class SyncResult:
    """Per-invocation reconciliation counts (best effort)."""

    files_scanned: int = 0
    files_updated: int = 0
    files_created: int = 0
    files_deleted: int = 0
    errors: int = 0

    @property
    def has_errors(self) -> bool:
        return self.errors > 0

    def to_dict(self) -> dict[str, int]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class GrepMatch:
    """A single grep match within a file."""

    path: str
    line_number: int  # 1-indexed
    line: str
    match: str = ""


@dataclass(frozen=True)
class ItemFailure:
    """One failed item of a batch operation."""

    target: str
    error: Exception


@dataclass
class BatchResult:
    """Aggregate outcome of a batch operation that continues past failures."""

    succeeded: list[str] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise ``PartialFailure`` if any item failed."""
        if self.failures:
            raise PartialFailure(
                f"{self.error_count} of {self.error_count + len(self.succeeded)} items failed",
                self,
            )
