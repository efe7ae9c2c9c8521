"""FileRecord model — cached metadata for connector-backed mounts.

The records are the namespace's view of an external source.  They only
change when a sync reconciles them, or when a write goes through the
namespace itself.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class FileRecordBase(SQLModel):
    """Base fields for a cached file record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    mount_point: str = Field(index=True)
    path: str = Field(index=True)
    """Path relative to the mount point, always absolute (``/a/b.txt``)."""
    parent_path: str = Field(default="/", index=True)
    is_directory: bool = Field(default=False)
    size_bytes: int | None = Field(default=None)
    etag: str | None = Field(default=None)
    mime_type: str | None = Field(default=None)
    modified_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    synced_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class FileRecord(FileRecordBase, table=True):
    """Default cached metadata table — ``fedns_file_records``."""

    __tablename__ = "fedns_file_records"
    __table_args__ = (UniqueConstraint("mount_point", "path"),)
