"""SavedMountRecord model — persisted mount configurations.

Provides ``SavedMountBase`` (non-table) and ``SavedMountRecord`` (concrete
table).  Subclass ``SavedMountBase`` with ``table=True`` and a custom
``__tablename__`` to use a different table name.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel


class SavedMountBase(SQLModel):
    """Base fields for a saved mount. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    mount_point: str = Field(index=True, unique=True)
    backend_type: str = Field(default="")
    backend_config: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    priority: int = Field(default=10)
    readonly: bool = Field(default=False)
    description: str | None = Field(default=None)
    owner_user_id: str | None = Field(default=None, index=True)
    tenant_id: str | None = Field(default=None, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "mount_point": self.mount_point,
            "backend_type": self.backend_type,
            "backend_config": dict(self.backend_config or {}),
            "priority": self.priority,
            "readonly": self.readonly,
            "description": self.description,
            "owner_user_id": self.owner_user_id,
            "tenant_id": self.tenant_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class SavedMountRecord(SavedMountBase, table=True):
    """Default saved mount table — ``fedns_saved_mounts``."""

    __tablename__ = "fedns_saved_mounts"
