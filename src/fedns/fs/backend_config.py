"""Per-backend configuration schemas, keyed by backend type.

Each backend type owns its own schema.  ``parse_backend_config`` picks
the schema for a ``backend_type`` and validates the raw mapping, so a
malformed configuration is rejected when the mount is created rather
than when the connector first initializes.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ValidationError

logger = logging.getLogger(__name__)


class BackendConfig(BaseModel):
    """Base class for backend configuration schemas."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    backend_type: ClassVar[str] = ""

    def to_wire(self) -> dict[str, Any]:
        """Plain mapping sent as ``backend_config`` over the wire."""
        return self.model_dump(exclude_none=True)


class MemoryConfig(BackendConfig):
    """In-memory storage; no settings."""

    backend_type: ClassVar[str] = "memory"


class LocalDiskConfig(BackendConfig):
    """Host directory exposed directly."""

    backend_type: ClassVar[str] = "local"

    root_path: str = Field(min_length=1)


class LocalConnectorConfig(BackendConfig):
    """Host directory reconciled into cached metadata by sync."""

    backend_type: ClassVar[str] = "local_connector"

    root_path: str = Field(min_length=1)


class GCSConnectorConfig(BackendConfig):
    backend_type: ClassVar[str] = "gcs_connector"

    bucket: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    prefix: str = ""
    access_token: str = ""


class S3Config(BackendConfig):
    backend_type: ClassVar[str] = "s3"

    bucket: str = Field(min_length=1)
    prefix: str = ""
    region: str | None = None


class GDriveConnectorConfig(BackendConfig):
    backend_type: ClassVar[str] = "gdrive_connector"

    user_email: str = Field(min_length=1)
    root_folder: str = "nexus-data"
    token_manager_db: str = "~/.nexus/nexus.db"
    provider: str = "google-drive"


class OpaqueConfig(BackendConfig):
    """Fallback for backend types without a registered schema."""

    model_config = ConfigDict(extra="allow", frozen=True)


CONFIG_SCHEMAS: dict[str, type[BackendConfig]] = {
    schema.backend_type: schema
    for schema in (
        MemoryConfig,
        LocalDiskConfig,
        LocalConnectorConfig,
        GCSConnectorConfig,
        S3Config,
        GDriveConnectorConfig,
    )
}


def is_connector_type(backend_type: str) -> bool:
    """True for backends whose content is reconciled by sync."""
    return "connector" in backend_type or "gcs" in backend_type


def parse_backend_config(backend_type: str, raw: dict[str, Any] | None) -> BackendConfig:
    """Validate *raw* against the schema registered for *backend_type*."""
    if not backend_type or not backend_type.strip():
        raise ValidationError("backend_type is required")

    schema = CONFIG_SCHEMAS.get(backend_type)
    if schema is None:
        logger.debug("No config schema for backend type %r; passing through", backend_type)
        schema = OpaqueConfig

    try:
        return schema.model_validate(raw or {})
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid config for {backend_type}: {e}") from e
