"""Client-side namespace layer: paths, decoding, mounts, sync and the client façade."""

from fedns.fs.backend_config import (
    BackendConfig,
    GCSConnectorConfig,
    GDriveConnectorConfig,
    LocalConnectorConfig,
    LocalDiskConfig,
    MemoryConfig,
    OpaqueConfig,
    S3Config,
    is_connector_type,
    parse_backend_config,
)
from fedns.fs.enrichment import enrich
from fedns.fs.events import EventBus, EventType, NamespaceEvent
from fedns.fs.exceptions import (
    AuthenticationError,
    BackendError,
    FedNSError,
    MountNotFoundError,
    NotFoundError,
    PartialFailure,
    SyncInProgressError,
    TransportError,
    ValidationError,
)
from fedns.fs.mount_store import MountStore
from fedns.fs.mounts import BackendRegistry
from fedns.fs.namespace import NamespaceClient, RenameJournal, RenameStep
from fedns.fs.namespaces import (
    OwnershipLevel,
    PathInfo,
    ResourceType,
    generate_resource_id,
    ownership_level,
    parse_path,
    system_path,
    tenant_path,
    user_path,
)
from fedns.fs.sync import SYNC_FIELDS_V1, SYNC_FIELDS_V2, SyncEngine, SyncResultDecoder
from fedns.fs.types import (
    BatchResult,
    FileEntry,
    GrepMatch,
    ItemFailure,
    Mount,
    SavedMount,
    SyncResult,
)
from fedns.fs.utils import find_mount_for_path, normalize_path

__all__ = [
    "SYNC_FIELDS_V1",
    "SYNC_FIELDS_V2",
    "AuthenticationError",
    "BackendConfig",
    "BackendError",
    "BackendRegistry",
    "BatchResult",
    "EventBus",
    "EventType",
    "FedNSError",
    "FileEntry",
    "GCSConnectorConfig",
    "GDriveConnectorConfig",
    "GrepMatch",
    "ItemFailure",
    "LocalConnectorConfig",
    "LocalDiskConfig",
    "MemoryConfig",
    "Mount",
    "MountNotFoundError",
    "MountStore",
    "NamespaceClient",
    "NamespaceEvent",
    "NotFoundError",
    "OpaqueConfig",
    "OwnershipLevel",
    "PartialFailure",
    "PathInfo",
    "RenameJournal",
    "RenameStep",
    "ResourceType",
    "S3Config",
    "SavedMount",
    "SyncEngine",
    "SyncInProgressError",
    "SyncResult",
    "SyncResultDecoder",
    "TransportError",
    "ValidationError",
    "enrich",
    "find_mount_for_path",
    "generate_resource_id",
    "is_connector_type",
    "normalize_path",
    "ownership_level",
    "parse_backend_config",
    "parse_path",
    "system_path",
    "tenant_path",
    "user_path",
]
