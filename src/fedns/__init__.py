"""FedNS: one path namespace over many storage backends.

Client library for a federated namespace server, plus an in-process
reference server.
"""

__version__ = "0.1.0"

from fedns.config import ClientConfig
from fedns.fs import (
    AuthenticationError,
    BackendError,
    BatchResult,
    EventBus,
    EventType,
    FedNSError,
    FileEntry,
    Mount,
    NamespaceClient,
    NotFoundError,
    PartialFailure,
    SavedMount,
    SyncInProgressError,
    SyncResult,
    ValidationError,
)
from fedns.rpc.transport import HTTPTransport, LocalTransport

__all__ = [
    "AuthenticationError",
    "BackendError",
    "BatchResult",
    "ClientConfig",
    "EventBus",
    "EventType",
    "FedNSError",
    "FileEntry",
    "HTTPTransport",
    "LocalTransport",
    "Mount",
    "NamespaceClient",
    "NotFoundError",
    "PartialFailure",
    "SavedMount",
    "SyncInProgressError",
    "SyncResult",
    "ValidationError",
    "__version__",
]
