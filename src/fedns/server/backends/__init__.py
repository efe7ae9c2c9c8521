"""Storage backends the reference server can mount."""

from fedns.server.backends.connector import ConnectorBackend
from fedns.server.backends.local_disk import LocalDiskBackend
from fedns.server.backends.memory import MemoryBackend
from fedns.server.backends.protocol import BackendEntry, StorageBackend, SupportsSync

__all__ = [
    "BackendEntry",
    "ConnectorBackend",
    "LocalDiskBackend",
    "MemoryBackend",
    "StorageBackend",
    "SupportsSync",
]
