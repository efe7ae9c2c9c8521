"""Reference namespace server: mount routing, backends and RPC dispatch."""

from fedns.server.metadata import MetadataCache
from fedns.server.router import ActiveMount, MountRouter
from fedns.server.service import NamespaceService, compile_glob

__all__ = [
    "ActiveMount",
    "MetadataCache",
    "MountRouter",
    "NamespaceService",
    "compile_glob",
]
