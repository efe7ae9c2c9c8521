"""SQLModel database models for the namespace server."""

from fedns.models.files import FileRecord, FileRecordBase
from fedns.models.mounts import SavedMountBase, SavedMountRecord

__all__ = [
    "FileRecord",
    "FileRecordBase",
    "SavedMountBase",
    "SavedMountRecord",
]
