"""MountRouter and ActiveMount."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fedns.fs.utils import is_ancestor, normalize_path

if TYPE_CHECKING:
    from .backends.protocol import StorageBackend


@dataclass
class ActiveMount:
    """A backend currently attached to the namespace."""

    mount_point: str
    """Namespace prefix, e.g. "/mnt/gcs"."""

    backend: StorageBackend
    """Storage backend implementing the StorageBackend protocol."""

    backend_type: str = ""
    """Implementation name reported by ``list_mounts``; defaults to the class name."""

    priority: int = 0
    readonly: bool = False

    def __post_init__(self) -> None:
        self.mount_point = normalize_path(self.mount_point)
        if not self.backend_type:
            self.backend_type = type(self.backend).__name__

    def to_wire(self) -> dict[str, Any]:
        return {
            "mount_point": self.mount_point,
            "backend_type": self.backend_type,
            "priority": self.priority,
            "readonly": self.readonly,
        }


class MountRouter:
    """Registry of active mounts.

    Resolves namespace paths to ``(ActiveMount, relative_path)`` by
    longest matching prefix.  Paths under no mount resolve to
    ``(None, path)`` and belong to the root backend.
    """

    def __init__(self) -> None:
        self._mounts: dict[str, ActiveMount] = {}

    def add(self, mount: ActiveMount) -> None:
        """Add or replace a mount."""
        self._mounts[mount.mount_point] = mount

    def remove(self, mount_point: str) -> ActiveMount | None:
        return self._mounts.pop(normalize_path(mount_point), None)

    def get(self, mount_point: str) -> ActiveMount | None:
        return self._mounts.get(normalize_path(mount_point))

    def __contains__(self, mount_point: str) -> bool:
        return normalize_path(mount_point) in self._mounts

    def list(self) -> list[ActiveMount]:
        """All active mounts, sorted by mount point."""
        return sorted(self._mounts.values(), key=lambda m: m.mount_point)

    def resolve(self, path: str) -> tuple[ActiveMount | None, str]:
        path = normalize_path(path)

        best: ActiveMount | None = None
        best_len = 0
        for mount_point, mount in self._mounts.items():
            if (path == mount_point or path.startswith(mount_point + "/")) and len(
                mount_point
            ) > best_len:
                best = mount
                best_len = len(mount_point)

        if best is None:
            return None, path

        relative = path[best_len:] or "/"
        return best, relative

    def mounts_under(self, path: str) -> list[ActiveMount]:
        """Mounts strictly below *path*, sorted by mount point."""
        path = normalize_path(path)
        return [m for m in self.list() if is_ancestor(path, m.mount_point)]
