"""Provenance decoration of listing results."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .utils import find_mount_for_path

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .types import FileEntry, Mount


def enrich(entries: Iterable[FileEntry], mounts: Sequence[Mount]) -> list[FileEntry]:
    """Annotate mount-root entries with their mount point and backend type.

    Only an entry whose path equals an active mount point is annotated;
    children of a mount are returned unchanged.  Input entries are never
    modified.
    """
    out: list[FileEntry] = []
    for entry in entries:
        mount = find_mount_for_path(entry.path, mounts)
        out.append(entry.with_provenance(mount) if mount is not None else entry)
    return out
