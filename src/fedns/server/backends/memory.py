"""MemoryBackend — process-local storage, the default root of the namespace."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime

from fedns.fs.exceptions import NotFoundError, ValidationError
from fedns.fs.utils import basename, guess_mime_type, is_ancestor, normalize_path, parent_path

from .protocol import BackendEntry


@dataclass
class _Blob:
    data: bytes
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    modified_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def sort_entries(entries: list[BackendEntry]) -> list[BackendEntry]:
    """Directories first, then case-insensitive by name."""
    return sorted(entries, key=lambda e: (not e.is_directory, basename(e.path).lower(), e.path))


class MemoryBackend:
    """Dictionary-backed storage.  Nothing survives the process."""

    def __init__(self) -> None:
        self._files: dict[str, _Blob] = {}
        self._dirs: dict[str, datetime] = {"/": datetime.now(UTC)}

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _entry(self, path: str) -> BackendEntry | None:
        if path in self._dirs:
            return BackendEntry(path=path, is_directory=True, created_at=self._dirs[path])
        blob = self._files.get(path)
        if blob is None:
            return None
        return BackendEntry(
            path=path,
            is_directory=False,
            size=len(blob.data),
            mime_type=guess_mime_type(path),
            etag=hashlib.sha256(blob.data).hexdigest(),
            modified_at=blob.modified_at,
            created_at=blob.created_at,
        )

    async def stat(self, path: str) -> BackendEntry | None:
        return self._entry(normalize_path(path))

    async def list_dir(self, path: str = "/", *, recursive: bool = False) -> list[BackendEntry]:
        path = normalize_path(path)
        if path not in self._dirs:
            if path in self._files:
                raise ValidationError(f"Not a directory: {path}")
            raise NotFoundError(f"Directory not found: {path}")

        def wanted(candidate: str) -> bool:
            if recursive:
                return is_ancestor(path, candidate)
            return candidate != path and parent_path(candidate) == path

        entries: list[BackendEntry] = []
        for candidate in [*self._dirs, *self._files]:
            if wanted(candidate):
                entry = self._entry(candidate)
                if entry is not None:
                    entries.append(entry)
        return sort_entries(entries)

    async def read(self, path: str) -> bytes:
        path = normalize_path(path)
        blob = self._files.get(path)
        if blob is None:
            if path in self._dirs:
                raise NotFoundError(f"Path is a directory, not a file: {path}")
            raise NotFoundError(f"File not found: {path}")
        return blob.data

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def _ensure_parents(self, path: str) -> None:
        parent = parent_path(path)
        missing: list[str] = []
        while parent not in self._dirs:
            if parent in self._files:
                raise ValidationError(f"Parent is a file: {parent}")
            missing.append(parent)
            parent = parent_path(parent)
        now = datetime.now(UTC)
        for d in missing:
            self._dirs[d] = now

    async def write(self, path: str, data: bytes) -> None:
        path = normalize_path(path)
        if path in self._dirs:
            raise ValidationError(f"Path is a directory: {path}")
        self._ensure_parents(path)
        existing = self._files.get(path)
        if existing is None:
            self._files[path] = _Blob(data=bytes(data))
        else:
            existing.data = bytes(data)
            existing.modified_at = datetime.now(UTC)

    async def delete(self, path: str) -> None:
        path = normalize_path(path)
        if path in self._dirs:
            raise ValidationError(f"Path is a directory, use rmdir: {path}")
        if self._files.pop(path, None) is None:
            raise NotFoundError(f"File not found: {path}")

    async def mkdir(self, path: str, *, parents: bool = True, exist_ok: bool = False) -> None:
        path = normalize_path(path)
        if path in self._files:
            raise ValidationError(f"A file already exists at: {path}")
        if path in self._dirs:
            if exist_ok:
                return
            raise ValidationError(f"Directory already exists: {path}")
        if parent_path(path) not in self._dirs:
            if not parents:
                raise NotFoundError(f"Parent directory not found: {parent_path(path)}")
            self._ensure_parents(path)
        self._dirs[path] = datetime.now(UTC)

    async def rmdir(self, path: str, *, recursive: bool = False) -> None:
        path = normalize_path(path)
        if path == "/":
            raise ValidationError("Cannot remove the root directory")
        if path not in self._dirs:
            if path in self._files:
                raise ValidationError(f"Not a directory: {path}")
            raise NotFoundError(f"Directory not found: {path}")

        children = [p for p in [*self._dirs, *self._files] if is_ancestor(path, p)]
        if children and not recursive:
            raise ValidationError(f"Directory not empty: {path}")
        for child in children:
            self._dirs.pop(child, None)
            self._files.pop(child, None)
        del self._dirs[path]

    async def move(self, src: str, dest: str) -> None:
        src = normalize_path(src)
        dest = normalize_path(dest)
        if src not in self._files and src not in self._dirs:
            raise NotFoundError(f"Source not found: {src}")
        if dest in self._files or dest in self._dirs:
            raise ValidationError(f"Destination already exists: {dest}")
        if is_ancestor(src, dest):
            raise ValidationError(f"Cannot move a directory into itself: {src} -> {dest}")

        self._ensure_parents(dest)
        if src in self._files:
            self._files[dest] = self._files.pop(src)
            return

        for table in (self._files, self._dirs):
            for old in [p for p in table if p == src or is_ancestor(src, p)]:
                table[dest + old[len(src):]] = table.pop(old)  # type: ignore[assignment]
