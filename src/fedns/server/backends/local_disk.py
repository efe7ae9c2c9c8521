"""LocalDiskBackend — direct access to a host directory."""

from __future__ import annotations

import asyncio
import os
import shutil
from datetime import UTC, datetime
from pathlib import Path

from fedns.fs.exceptions import BackendError, NotFoundError, ValidationError
from fedns.fs.utils import guess_mime_type, normalize_path

from .memory import sort_entries
from .protocol import BackendEntry


class LocalDiskBackend:
    """Pure local disk access backend.

    All operations are performed directly on the host filesystem, off
    the event loop.

    Security: _resolve_path() ensures all paths stay within host_dir,
    preventing path traversal attacks.
    """

    def __init__(self, host_dir: Path | str) -> None:
        self.host_dir = Path(host_dir).expanduser().resolve()

    async def open(self) -> None:
        exists = await asyncio.to_thread(self.host_dir.exists)
        if not exists:
            raise BackendError(f"Host directory does not exist: {self.host_dir}")
        if not await asyncio.to_thread(self.host_dir.is_dir):
            raise BackendError(f"Host path is not a directory: {self.host_dir}")

    async def close(self) -> None:
        pass

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def _resolve_path(self, virtual_path: str) -> Path:
        """Resolve a virtual path to a physical path on disk.

        Validates that the resolved path stays within host_dir and
        rejects symlinks along the way.
        """
        virtual_path = normalize_path(virtual_path)
        rel = virtual_path.lstrip("/")
        if not rel:
            return self.host_dir

        current = self.host_dir
        for part in Path(rel).parts:
            current = current / part
            if current.is_symlink():
                raise ValidationError(
                    f"Symlinks not allowed: {virtual_path} contains symlink at "
                    f"{current.relative_to(self.host_dir)}"
                )

        resolved = (self.host_dir / rel).resolve()
        try:
            resolved.relative_to(self.host_dir)
        except ValueError:
            raise ValidationError(
                f"Path traversal detected: {virtual_path} resolves outside mount directory"
            ) from None
        return resolved

    def _to_virtual_path(self, physical_path: Path) -> str:
        """Convert a physical path back to a virtual path."""
        rel = physical_path.relative_to(self.host_dir)
        vpath = "/" + str(rel).replace("\\", "/")
        return vpath if vpath != "/." else "/"

    def _stat_path(self, physical: Path) -> BackendEntry:
        st = physical.stat()
        is_dir = physical.is_dir()
        vpath = self._to_virtual_path(physical)
        return BackendEntry(
            path=vpath,
            is_directory=is_dir,
            size=None if is_dir else st.st_size,
            mime_type=None if is_dir else guess_mime_type(physical.name),
            etag=None if is_dir else f"{st.st_mtime_ns:x}-{st.st_size:x}",
            modified_at=datetime.fromtimestamp(st.st_mtime, tz=UTC),
            created_at=datetime.fromtimestamp(st.st_ctime, tz=UTC),
        )

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def stat(self, path: str) -> BackendEntry | None:
        resolved = self._resolve_path(path)

        def _stat() -> BackendEntry | None:
            try:
                return self._stat_path(resolved)
            except FileNotFoundError:
                return None

        return await asyncio.to_thread(_stat)

    async def list_dir(self, path: str = "/", *, recursive: bool = False) -> list[BackendEntry]:
        resolved = self._resolve_path(path)

        def _scan() -> list[BackendEntry]:
            if not resolved.exists():
                raise NotFoundError(f"Directory not found: {path}")
            if not resolved.is_dir():
                raise ValidationError(f"Not a directory: {path}")

            entries: list[BackendEntry] = []
            if recursive:
                for root, dirs, files in os.walk(resolved):
                    dirs[:] = [d for d in dirs if not Path(root, d).is_symlink()]
                    for name in [*dirs, *files]:
                        try:
                            entries.append(self._stat_path(Path(root) / name))
                        except OSError:
                            continue
            else:
                for entry in os.scandir(resolved):
                    if entry.is_symlink():
                        continue
                    try:
                        entries.append(self._stat_path(Path(entry.path)))
                    except OSError:
                        continue
            return sort_entries(entries)

        try:
            return await asyncio.to_thread(_scan)
        except OSError as e:
            raise BackendError(f"Cannot list directory {path}: {e}") from e

    async def read(self, path: str) -> bytes:
        resolved = self._resolve_path(path)

        def _read() -> bytes:
            if not resolved.exists():
                raise NotFoundError(f"File not found: {path}")
            if resolved.is_dir():
                raise NotFoundError(f"Path is a directory, not a file: {path}")
            return resolved.read_bytes()

        try:
            return await asyncio.to_thread(_read)
        except OSError as e:
            raise BackendError(f"Cannot read file {path}: {e}") from e

    # =========================================================================
    # Write Operations
    # =========================================================================

    async def write(self, path: str, data: bytes) -> None:
        resolved = self._resolve_path(path)

        def _write() -> None:
            if resolved.is_dir():
                raise ValidationError(f"Path is a directory: {path}")
            resolved.parent.mkdir(parents=True, exist_ok=True)
            resolved.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise BackendError(f"Cannot write file {path}: {e}") from e

    async def delete(self, path: str) -> None:
        resolved = self._resolve_path(path)

        def _delete() -> None:
            if resolved.is_dir():
                raise ValidationError(f"Path is a directory, use rmdir: {path}")
            if not resolved.exists():
                raise NotFoundError(f"File not found: {path}")
            resolved.unlink()

        try:
            await asyncio.to_thread(_delete)
        except OSError as e:
            raise BackendError(f"Cannot delete {path}: {e}") from e

    async def mkdir(self, path: str, *, parents: bool = True, exist_ok: bool = False) -> None:
        resolved = self._resolve_path(path)

        def _mkdir() -> None:
            if resolved.is_file():
                raise ValidationError(f"A file already exists at: {path}")
            if resolved.is_dir():
                if exist_ok:
                    return
                raise ValidationError(f"Directory already exists: {path}")
            if not parents and not resolved.parent.is_dir():
                raise NotFoundError(f"Parent directory not found: {path}")
            resolved.mkdir(parents=parents, exist_ok=exist_ok)

        try:
            await asyncio.to_thread(_mkdir)
        except OSError as e:
            raise BackendError(f"Cannot create directory {path}: {e}") from e

    async def rmdir(self, path: str, *, recursive: bool = False) -> None:
        resolved = self._resolve_path(path)
        if resolved == self.host_dir:
            raise ValidationError("Cannot remove the mount root")

        def _rmdir() -> None:
            if not resolved.exists():
                raise NotFoundError(f"Directory not found: {path}")
            if not resolved.is_dir():
                raise ValidationError(f"Not a directory: {path}")
            if recursive:
                shutil.rmtree(resolved)
            elif any(resolved.iterdir()):
                raise ValidationError(f"Directory not empty: {path}")
            else:
                resolved.rmdir()

        try:
            await asyncio.to_thread(_rmdir)
        except OSError as e:
            raise BackendError(f"Cannot remove directory {path}: {e}") from e

    async def move(self, src: str, dest: str) -> None:
        src_resolved = self._resolve_path(src)
        dest_resolved = self._resolve_path(dest)

        def _move() -> None:
            if not src_resolved.exists():
                raise NotFoundError(f"Source not found: {src}")
            if dest_resolved.exists():
                raise ValidationError(f"Destination already exists: {dest}")
            dest_resolved.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src_resolved), str(dest_resolved))

        try:
            await asyncio.to_thread(_move)
        except OSError as e:
            raise BackendError(f"Cannot move {src} -> {dest}: {e}") from e
