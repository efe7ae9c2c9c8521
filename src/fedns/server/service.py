"""NamespaceService — the server side of the namespace RPC protocol.

Owns the active mounts, the saved mount configurations and the
per-mount metadata caches.  ``handle`` takes a decoded JSON-RPC request
and returns the response envelope; HTTP framing is left to whatever
hosts the service.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from fedns.fs.backend_config import (
    BackendConfig,
    LocalConnectorConfig,
    LocalDiskConfig,
    parse_backend_config,
)
from fedns.fs.exceptions import (
    AuthenticationError,
    BackendError,
    FedNSError,
    MountNotFoundError,
    NotFoundError,
    ValidationError,
)
from fedns.fs.utils import basename, is_ancestor, normalize_path, validate_path
from fedns.models.files import FileRecord
from fedns.models.mounts import SavedMountRecord
from fedns.rpc.codec import decode_value, encode_value
from fedns.rpc.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    error_from_exception,
)

from .backends.connector import ConnectorBackend
from .backends.local_disk import LocalDiskBackend
from .backends.memory import MemoryBackend
from .backends.protocol import BackendEntry, SupportsSync
from .metadata import MetadataCache, session_scope
from .router import ActiveMount, MountRouter

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from .backends.protocol import StorageBackend

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str, BackendConfig], "StorageBackend"]


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a glob into a regex over ``/``-separated relative paths.

    ``*`` and ``?`` stay within one segment, ``**`` crosses segments and
    ``**/`` also matches zero segments.
    """
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end + 1
                continue
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


def _relative_to(base: str, path: str) -> str:
    if base == "/":
        return path.lstrip("/")
    return path[len(base) :].lstrip("/")


def _directory_wire(path: str) -> dict[str, Any]:
    return BackendEntry(path=path, is_directory=True).to_wire(path)


class NamespaceService:
    """Federated namespace server.

    Paths under no active mount belong to *root_backend* (an in-memory
    backend by default).  *backend_factories* maps saved ``backend_type``
    values to callables building a backend from a validated config;
    ``memory``, ``local`` and ``local_connector`` are built in.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        *,
        root_backend: StorageBackend | None = None,
        backend_factories: dict[str, BackendFactory] | None = None,
        api_key: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.root_backend = root_backend or MemoryBackend()
        self.router = MountRouter()
        self._api_key = api_key
        self._factories: dict[str, BackendFactory] = {
            "memory": lambda mount_point, config: MemoryBackend(),
            "local": self._local_disk,
            "local_connector": self._local_connector,
        }
        self._factories.update(backend_factories or {})

        self._methods: dict[str, Callable[..., Any]] = {
            "list": self.list,
            "read": self.read,
            "write": self.write,
            "delete": self.delete,
            "exists": self.exists,
            "is_directory": self.is_directory,
            "mkdir": self.mkdir,
            "rmdir": self.rmdir,
            "glob": self.glob,
            "grep": self.grep,
            "rename": self.rename,
            "list_mounts": self.list_mounts,
            "list_connectors": self.list_mounts,
            "list_saved_mounts": self.list_saved_mounts,
            "list_saved_connectors": self.list_saved_mounts,
            "save_mount": self.save_mount,
            "load_mount": self.load_mount,
            "load_connector": self.load_mount,
            "remove_mount": self.remove_mount,
            "sync_mount": self.sync_mount,
            "sync_connector": self.sync_mount,
            "delete_saved_mount": self.delete_saved_mount,
            "delete_connector": self.delete_saved_mount,
        }

    @classmethod
    async def from_engine(cls, engine: AsyncEngine, **kwargs: Any) -> NamespaceService:
        """Create the service tables on *engine* and build a service over it."""
        async with engine.begin() as conn:
            await conn.run_sync(
                lambda c: SavedMountRecord.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
            )
            await conn.run_sync(
                lambda c: FileRecord.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
            )
        sf = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        return cls(sf, **kwargs)

    async def close(self) -> None:
        """Deactivate every mount."""
        for mount in self.router.list():
            await self.remove_mount(mount.mount_point)

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    def _local_disk(self, mount_point: str, config: BackendConfig) -> StorageBackend:
        if not isinstance(config, LocalDiskConfig):
            raise BackendError(f"Expected local disk config, got {type(config).__name__}")
        return LocalDiskBackend(config.root_path)

    def _local_connector(self, mount_point: str, config: BackendConfig) -> StorageBackend:
        if not isinstance(config, LocalConnectorConfig):
            raise BackendError(f"Expected local connector config, got {type(config).__name__}")
        return ConnectorBackend(
            LocalDiskBackend(config.root_path),
            MetadataCache(self._session_factory, mount_point),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _path(path: str) -> str:
        valid, error = validate_path(path)
        if not valid:
            raise ValidationError(error)
        return normalize_path(path)

    def _resolve(self, path: str) -> tuple[ActiveMount | None, StorageBackend, str]:
        mount, rel = self.router.resolve(path)
        backend = mount.backend if mount is not None else self.root_backend
        return mount, backend, rel

    def _writable(self, path: str) -> tuple[ActiveMount | None, StorageBackend, str]:
        mount, backend, rel = self._resolve(path)
        if mount is not None and mount.readonly:
            raise ValidationError(f"Mount {mount.mount_point} is read-only: {path}")
        return mount, backend, rel

    @staticmethod
    def _publish(mount: ActiveMount | None, rel: str) -> str:
        """Namespace path for backend path *rel* under *mount*."""
        if mount is None:
            return rel
        return mount.mount_point if rel == "/" else mount.mount_point + rel

    def _is_mount_ancestor(self, path: str) -> bool:
        """True when *path* is a mount point or has one below it."""
        return path in self.router or bool(self.router.mounts_under(path))

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    async def _collect(self, path: str, *, recursive: bool) -> dict[str, dict[str, Any]]:
        mount, backend, rel = self._resolve(path)
        found: dict[str, dict[str, Any]] = {}

        try:
            entries = await backend.list_dir(rel, recursive=recursive)
        except NotFoundError:
            if not self.router.mounts_under(path):
                raise
            entries = []

        for entry in entries:
            published = self._publish(mount, entry.path)
            if self.router.resolve(published)[0] is mount:
                found[published] = entry.to_wire(published)

        for child in self.router.mounts_under(path):
            rel_child = _relative_to(path, child.mount_point)
            parts = rel_child.split("/")
            if not recursive:
                name = path.rstrip("/") + "/" + parts[0]
                found.setdefault(name, _directory_wire(name))
                continue
            current = path.rstrip("/")
            for part in parts:
                current = f"{current}/{part}"
                found.setdefault(current, _directory_wire(current))
            try:
                nested = await child.backend.list_dir("/", recursive=True)
            except FedNSError as e:
                logger.warning("Skipping mount %s in listing of %s: %s", child.mount_point, path, e)
                continue
            for entry in nested:
                published = self._publish(child, entry.path)
                if self.router.resolve(published)[0] is child:
                    found[published] = entry.to_wire(published)

        return found

    async def list(
        self,
        path: str = "/",
        recursive: bool = False,
        details: bool = True,
        prefix: str | None = None,
        show_parsed: bool | None = None,
    ) -> dict[str, Any]:
        path = self._path(path)
        found = await self._collect(path, recursive=recursive)

        if prefix:
            if not prefix.startswith("/"):
                prefix = path.rstrip("/") + "/" + prefix
            found = {p: w for p, w in found.items() if p.startswith(prefix)}

        records = sorted(
            found.values(), key=lambda w: (not w["is_directory"], basename(w["path"]).lower(), w["path"])
        )
        if not details:
            return {"files": [w["path"] + "/" if w["is_directory"] else w["path"] for w in records]}
        return {"files": records}

    async def read(self, path: str) -> bytes:
        path = self._path(path)
        _, backend, rel = self._resolve(path)
        return await backend.read(rel)

    async def write(self, path: str, content: Any) -> dict[str, Any]:
        path = self._path(path)
        if not isinstance(content, bytes):
            raise ValidationError(f"content must be bytes, got {type(content).__name__}")
        _, backend, rel = self._writable(path)
        await backend.write(rel, content)
        return {"path": path, "size": len(content)}

    async def delete(self, path: str) -> dict[str, Any]:
        path = self._path(path)
        if path in self.router:
            raise ValidationError(f"Cannot delete a mount point: {path}")
        _, backend, rel = self._writable(path)
        await backend.delete(rel)
        return {"path": path, "deleted": True}

    async def exists(self, path: str) -> dict[str, bool]:
        path = self._path(path)
        if path == "/" or self._is_mount_ancestor(path):
            return {"exists": True}
        _, backend, rel = self._resolve(path)
        return {"exists": await backend.stat(rel) is not None}

    async def is_directory(self, path: str) -> dict[str, bool]:
        path = self._path(path)
        if path == "/" or self._is_mount_ancestor(path):
            return {"is_directory": True}
        _, backend, rel = self._resolve(path)
        entry = await backend.stat(rel)
        return {"is_directory": entry is not None and entry.is_directory}

    async def mkdir(self, path: str, parents: bool = True, exist_ok: bool = False) -> dict[str, Any]:
        path = self._path(path)
        _, backend, rel = self._writable(path)
        await backend.mkdir(rel, parents=parents, exist_ok=exist_ok)
        return {"path": path}

    async def rmdir(self, path: str, recursive: bool = False) -> dict[str, Any]:
        path = self._path(path)
        if self._is_mount_ancestor(path):
            raise ValidationError(f"Cannot remove a directory holding a mount: {path}")
        _, backend, rel = self._writable(path)
        await backend.rmdir(rel, recursive=recursive)
        return {"path": path}

    async def glob(self, pattern: str, path: str = "/") -> dict[str, list[str]]:
        path = self._path(path)
        if not pattern:
            raise ValidationError("pattern is required")
        regex = compile_glob(pattern.lstrip("/"))
        found = await self._collect(path, recursive=True)
        matches = sorted(p for p in found if regex.match(_relative_to(path, p)))
        return {"matches": matches}

    async def grep(
        self,
        pattern: str,
        path: str = "/",
        file_pattern: str | None = None,
        ignore_case: bool = False,
        max_results: int = 100,
    ) -> dict[str, Any]:
        path = self._path(path)
        try:
            regex = re.compile(pattern, re.IGNORECASE if ignore_case else 0)
        except re.error as e:
            raise ValidationError(f"Invalid regex {pattern!r}: {e}") from e
        if max_results < 1:
            raise ValidationError("max_results must be positive")
        file_regex = compile_glob(file_pattern) if file_pattern else None
        match_full_path = bool(file_pattern and "/" in file_pattern)

        found = await self._collect(path, recursive=True)
        results: list[dict[str, Any]] = []
        for file_path in sorted(p for p, w in found.items() if not w["is_directory"]):
            if file_regex is not None:
                target = _relative_to(path, file_path) if match_full_path else basename(file_path)
                if not file_regex.match(target):
                    continue
            _, backend, rel = self._resolve(file_path)
            try:
                text = (await backend.read(rel)).decode("utf-8")
            except (NotFoundError, UnicodeDecodeError):
                continue
            for line_number, line in enumerate(text.splitlines(), start=1):
                m = regex.search(line)
                if m is None:
                    continue
                results.append(
                    {"path": file_path, "line_number": line_number, "line": line, "match": m.group(0)}
                )
                if len(results) >= max_results:
                    return {"results": results, "truncated": True}
        return {"results": results, "truncated": False}

    async def rename(self, old_path: str, new_path: str) -> dict[str, Any]:
        """Move within one backend; across backends only files are copied."""
        old_path = self._path(old_path)
        new_path = self._path(new_path)
        if old_path == new_path:
            raise ValidationError(f"Source and destination are the same: {old_path}")
        if self._is_mount_ancestor(old_path):
            raise ValidationError(f"Cannot move a mount point: {old_path}")
        if is_ancestor(old_path, new_path):
            raise ValidationError(f"Cannot move a directory into itself: {old_path} -> {new_path}")

        src_mount, src_backend, src_rel = self._writable(old_path)
        dest_mount, dest_backend, dest_rel = self._writable(new_path)

        if src_mount is dest_mount:
            await src_backend.move(src_rel, dest_rel)
        else:
            entry = await src_backend.stat(src_rel)
            if entry is None:
                raise NotFoundError(f"Source not found: {old_path}")
            if entry.is_directory:
                raise ValidationError(f"Cannot move a directory across mounts: {old_path}")
            if await dest_backend.stat(dest_rel) is not None:
                raise ValidationError(f"Destination already exists: {new_path}")
            await dest_backend.write(dest_rel, await src_backend.read(src_rel))
            await src_backend.delete(src_rel)
        return {"old_path": old_path, "new_path": new_path}

    # ------------------------------------------------------------------
    # Mounts
    # ------------------------------------------------------------------

    @staticmethod
    def _mount_point(mount_point: str | None) -> str:
        if not mount_point or not mount_point.strip():
            raise ValidationError("mount_point is required")
        valid, error = validate_path(mount_point)
        if not valid:
            raise ValidationError(error)
        mount_point = normalize_path(mount_point)
        if mount_point == "/":
            raise ValidationError("Cannot mount at the namespace root")
        return mount_point

    async def _get_saved(self, session: AsyncSession, mount_point: str) -> SavedMountRecord | None:
        result = await session.execute(
            select(SavedMountRecord).where(SavedMountRecord.mount_point == mount_point)
        )
        return result.scalar_one_or_none()

    async def list_mounts(self) -> dict[str, Any]:
        return {"mounts": [m.to_wire() for m in self.router.list()]}

    async def list_saved_mounts(self) -> dict[str, Any]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(SavedMountRecord).order_by(SavedMountRecord.mount_point)  # type: ignore[arg-type]
            )
            return {"mounts": [r.to_wire() for r in result.scalars().all()]}

    async def save_mount(
        self,
        mount_point: str,
        backend_type: str,
        backend_config: dict[str, Any] | None = None,
        priority: int = 10,
        readonly: bool = False,
        description: str | None = None,
        owner_user_id: str | None = None,
        tenant_id: str | None = None,
    ) -> str:
        """Insert or replace the saved configuration at *mount_point*; return its id."""
        mount_point = self._mount_point(mount_point)
        config = parse_backend_config(backend_type, backend_config)

        async with session_scope(self._session_factory) as session:
            record = await self._get_saved(session, mount_point)
            if record is None:
                record = SavedMountRecord(mount_point=mount_point)
            record.backend_type = backend_type
            record.backend_config = config.to_wire()
            record.priority = priority
            record.readonly = readonly
            record.description = description
            record.owner_user_id = owner_user_id
            record.tenant_id = tenant_id
            record.updated_at = datetime.now(UTC)
            session.add(record)
            await session.flush()
            mount_id = record.id

        logger.info("Saved mount %s (%s)", mount_point, backend_type)
        return mount_id

    async def load_mount(self, mount_point: str) -> str:
        """Activate a saved mount; loading an active mount is a no-op."""
        mount_point = self._mount_point(mount_point)
        if mount_point in self.router:
            return mount_point

        async with session_scope(self._session_factory, commit=False) as session:
            record = await self._get_saved(session, mount_point)
            if record is None:
                raise MountNotFoundError(f"No saved mount at {mount_point}")
            backend_type = record.backend_type
            raw_config = dict(record.backend_config or {})
            priority, readonly = record.priority, record.readonly

        factory = self._factories.get(backend_type)
        if factory is None:
            raise BackendError(f"No backend available for type {backend_type!r}")
        config = parse_backend_config(backend_type, raw_config)
        try:
            backend = factory(mount_point, config)
        except FedNSError:
            raise
        except Exception as e:
            raise BackendError(f"Cannot create {backend_type} backend: {e}") from e
        await backend.open()

        if mount_point in self.router:
            # a concurrent load won while this backend was opening
            await backend.close()
            return mount_point
        self.router.add(
            ActiveMount(mount_point=mount_point, backend=backend, priority=priority, readonly=readonly)
        )
        logger.info("Mounted %s (%s)", mount_point, backend_type)
        return mount_point

    async def remove_mount(self, mount_point: str) -> bool:
        """Deactivate a live mount.  The saved configuration stays."""
        mount_point = self._mount_point(mount_point)
        mount = self.router.remove(mount_point)
        if mount is None:
            return False
        await mount.backend.close()
        logger.info("Unmounted %s", mount_point)
        return True

    async def sync_mount(
        self, mount_point: str, recursive: bool = True, dry_run: bool = False
    ) -> dict[str, int]:
        mount_point = self._mount_point(mount_point)
        mount = self.router.get(mount_point)
        if mount is None:
            raise MountNotFoundError(f"No active mount at {mount_point}")
        if not isinstance(mount.backend, SupportsSync):
            raise ValidationError(f"Mount {mount_point} does not support sync")
        result = await mount.backend.reconcile(recursive=recursive, dry_run=dry_run)
        return result.to_dict()

    async def delete_saved_mount(self, mount_point: str) -> bool:
        """Delete the saved configuration; False when none exists."""
        mount_point = self._mount_point(mount_point)
        async with session_scope(self._session_factory) as session:
            record = await self._get_saved(session, mount_point)
            if record is None:
                return False
            await session.delete(record)
        logger.info("Deleted saved mount %s", mount_point)
        return True

    # ------------------------------------------------------------------
    # JSON-RPC
    # ------------------------------------------------------------------

    async def dispatch(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Run *method* with already-decoded *params*."""
        handler = self._methods.get(method)
        if handler is None:
            raise BackendError(f"Method not found: {method}", code=METHOD_NOT_FOUND)
        return await handler(**(params or {}))

    async def handle(self, request: Any, *, api_key: str | None = None) -> dict[str, Any]:
        """Answer one JSON-RPC 2.0 request with a response envelope."""
        req_id = request.get("id") if isinstance(request, dict) else None

        def error(code: int, message: str) -> dict[str, Any]:
            return {"jsonrpc": "2.0", "id": req_id, "error": {"code": code, "message": message}}

        if (
            not isinstance(request, dict)
            or request.get("jsonrpc") != "2.0"
            or not isinstance(request.get("method"), str)
        ):
            return error(INVALID_REQUEST, "Invalid JSON-RPC request")
        params = request.get("params")
        if params is not None and not isinstance(params, dict):
            return error(INVALID_PARAMS, "params must be an object")

        method = request["method"]
        try:
            if self._api_key is not None and api_key != self._api_key:
                raise AuthenticationError("Invalid API key")
            result = await self.dispatch(method, decode_value(params or {}))
        except (FedNSError, TypeError) as e:
            logger.debug("RPC %s failed: %s", method, e)
            return {"jsonrpc": "2.0", "id": req_id, "error": error_from_exception(e)}
        except Exception:
            logger.exception("Unhandled error in RPC %s", method)
            return error(INTERNAL_ERROR, f"Internal error in {method}")

        return {"jsonrpc": "2.0", "id": req_id, "result": encode_value(result)}
