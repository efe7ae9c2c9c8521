"""MountStore — saved mount configurations and their activation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .backend_config import parse_backend_config
from .decoding import decode_saved_mount
from .events import EventType, NamespaceEvent
from .exceptions import BackendError, FedNSError, ValidationError
from .types import BatchResult, ItemFailure
from .utils import normalize_path, validate_path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from fedns.rpc.transport import Transport

    from .events import EventBus
    from .types import SavedMount

logger = logging.getLogger(__name__)


class MountStore:
    """CRUD over persisted mount configurations plus activation.

    A saved mount exists independently of whether it is active.
    ``delete`` removes only the saved configuration; deactivating the
    live mount and removing its directory are separate calls.
    """

    def __init__(self, transport: Transport, event_bus: EventBus | None = None) -> None:
        self._transport = transport
        self._event_bus = event_bus

    async def _emit(self, mount_point: str) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit(NamespaceEvent(EventType.MOUNTS_CHANGED, mount_point))

    @staticmethod
    def _mount_point(mount_point: str) -> str:
        if not mount_point or not mount_point.strip():
            raise ValidationError("mount_point is required")
        valid, error = validate_path(mount_point)
        if not valid:
            raise ValidationError(error)
        mount_point = normalize_path(mount_point)
        if mount_point == "/":
            raise ValidationError("Cannot mount at the namespace root")
        return mount_point

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list_saved(self) -> list[SavedMount]:
        result = await self._transport.call("list_saved_mounts")
        if isinstance(result, dict):
            result = result.get("mounts", [])
        if not isinstance(result, list):
            raise BackendError(f"Unexpected list_saved_mounts result: {result!r}")
        return sorted((decode_saved_mount(raw) for raw in result), key=lambda m: m.mount_point)

    async def get(self, mount_point: str) -> SavedMount | None:
        """Return the saved configuration at *mount_point*, if any."""
        mount_point = self._mount_point(mount_point)
        for saved in await self.list_saved():
            if saved.mount_point == mount_point:
                return saved
        return None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def save(
        self,
        mount_point: str,
        backend_type: str,
        backend_config: dict[str, Any] | None = None,
        *,
        priority: int = 10,
        readonly: bool = False,
        description: str | None = None,
    ) -> str:
        """Persist a mount configuration and return its id.

        The configuration is validated against the backend type's schema
        before anything is sent.
        """
        mount_point = self._mount_point(mount_point)
        config = parse_backend_config(backend_type, backend_config)
        params: dict[str, Any] = {
            "mount_point": mount_point,
            "backend_type": backend_type,
            "backend_config": config.to_wire(),
            "priority": priority,
            "readonly": readonly,
        }
        if description is not None:
            params["description"] = description
        mount_id = await self._transport.call("save_mount", params)
        logger.info("Saved mount %s (%s)", mount_point, backend_type)
        return str(mount_id)

    async def load(self, mount_point: str) -> str:
        """Activate a saved mount and return its activation token.

        Loading an already active mount is a no-op that returns the same
        token.  Raises ``NotFoundError`` if nothing is saved at
        *mount_point* and ``BackendError`` if the backend cannot start.
        """
        mount_point = self._mount_point(mount_point)
        token = await self._transport.call("load_mount", {"mount_point": mount_point})
        logger.info("Loaded mount %s", mount_point)
        await self._emit(mount_point)
        return str(token)

    async def deactivate(self, mount_point: str) -> bool:
        """Deactivate a live mount; the saved configuration is kept."""
        mount_point = self._mount_point(mount_point)
        removed = bool(await self._transport.call("remove_mount", {"mount_point": mount_point}))
        if removed:
            await self._emit(mount_point)
        return removed

    async def delete(self, mount_point: str) -> bool:
        """Remove the saved configuration at *mount_point*.

        Returns False when nothing was saved there.  An active mount
        stays active.
        """
        mount_point = self._mount_point(mount_point)
        deleted = bool(
            await self._transport.call("delete_saved_mount", {"mount_point": mount_point})
        )
        logger.debug("delete_saved_mount %s -> %s", mount_point, deleted)
        return deleted

    async def delete_many(self, mount_points: Iterable[str]) -> BatchResult:
        """Delete several saved configurations, continuing past failures."""
        result = BatchResult()
        for mount_point in mount_points:
            try:
                await self.delete(mount_point)
            except FedNSError as e:
                logger.warning("Failed to delete saved mount %s: %s", mount_point, e)
                result.failures.append(ItemFailure(mount_point, e))
            else:
                result.succeeded.append(normalize_path(mount_point))
        return result
