"""BackendRegistry — live view of the server's active mounts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .decoding import decode_mount
from .exceptions import BackendError
from .utils import find_mount_for_path

if TYPE_CHECKING:
    from fedns.rpc.transport import Transport

    from .types import Mount

logger = logging.getLogger(__name__)


class BackendRegistry:
    """Fetches the set of active mounts from the remote authority.

    Every call returns a fresh snapshot; nothing is cached here.  A
    failed fetch raises, so callers can tell "unknown mounts" apart
    from "no mounts".
    """

    def __init__(self, transport: Transport, *, method: str = "list_mounts") -> None:
        self._transport = transport
        self._method = method

    async def list_active(self) -> list[Mount]:
        """Fetch the current active mounts, sorted by mount point."""
        result = await self._transport.call(self._method)
        if isinstance(result, dict):
            result = result.get("mounts", [])
        if not isinstance(result, list):
            raise BackendError(f"Unexpected {self._method} result: {result!r}")
        mounts = [decode_mount(raw) for raw in result]
        logger.debug("Fetched %d active mounts", len(mounts))
        return sorted(mounts, key=lambda m: m.mount_point)

    async def find_mount(self, path: str) -> Mount | None:
        """Exact-match *path* against a fresh snapshot."""
        return find_mount_for_path(path, await self.list_active())
