"""SyncEngine — per-mount reconciliation requests and result decoding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .exceptions import BackendError, PartialFailure, SyncInProgressError, ValidationError
from .types import SyncResult
from .utils import normalize_path

if TYPE_CHECKING:
    from fedns.rpc.transport import Transport

logger = logging.getLogger(__name__)


# =============================================================================
# Result decoding
# =============================================================================


@dataclass(frozen=True)
class SyncFieldNames:
    """Wire field names used by one backend protocol version."""

    version: int
    scanned: str
    created: str
    updated: str = "files_updated"
    deleted: str = "files_deleted"
    errors: str = "errors"


SYNC_FIELDS_V1 = SyncFieldNames(version=1, scanned="files_found", created="files_added")
SYNC_FIELDS_V2 = SyncFieldNames(version=2, scanned="files_scanned", created="files_created")


class SyncResultDecoder:
    """Coalesces differently-named sync counts into ``SyncResult``.

    Versions are tried newest first, field by field, so a payload that
    carries both names resolves to the current one.  Absent fields are 0.
    """

    def __init__(self, versions: tuple[SyncFieldNames, ...] = (SYNC_FIELDS_V2, SYNC_FIELDS_V1)):
        self._versions = versions

    def detect_version(self, raw: dict[str, Any]) -> int | None:
        """Return the newest version whose distinguishing fields appear in *raw*."""
        for names in self._versions:
            if names.scanned in raw or names.created in raw:
                return names.version
        return None

    def _count(self, raw: dict[str, Any], attr: str) -> int:
        for names in self._versions:
            value = raw.get(getattr(names, attr))
            if value is not None:
                try:
                    return int(value)
                except (TypeError, ValueError) as e:
                    raise BackendError(f"Non-numeric sync count {attr}={value!r}") from e
        return 0

    def decode(self, raw: Any) -> SyncResult:
        if raw is None:
            return SyncResult()
        if not isinstance(raw, dict):
            raise BackendError(f"Unexpected sync result: {raw!r}")
        return SyncResult(
            files_scanned=self._count(raw, "scanned"),
            files_updated=self._count(raw, "updated"),
            files_created=self._count(raw, "created"),
            files_deleted=self._count(raw, "deleted"),
            errors=self._count(raw, "errors"),
        )


# =============================================================================
# Engine
# =============================================================================


class SyncEngine:
    """Requests reconciliation of one mount against its external source.

    At most one sync per mount point runs at a time through this engine;
    different mounts may sync concurrently.
    """

    def __init__(
        self,
        transport: Transport,
        decoder: SyncResultDecoder | None = None,
        *,
        method: str = "sync_mount",
    ) -> None:
        self._transport = transport
        self._decoder = decoder or SyncResultDecoder()
        self._method = method
        self._in_flight: set[str] = set()

    def is_syncing(self, mount_point: str) -> bool:
        return normalize_path(mount_point) in self._in_flight

    async def sync(
        self,
        mount_point: str,
        *,
        recursive: bool = True,
        dry_run: bool = False,
        raise_on_errors: bool = False,
    ) -> SyncResult:
        """Reconcile *mount_point*; with *dry_run* nothing is persisted.

        Per-object failures are counted in ``errors`` rather than
        aborting.  With *raise_on_errors* a non-zero count raises
        ``PartialFailure`` carrying the result.
        """
        if not mount_point or not mount_point.strip():
            raise ValidationError("mount_point is required")
        mount_point = normalize_path(mount_point)

        if mount_point in self._in_flight:
            raise SyncInProgressError(f"Sync already running for {mount_point}")

        self._in_flight.add(mount_point)
        try:
            raw = await self._transport.call(
                self._method,
                {"mount_point": mount_point, "recursive": recursive, "dry_run": dry_run},
            )
        finally:
            self._in_flight.discard(mount_point)

        result = self._decoder.decode(raw)
        logger.info(
            "Sync %s%s: scanned=%d created=%d updated=%d deleted=%d errors=%d",
            mount_point,
            " (dry run)" if dry_run else "",
            result.files_scanned,
            result.files_created,
            result.files_updated,
            result.files_deleted,
            result.errors,
        )
        if raise_on_errors and result.has_errors:
            raise PartialFailure(f"Sync of {mount_point} had {result.errors} errors", result)
        return result
