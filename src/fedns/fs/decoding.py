"""Decoders turning raw wire records into canonical namespace types.

Backends disagree on shapes: a listing entry may be a bare path string
or an object with snake_case or camelCase keys, and timestamps may be
wrapped in ``{"data": value}`` envelopes.  Everything is unwrapped here
so the rest of the library only sees ``FileEntry``, ``Mount`` and
``SavedMount``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from .exceptions import BackendError
from .types import FileEntry, GrepMatch, Mount, SavedMount

logger = logging.getLogger(__name__)

_MISSING = object()


def _first(raw: dict[str, Any], *keys: str) -> Any:
    """Return the first non-None value among *keys*, else None."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def unwrap_envelope(value: Any) -> Any:
    """Unwrap ``{"data": value}`` envelopes; other values pass through."""
    if isinstance(value, dict) and "data" in value:
        return value["data"]
    return value


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce a wire timestamp to an aware ``datetime``.

    Accepts ISO-8601 strings, epoch seconds, datetimes, and any of those
    wrapped in a ``{"data": ...}`` envelope.
    """
    value = unwrap_envelope(value)
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            logger.debug("Unparseable timestamp %r", value)
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    logger.debug("Unsupported timestamp type %s", type(value).__name__)
    return None


def infer_is_directory(raw: dict[str, Any], raw_path: str) -> bool:
    """Decide directory-ness once, in precedence order.

    1. explicit ``is_directory`` / ``isDirectory`` flag
    2. no size, no etag, and an explicitly null content type
    3. trailing slash on the raw path
    4. otherwise a file
    """
    flag = _first(raw, "is_directory", "isDirectory")
    if flag is not None:
        return bool(flag)

    content_type = raw.get("mime_type", raw.get("type", _MISSING))
    if raw.get("size") is None and raw.get("etag") is None and content_type is None:
        return True

    return raw_path.endswith("/")


def decode_file_entry(raw: Any) -> FileEntry:
    """Decode one raw listing entry (string or object) into a ``FileEntry``."""
    if isinstance(raw, str):
        return FileEntry(path=raw, is_directory=raw.endswith("/"))

    if not isinstance(raw, dict):
        raise BackendError(f"Unexpected file entry: {raw!r}")

    raw_path = raw.get("path")
    if not isinstance(raw_path, str) or not raw_path:
        raise BackendError(f"File entry without a path: {raw!r}")

    is_dir = infer_is_directory(raw, raw_path)
    size = raw.get("size")

    return FileEntry(
        path=raw_path,
        is_directory=is_dir,
        size=int(size) if size is not None and not is_dir else None,
        content_type=_first(raw, "mime_type", "type", "content_type"),
        etag=raw.get("etag"),
        modified_at=parse_timestamp(_first(raw, "modified_at", "modified")),
        created_at=parse_timestamp(_first(raw, "created_at", "created")),
        accessed_at=parse_timestamp(_first(raw, "accessed_at", "accessed")),
    )


def decode_file_entries(result: Any) -> list[FileEntry]:
    """Decode a ``list`` result: ``{"files": [...]}`` or a bare list."""
    files = result.get("files", []) if isinstance(result, dict) else result
    if not isinstance(files, list):
        raise BackendError(f"Unexpected list result: {result!r}")
    return [decode_file_entry(f) for f in files]


def decode_mount(raw: dict[str, Any]) -> Mount:
    try:
        return Mount(
            mount_point=raw["mount_point"],
            backend_type=raw.get("backend_type") or "unknown",
            priority=int(raw.get("priority") or 0),
            readonly=bool(raw.get("readonly", False)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise BackendError(f"Malformed mount record: {raw!r}") from e


def decode_saved_mount(raw: dict[str, Any]) -> SavedMount:
    try:
        return SavedMount(
            mount_point=raw["mount_point"],
            backend_type=raw.get("backend_type") or "unknown",
            backend_config=dict(raw.get("backend_config") or {}),
            priority=int(raw.get("priority") or 0),
            readonly=bool(raw.get("readonly", False)),
            description=raw.get("description"),
            owner_user_id=raw.get("owner_user_id"),
            tenant_id=raw.get("tenant_id"),
            created_at=parse_timestamp(raw.get("created_at")),
            updated_at=parse_timestamp(raw.get("updated_at")),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise BackendError(f"Malformed saved mount record: {raw!r}") from e


def decode_grep_match(raw: dict[str, Any]) -> GrepMatch:
    return GrepMatch(
        path=raw.get("path") or raw.get("file_path") or "/",
        line_number=int(raw.get("line_number") or 0),
        line=raw.get("line") or raw.get("line_content") or "",
        match=raw.get("match") or "",
    )
