"""Path utilities: normalization, decomposition, exact mount matching."""

from __future__ import annotations

import mimetypes
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .types import Mount

_SEPARATORS = re.compile(r"/{2,}")

MAX_PATH_LENGTH = 4096
MAX_NAME_LENGTH = 255


# =============================================================================
# Path Utilities
# =============================================================================


def normalize_path(path: str | None) -> str:
    """Normalize a namespace path.

    - Ensures leading /
    - Collapses repeated separators
    - Removes trailing slash (except for root)

    Dot segments are kept as-is; two paths are equal only when their
    normalized strings are equal.

    Examples:
        normalize_path("foo.txt") -> "/foo.txt"
        normalize_path("//a//b/") -> "/a/b"
        normalize_path("") -> "/"
    """
    if not path:
        return "/"

    path = _SEPARATORS.sub("/", "/" + path.strip())

    if path != "/" and path.endswith("/"):
        path = path[:-1]

    return path


def parent_path(path: str) -> str:
    """Return the parent of *path*. The parent of root is root.

    Examples:
        parent_path("/a/b.txt") -> "/a"
        parent_path("/a") -> "/"
        parent_path("/") -> "/"
    """
    path = normalize_path(path)
    idx = path.rfind("/")
    return path[:idx] or "/"


def basename(path: str) -> str:
    """Return the final component of *path*, ``""`` for root.

    Callers supply their own label for the root node.
    """
    path = normalize_path(path)
    return path[path.rfind("/") + 1 :]


def split_path(path: str) -> tuple[str, str]:
    """Split path into (parent_dir, filename).

    Examples:
        split_path("/foo/bar.txt") -> ("/foo", "bar.txt")
        split_path("/") -> ("/", "")
    """
    return parent_path(path), basename(path)


def join_path(base: str, *parts: str) -> str:
    """Join *parts* onto *base* and normalize the result."""
    return normalize_path("/".join([base, *parts]))


def is_ancestor(ancestor: str, path: str) -> bool:
    """True when *path* is strictly inside *ancestor*."""
    ancestor = normalize_path(ancestor)
    path = normalize_path(path)
    if ancestor == path:
        return False
    if ancestor == "/":
        return True
    return path.startswith(ancestor + "/")


def validate_path(path: str) -> tuple[bool, str]:
    """Validate a path for security and compatibility issues.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if "\x00" in path:
        return False, "Path contains null bytes"

    # Reject ASCII control characters (0x01-0x1f) except \t, \n, \r
    for ch in path:
        code = ord(ch)
        if 0x01 <= code <= 0x1F and ch not in ("\t", "\n", "\r"):
            return False, f"Path contains control character: 0x{code:02x}"

    if len(path) > MAX_PATH_LENGTH:
        return False, f"Path too long (max {MAX_PATH_LENGTH} characters)"

    for part in normalize_path(path).split("/"):
        if len(part) > MAX_NAME_LENGTH:
            return False, f"Path component too long (max {MAX_NAME_LENGTH} characters)"

    return True, ""


def guess_mime_type(filename: str) -> str | None:
    """Guess the MIME type of a file based on its name."""
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type


# =============================================================================
# Mount Matching
# =============================================================================


def find_mount_for_path(path: str, mounts: Iterable[Mount]) -> Mount | None:
    """Return the mount whose mount point is exactly *path*.

    Paths strictly inside a mounted subtree do not match: provenance
    belongs to the mount root only.
    """
    path = normalize_path(path)
    for mount in mounts:
        if normalize_path(mount.mount_point) == path:
            return mount
    return None
