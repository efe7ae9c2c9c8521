"""Multi-tenant path convention for namespace resources.

Three ownership levels share one path space::

    /<type>/<id>                              system
    /tenant:<tenant>/<type>/<id>              tenant
    /tenant:<tenant>/user:<user>/<type>/<id>  user
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Literal

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

ResourceType = Literal["workspace", "resource", "connector", "memory", "skill", "agent"]
OwnershipLevel = Literal["system", "tenant", "user"]

RESOURCE_PREFIXES: dict[str, str] = {
    "workspace": "ws",
    "resource": "res",
    "connector": "conn",
    "memory": "mem",
    "skill": "skill",
    "agent": "agent",
}

MAX_ID_LENGTH = 100
MAX_NAME_PORTION = 30
_UNSAFE_CHARS = re.compile(r"[^a-z0-9_]")


@dataclass(frozen=True)
class PathInfo:
    """Components of a convention path."""

    resource_type: str
    resource_id: str
    tenant_id: str | None = None
    user_id: str | None = None

    @property
    def ownership_level(self) -> OwnershipLevel:
        if self.user_id is not None:
            return "user"
        if self.tenant_id is not None:
            return "tenant"
        return "system"


def is_resource_type(value: str) -> bool:
    return value in RESOURCE_PREFIXES


def _validate_id(kind: str, value: str) -> None:
    if not value or not value.strip():
        raise ValidationError(f"{kind} ID cannot be empty")
    if "/" in value:
        raise ValidationError(f"{kind} ID cannot contain forward slashes")
    if len(value) > MAX_ID_LENGTH:
        raise ValidationError(f"{kind} ID too long (max {MAX_ID_LENGTH} characters)")


def system_path(resource_type: ResourceType, resource_id: str) -> str:
    """``/resource/res_default_template``"""
    return f"/{resource_type}/{resource_id}"


def tenant_path(tenant_id: str, resource_type: ResourceType, resource_id: str) -> str:
    """``/tenant:acme/resource/res_company_logo``"""
    _validate_id("Tenant", tenant_id)
    return f"/tenant:{tenant_id}/{resource_type}/{resource_id}"


def user_path(
    tenant_id: str, user_id: str, resource_type: ResourceType, resource_id: str
) -> str:
    """``/tenant:acme/user:alice/workspace/ws_marketing``"""
    _validate_id("Tenant", tenant_id)
    _validate_id("User", user_id)
    return f"/tenant:{tenant_id}/user:{user_id}/{resource_type}/{resource_id}"


def generate_resource_id(resource_type: ResourceType, name: str | None = None) -> str:
    """Build ``<prefix>[_<name>]_<12 hex chars>``.

    *name* is lower-cased and reduced to ``[a-z0-9_]``; names with fewer
    than two meaningful characters are dropped.
    """
    prefix = RESOURCE_PREFIXES[resource_type]
    suffix = uuid.uuid4().hex[:12]

    if not name:
        return f"{prefix}_{suffix}"

    sanitized = _UNSAFE_CHARS.sub("_", name.lower())
    if len(sanitized.replace("_", "")) < 2:
        logger.debug("Name %r sanitizes to mostly underscores; using id only", name)
        return f"{prefix}_{suffix}"

    return f"{prefix}_{sanitized[:MAX_NAME_PORTION]}_{suffix}"


def parse_path(path: str) -> PathInfo | None:
    """Split a convention path into its components, or None."""
    parts = [p for p in path.split("/") if p]

    if len(parts) == 2 and is_resource_type(parts[0]):
        return PathInfo(resource_type=parts[0], resource_id=parts[1])

    if len(parts) == 3 and parts[0].startswith("tenant:") and is_resource_type(parts[1]):
        return PathInfo(
            resource_type=parts[1],
            resource_id=parts[2],
            tenant_id=parts[0][len("tenant:"):],
        )

    if (
        len(parts) == 4
        and parts[0].startswith("tenant:")
        and parts[1].startswith("user:")
        and is_resource_type(parts[2])
    ):
        return PathInfo(
            resource_type=parts[2],
            resource_id=parts[3],
            tenant_id=parts[0][len("tenant:"):],
            user_id=parts[1][len("user:"):],
        )

    return None


def is_convention_path(path: str) -> bool:
    return parse_path(path) is not None


def ownership_level(path: str) -> OwnershipLevel | None:
    parsed = parse_path(path)
    return parsed.ownership_level if parsed else None
