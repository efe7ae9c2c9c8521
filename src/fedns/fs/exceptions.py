"""Custom exception hierarchy for the fedns namespace layer."""

from __future__ import annotations

from typing import Any


class FedNSError(Exception):
    """Base exception for all namespace errors."""


class AuthenticationError(FedNSError):
    """Raised when the backend rejects the caller's credentials."""


class NotFoundError(FedNSError):
    """Raised when a path or saved mount configuration does not exist."""


class MountNotFoundError(NotFoundError):
    """Raised when no mount matches the given virtual path."""


class BackendError(FedNSError):
    """Raised when the routed backend itself fails.

    ``code`` and ``data`` carry the backend's error code and payload
    when the failure came over the wire.
    """

    def __init__(self, message: str, *, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class TransportError(BackendError):
    """Raised when the RPC transport cannot reach the backend."""


class ValidationError(FedNSError):
    """Raised on malformed caller input, before any network call."""


class SyncInProgressError(FedNSError):
    """Raised when a sync is already running for the same mount point."""


class PartialFailure(FedNSError):
    """Raised when an aggregate operation completed with per-item failures.

    ``result`` is the aggregate result (a ``BatchResult`` or ``SyncResult``).
    """

    def __init__(self, message: str, result: Any) -> None:
        super().__init__(message)
        self.result = result
