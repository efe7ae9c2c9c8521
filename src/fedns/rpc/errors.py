"""JSON-RPC error codes and their mapping to namespace exceptions."""

from __future__ import annotations

from typing import Any

from fedns.fs.exceptions import (
    AuthenticationError,
    BackendError,
    FedNSError,
    NotFoundError,
    ValidationError,
)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

AUTHENTICATION_FAILED = -32001
NOT_FOUND = -32002
BACKEND_FAILURE = -32003


def exception_from_error(error: dict[str, Any]) -> FedNSError:
    """Build the exception matching a JSON-RPC ``error`` member."""
    code = error.get("code")
    message = str(error.get("message") or "Unknown RPC error")
    data = error.get("data")

    if code == AUTHENTICATION_FAILED:
        return AuthenticationError(message)
    if code == NOT_FOUND:
        return NotFoundError(message)
    if code == INVALID_PARAMS:
        return ValidationError(message)
    return BackendError(message, code=code, data=data)


def error_from_exception(exc: Exception) -> dict[str, Any]:
    """Build a JSON-RPC ``error`` member for *exc* (server side)."""
    if isinstance(exc, AuthenticationError):
        code = AUTHENTICATION_FAILED
    elif isinstance(exc, NotFoundError):
        code = NOT_FOUND
    elif isinstance(exc, (ValidationError, TypeError)):
        code = INVALID_PARAMS
    elif isinstance(exc, BackendError):
        code = exc.code if exc.code is not None else BACKEND_FAILURE
    else:
        code = INTERNAL_ERROR
    return {"code": code, "message": str(exc)}
