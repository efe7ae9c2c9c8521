"""RPC transports: JSON-RPC 2.0 over HTTP, or in-process dispatch."""

from __future__ import annotations

import itertools
import json
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from fedns.fs.exceptions import AuthenticationError, BackendError, TransportError

from .codec import decode_value, encode_value
from .errors import exception_from_error

if TYPE_CHECKING:
    from fedns.server.service import NamespaceService

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_RPC_PREFIX = "/api/nfs"
DEFAULT_TIMEOUT = 30.0


@runtime_checkable
class Transport(Protocol):
    """Request/response channel to the namespace server."""

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Invoke *method* and return its decoded result."""
        ...

    async def close(self) -> None: ...


class _JSONRPCMixin:
    """Request building and response unwrapping shared by transports."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)

    def _build_request(self, method: str, params: dict[str, Any] | None) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "method": method,
            "params": encode_value(params or {}),
            "id": next(self._ids),
        }

    @staticmethod
    def _unwrap(method: str, payload: Any) -> Any:
        if not isinstance(payload, dict):
            raise BackendError(f"Malformed RPC response for {method}")
        error = payload.get("error")
        if error:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            raise exception_from_error(error)
        return decode_value(payload.get("result"))


class HTTPTransport(_JSONRPCMixin):
    """JSON-RPC 2.0 over HTTP POST to ``{base_url}{rpc_prefix}/{method}``.

    Pass *client* to reuse or mock an ``httpx.AsyncClient``; otherwise
    one is created lazily and closed by ``close()``.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        rpc_prefix: str = DEFAULT_RPC_PREFIX,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.rpc_prefix = "/" + rpc_prefix.strip("/")
        self.timeout = timeout
        self._api_key = api_key
        self._client = client
        self._owns_client = client is None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        request = self._build_request(method, params)
        client = await self._get_client()
        logger.debug("RPC %s id=%s", method, request["id"])

        try:
            response = await client.post(
                f"{self.rpc_prefix}/{method}", json=request, headers=self._headers()
            )
        except httpx.RequestError as e:
            raise TransportError(f"Network error calling {method}: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Credentials rejected calling {method} (HTTP {response.status_code})"
            )

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error and not (isinstance(payload, dict) and payload.get("error")):
            raise BackendError(
                f"HTTP {response.status_code} calling {method}",
                code=response.status_code,
                data=response.text or None,
            )

        return self._unwrap(method, payload)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class LocalTransport(_JSONRPCMixin):
    """In-process transport dispatching straight into a ``NamespaceService``.

    Requests still pass through JSON serialization so results have the
    same shape as over HTTP.
    """

    def __init__(self, service: NamespaceService) -> None:
        super().__init__()
        self._service = service

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        request = json.loads(json.dumps(self._build_request(method, params)))
        logger.debug("Local RPC %s id=%s", method, request["id"])
        response = await self._service.handle(request)
        return self._unwrap(method, json.loads(json.dumps(response)))

    async def close(self) -> None:
        pass
