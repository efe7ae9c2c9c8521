"""Client configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from fedns.fs.exceptions import ValidationError
from fedns.rpc.transport import DEFAULT_BASE_URL, DEFAULT_RPC_PREFIX, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

ENV_API_URL = "FEDNS_API_URL"
ENV_API_KEY = "FEDNS_API_KEY"
ENV_TIMEOUT = "FEDNS_TIMEOUT"


@dataclass(frozen=True)
class ClientConfig:
    """Where the namespace server lives and how to authenticate."""

    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    rpc_prefix: str = DEFAULT_RPC_PREFIX

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ClientConfig:
        """Read ``FEDNS_API_URL``, ``FEDNS_API_KEY`` and ``FEDNS_TIMEOUT``.

        Empty values fall back to the defaults.
        """
        env = os.environ if environ is None else environ

        timeout = DEFAULT_TIMEOUT
        raw_timeout = env.get(ENV_TIMEOUT)
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError as e:
                raise ValidationError(f"{ENV_TIMEOUT} must be a number, got {raw_timeout!r}") from e

        config = cls(
            base_url=env.get(ENV_API_URL) or DEFAULT_BASE_URL,
            api_key=env.get(ENV_API_KEY) or None,
            timeout=timeout,
        )
        logger.debug("Client config: base_url=%s auth=%s", config.base_url, bool(config.api_key))
        return config
