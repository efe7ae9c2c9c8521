"""Wire codec for binary payloads.

Binary values travel as tagged envelopes::

    {"__type__": "bytes", "data": "<base64>"}

Receivers tell text from binary by the tag only, never by the payload.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from fedns.fs.exceptions import BackendError

BYTES_TAG = "bytes"


def to_bytes(content: str | bytes | bytearray | memoryview) -> bytes:
    """Transcode *content* to bytes; text is encoded as UTF-8."""
    if isinstance(content, str):
        return content.encode("utf-8")
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    raise TypeError(f"Unsupported content type: {type(content).__name__}")


def encode_bytes(content: str | bytes | bytearray | memoryview) -> dict[str, str]:
    """Wrap *content* in a bytes envelope."""
    data = base64.b64encode(to_bytes(content)).decode("ascii")
    return {"__type__": BYTES_TAG, "data": data}


def is_bytes_envelope(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and value.get("__type__") == BYTES_TAG
        and isinstance(value.get("data"), str)
    )


def decode_bytes(envelope: dict[str, Any]) -> bytes:
    """Unwrap a bytes envelope."""
    try:
        return base64.b64decode(envelope["data"], validate=True)
    except (binascii.Error, ValueError) as e:
        raise BackendError(f"Malformed bytes payload: {e}") from e


def encode_value(value: Any) -> Any:
    """Recursively replace ``bytes`` values with envelopes."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return encode_bytes(value)
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def decode_value(value: Any) -> Any:
    """Recursively replace envelopes with ``bytes`` values."""
    if is_bytes_envelope(value):
        return decode_bytes(value)
    if isinstance(value, dict):
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value
