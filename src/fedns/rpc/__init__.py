"""JSON-RPC wire layer: bytes codec, error codes and transports."""

from fedns.rpc.codec import decode_value, encode_bytes, encode_value
from fedns.rpc.transport import HTTPTransport, LocalTransport, Transport

__all__ = [
    "HTTPTransport",
    "LocalTransport",
    "Transport",
    "decode_value",
    "encode_bytes",
    "encode_value",
]
