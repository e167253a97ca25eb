"""
MessagePack encoder/decoder for the wire format.

Every frame in either direction is a single MessagePack map. Outbound
payloads are produced with pydantic's JSON-mode dump, so they only ever
contain str keys, lists, numbers, strings, booleans and None.
"""

from typing import Any

import msgpack


class DecodeError(Exception):
    """Error raised when an inbound frame cannot be decoded."""


# Client intents are tiny; anything larger than this is hostile or broken.
MAX_BUFFER_LEN = 8 * 1024  # 8KB total payload
MAX_STR_LEN = 1024  # per string
MAX_BIN_LEN = 1024  # per binary
MAX_ARRAY_LEN = 64  # max array elements
MAX_MAP_LEN = 32  # max map entries
MAX_EXT_LEN = 0  # extension types are never used


def encode(data: dict[str, Any]) -> bytes:
    """Encode a dict to MessagePack bytes."""
    return msgpack.packb(data)


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode MessagePack bytes to a dict.

    Raises DecodeError if data is invalid, not a map, or exceeds size limits.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")

    return result
