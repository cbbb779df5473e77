"""Byte, hex and hyphenated identifier conversions."""

import uuid
from typing import Iterable, Optional, Union

ByteSource = Union[bytes, bytearray, Iterable[int]]

# Built once at import; never mutated.
BYTE_TO_HEX = tuple(format(i, '02x') for i in range(256))


def generate_random_bytes() -> bytes:
    """Generate 16 random bytes laid out as a version-4 UUID.

    Returns:
        16-byte buffer
    """
    return uuid.uuid4().bytes


def bytes_to_hex_string(data: ByteSource) -> str:
    """Encode bytes as a lowercase hex string.

    Args:
        data: Bytes or sequence of ints in the range 0-255

    Returns:
        Two hex characters per byte, concatenated
    """
    return ''.join(BYTE_TO_HEX[byte] for byte in data)


def format_hex_as_uuid(hex_string: str) -> str:
    """Group a 32-character hex string as 8-4-4-4-12 joined by hyphens.

    Shorter input is not rejected: missing characters produce short or
    empty groups.

    Args:
        hex_string: Hex string

    Returns:
        Hyphenated identifier
    """
    return '-'.join([
        hex_string[0:8],
        hex_string[8:12],
        hex_string[12:16],
        hex_string[16:20],
        hex_string[20:32],
    ])


def bytes_to_uuid(data: ByteSource) -> str:
    """Encode bytes as a hyphenated identifier."""
    return format_hex_as_uuid(bytes_to_hex_string(data))


def convert_maybe_uuid_to_hex_string(value: Optional[str]) -> Optional[str]:
    """Strip the hyphens from a hyphenated identifier.

    Args:
        value: Hyphenated identifier, may be None or empty

    Returns:
        Hex form, or None when there is no value
    """
    if not value:
        return None

    return value.replace('-', '')


def convert_maybe_hex_string_to_uuid(value: Optional[str]) -> Optional[str]:
    """Hyphenate a hex string.

    Args:
        value: Hex string, may be None or empty

    Returns:
        Hyphenated form, or None when there is no value
    """
    if not value:
        return None

    return format_hex_as_uuid(value)
