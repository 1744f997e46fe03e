"""Frame header assembly and hex-text response helpers.

Every update frame shares the same envelope::

    +------+--------+------------------+------------------+----------+
    | 0x00 | Opcode |    Device ID     |       Body       | Checksum |
    | 1 B  |  1 B   | 10 bytes ASCII   | variable length  | 2 bytes  |
    +------+--------+------------------+------------------+----------+

- Device ID: ASCII serial number, truncated to 10 bytes, zero-padded
- Multi-byte integers in the body are little-endian
- Checksum: CRC-16/Modbus over every preceding byte, little-endian

Device responses are handled as text: each received byte rendered as two
uppercase hex characters, so byte offset ``n`` lives at characters
``2n`` and ``2n + 1``.
"""

from __future__ import annotations

from ..utils.crc import crc16, u16_to_bytes

FRAME_START = 0x00
DEVICE_ID_LENGTH = 10
HEADER_SIZE = 2 + DEVICE_ID_LENGTH  # start byte + opcode + device id
CHECKSUM_SIZE = 2


def encode_device_id(device_id: str) -> bytes:
    """Encode a serial number into the fixed 10-byte device id field.

    Raises:
        ValueError: If the serial number is not ASCII.
    """
    raw = device_id.encode("ascii")[:DEVICE_ID_LENGTH]
    return raw.ljust(DEVICE_ID_LENGTH, b"\x00")


def fixed_field(data: bytes, size: int = 4) -> bytes:
    """Truncate or zero-pad a raw field to ``size`` bytes."""
    return bytes(data[:size]).ljust(size, b"\x00")


def u16(value: int, name: str) -> bytes:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"{name} must be 0-65535, got {value}")
    return value.to_bytes(2, "little")


def u32(value: int) -> bytes:
    """Little-endian 32-bit field; signed values wrap modulo 2**32."""
    return (value & 0xFFFFFFFF).to_bytes(4, "little")


def u8(value: int, name: str) -> bytes:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be 0-255, got {value}")
    return bytes([value])


def build_frame(opcode: int, device_id: str, body: bytes) -> bytes:
    """Wrap ``body`` in the update frame envelope and append the checksum.

    Args:
        opcode: Single-byte update opcode.
        device_id: Target serial number.
        body: Opcode-specific bytes following the device id.

    Returns:
        The complete frame ready to write to the socket.
    """
    frame = bytes([FRAME_START, opcode]) + encode_device_id(device_id) + body
    return frame + u16_to_bytes(crc16(frame), "little")


def verify_frame(frame: bytes) -> bool:
    """Check the trailing checksum of a complete frame."""
    if len(frame) < HEADER_SIZE + CHECKSUM_SIZE:
        return False
    expected = int.from_bytes(frame[-CHECKSUM_SIZE:], "little")
    return crc16(frame, 0, len(frame) - CHECKSUM_SIZE) == expected


def to_hex_text(data: bytes) -> str:
    """Render bytes as concatenated two-character uppercase hex."""
    return data.hex().upper()


def hex_byte_at(text: str, offset: int) -> int | None:
    """Read the byte at ``offset`` from a hex-text response.

    Returns:
        The byte value, or ``None`` if the text is too short or the
        characters are not hex digits.
    """
    start = offset * 2
    if offset < 0 or len(text) < start + 2:
        return None
    try:
        return int(text[start : start + 2], 16)
    except ValueError:
        return None


def hex_u16_at(text: str, offset: int) -> int | None:
    """Read a little-endian 16-bit value at byte ``offset``."""
    low = hex_byte_at(text, offset)
    high = hex_byte_at(text, offset + 1)
    if low is None or high is None:
        return None
    return low | (high << 8)
