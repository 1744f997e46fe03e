"""CRC-16/Modbus used as the per-frame checksum of the update protocol.

Polynomial 0xA001 (reflected 0x8005), seed 0xFFFF, no final XOR. The
result is transmitted little-endian as the last two bytes of every frame.
"""

from __future__ import annotations

POLYNOMIAL = 0xA001
INITIAL_VALUE = 0xFFFF


def _build_table() -> tuple[int, ...]:
    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ POLYNOMIAL
            else:
                crc >>= 1
        table.append(crc)
    return tuple(table)


CRC16_TABLE = _build_table()


def crc16(data: bytes, offset: int = 0, length: int | None = None) -> int:
    """Compute the Modbus CRC-16 over ``data[offset:offset + length]``.

    Args:
        data: Input bytes.
        offset: First byte to include.
        length: Number of bytes to include; ``None`` runs to the end.

    Returns:
        16-bit checksum.
    """
    end = len(data) if length is None else offset + length
    crc = INITIAL_VALUE
    for byte in data[offset:end]:
        crc = (crc >> 8) ^ CRC16_TABLE[(crc ^ byte) & 0xFF]
    return crc


def u16_to_bytes(value: int, byteorder: str = "little") -> bytes:
    """Render a 16-bit value as two bytes in the given byte order."""
    return (value & 0xFFFF).to_bytes(2, byteorder)
