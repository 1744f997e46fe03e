"""Update opcodes and frame builders for both protocol variants.

Layouts (byte offsets, inclusive)::

    Prepare  0x21  [12..15] tail marker  [16..17] package count
                   [18..21] crc32                          24 bytes
    SendData 0x22  [12..13] package index  [14] file type
                   [15..16] payload length + 4
                   [17..20] address field  [21..] payload  len + 23 bytes
    Reset    0x23  [12] file type  [13..14] reset count
                   [15..18] crc32                          21 bytes

Bytes 0..11 are the shared envelope header and the last two bytes the
CRC-16 (see :mod:`.framing`).
"""

from __future__ import annotations

import logging
from enum import IntEnum

from ..models.firmware import (
    FILE_TYPE_PHYSICAL_ADDRESS,
    FirmwarePackage,
    LuxVariant,
)
from .framing import build_frame, fixed_field, u8, u16, u32

logger = logging.getLogger(__name__)

PREPARE_FRAME_SIZE = 24
RESET_FRAME_SIZE = 21
SEND_DATA_LENGTH_EXTRA = 4
MAX_PAYLOAD_SIZE = 0xFFFF - SEND_DATA_LENGTH_EXTRA


class Opcode(IntEnum):
    """Update command opcodes (byte 1 of every frame)."""

    UPDATE_PREPARE = 0x21
    UPDATE_SEND_DATA = 0x22
    UPDATE_RESET = 0x23


class MissingPackageData(LookupError):
    """The package lacks data required to build a frame."""

    def __init__(self, message: str, package_index: int | None = None) -> None:
        super().__init__(message)
        self.package_index = package_index


# ─── FIELD-LEVEL ENCODERS ────────────────────────────────────────────

def encode_prepare(
    device_id: str, tail_marker: bytes, package_count: int, checksum32: int
) -> bytes:
    """Build an UPDATE_PREPARE frame from explicit field values."""
    body = fixed_field(tail_marker) + u16(package_count, "package count") + u32(checksum32)
    return build_frame(Opcode.UPDATE_PREPARE, device_id, body)


def encode_send_data(
    device_id: str,
    package_index: int,
    file_type: int,
    address_field: bytes,
    payload: bytes,
) -> bytes:
    """Build an UPDATE_SEND_DATA frame from explicit field values.

    Args:
        device_id: Target serial number.
        package_index: 1-based package index.
        file_type: Package file type byte.
        address_field: 4 bytes placed at offset 17 (physical address,
            file size, or Lux length table).
        payload: Firmware chunk.
    """
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ValueError(
            f"Payload for package {package_index} too large: {len(payload)} bytes"
        )
    body = (
        u16(package_index, "package index")
        + u8(file_type, "file type")
        + u16(len(payload) + SEND_DATA_LENGTH_EXTRA, "payload length")
        + fixed_field(address_field)
        + payload
    )
    return build_frame(Opcode.UPDATE_SEND_DATA, device_id, body)


def encode_reset(device_id: str, file_type: int, reset_count: int, checksum32: int) -> bytes:
    """Build an UPDATE_RESET frame from explicit field values."""
    body = u8(file_type, "file type") + u16(reset_count, "reset count") + u32(checksum32)
    return build_frame(Opcode.UPDATE_RESET, device_id, body)


# ─── PACKAGE-LEVEL BUILDERS ──────────────────────────────────────────

def address_field(package: FirmwarePackage, package_index: int) -> bytes:
    """Resolve the 4-byte field at SendData offset 17 for a package.

    Lux packages carry the raw length table. Standard packages carry the
    per-package physical address for file type 2 and the total file size
    otherwise.

    Raises:
        MissingPackageData: If a file type 2 package has no address for
            ``package_index``.
    """
    variant = package.variant
    if isinstance(variant, LuxVariant):
        return fixed_field(variant.length_table)
    if package.file_type == FILE_TYPE_PHYSICAL_ADDRESS:
        if package_index not in package.physical_address:
            raise MissingPackageData(
                f"No physical address for package {package_index}", package_index
            )
        return u32(package.physical_address[package_index])
    return u32(package.file_size)


def reset_count(package: FirmwarePackage) -> int:
    """Count field of the Reset frame: ``bms_header_id`` overrides the package count."""
    if package.bms_header_id is not None:
        return package.bms_header_id
    return package.package_count


def build_prepare(package: FirmwarePackage, device_id: str) -> bytes:
    """Build the Prepare frame for a package.

    Both variants share the Prepare layout.
    """
    return encode_prepare(
        device_id, package.tail_marker, package.package_count, package.checksum32
    )


def build_send_data(package: FirmwarePackage, device_id: str, package_index: int) -> bytes:
    """Build the SendData frame carrying ``package.packages[package_index]``.

    Raises:
        MissingPackageData: If the chunk (or its address) is missing.
        ValueError: If a field is out of range.
    """
    if package_index not in package.packages:
        raise MissingPackageData(
            f"Missing firmware data for package {package_index}", package_index
        )
    return encode_send_data(
        device_id,
        package_index,
        package.file_type,
        address_field(package, package_index),
        package.packages[package_index],
    )


def build_reset(package: FirmwarePackage, device_id: str) -> bytes:
    """Build the Reset frame for a package.

    Lux packages with a file handle type use the Lux reset dialect, which
    is byte-identical on the wire.
    """
    variant = package.variant
    if isinstance(variant, LuxVariant) and variant.file_handle_type is not None:
        logger.debug(
            "Lux reset (file handle type %d, bms header id %s)",
            variant.file_handle_type,
            package.bms_header_id,
        )
    return encode_reset(
        device_id, package.file_type, reset_count(package), package.checksum32
    )
