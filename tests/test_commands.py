"""Tests for update command builders."""

import pytest

from lux_firmware_mcp.models.firmware import FirmwarePackage, LuxVariant
from lux_firmware_mcp.protocol.commands import (
    PREPARE_FRAME_SIZE,
    RESET_FRAME_SIZE,
    MissingPackageData,
    Opcode,
    address_field,
    build_prepare,
    build_reset,
    build_send_data,
    encode_prepare,
    encode_reset,
    encode_send_data,
    reset_count,
)
from lux_firmware_mcp.protocol.framing import verify_frame
from lux_firmware_mcp.utils.crc import crc16

SERIAL = "BA12345678"
TAIL = b"\x11\x22\x33\x44"


def _package(**overrides) -> FirmwarePackage:
    fields = dict(
        file_type=1,
        file_size=0x00012345,
        checksum32=0xDEADBEEF,
        tail_marker=TAIL,
        packages={1: b"\x01" * 8, 2: b"\x02" * 8, 3: b"\x03" * 4},
    )
    fields.update(overrides)
    return FirmwarePackage(**fields)


def test_opcode_values():
    """Opcodes match the device protocol."""
    assert Opcode.UPDATE_PREPARE == 0x21
    assert Opcode.UPDATE_SEND_DATA == 0x22
    assert Opcode.UPDATE_RESET == 0x23


def test_prepare_layout():
    """Prepare frame is 24 bytes with the checksum over bytes 0-21."""
    frame = encode_prepare(SERIAL, TAIL, 5, 0xDEADBEEF)
    assert len(frame) == PREPARE_FRAME_SIZE == 24
    assert frame[0] == 0x00
    assert frame[1] == 0x21
    assert frame[2:12] == SERIAL.encode("ascii")
    assert frame[12:16] == TAIL
    assert frame[16:18] == b"\x05\x00"
    assert frame[18:22] == b"\xEF\xBE\xAD\xDE"
    assert frame[22:24] == crc16(frame, 0, 22).to_bytes(2, "little")


def test_prepare_short_tail_padded():
    """A tail marker shorter than 4 bytes is zero-padded."""
    frame = encode_prepare(SERIAL, b"\x11", 5, 0)
    assert frame[12:16] == b"\x11\x00\x00\x00"


def test_prepare_package_count_range():
    """Package count must fit 16 bits."""
    with pytest.raises(ValueError):
        encode_prepare(SERIAL, TAIL, 0x10000, 0)


def test_send_data_length_field():
    """Length field is payload length + 4; frame is payload length + 23."""
    for length in (0, 1, 100, 1024):
        payload = bytes(range(256)) * 4
        payload = payload[:length]
        frame = encode_send_data(SERIAL, 7, 1, b"\x00\x00\x00\x00", payload)
        assert int.from_bytes(frame[15:17], "little") == length + 4
        assert len(frame) == length + 19 + 4


def test_send_data_layout():
    """SendData fields sit at their fixed offsets."""
    payload = b"\xA0\xA1\xA2"
    frame = encode_send_data(SERIAL, 0x0102, 2, b"\x78\x56\x34\x12", payload)
    assert frame[1] == 0x22
    assert frame[12:14] == b"\x02\x01"
    assert frame[14] == 2
    assert frame[17:21] == b"\x78\x56\x34\x12"
    assert frame[21:24] == payload
    assert verify_frame(frame)


def test_send_data_payload_too_large():
    """Payloads that overflow the 16-bit length field are rejected."""
    with pytest.raises(ValueError):
        encode_send_data(SERIAL, 1, 1, b"\x00" * 4, b"\x00" * 0xFFFC)


def test_reset_layout():
    """Reset frame is 21 bytes with the checksum over bytes 0-18."""
    frame = encode_reset(SERIAL, 3, 9, 0x01020304)
    assert len(frame) == RESET_FRAME_SIZE
    assert frame[1] == 0x23
    assert frame[12] == 3
    assert frame[13:15] == b"\x09\x00"
    assert frame[15:19] == b"\x04\x03\x02\x01"
    assert frame[19:21] == crc16(frame, 0, 19).to_bytes(2, "little")


def test_address_field_fixed_size():
    """File types 1 and 3 carry the total file size."""
    assert address_field(_package(file_type=1), 2) == b"\x45\x23\x01\x00"
    assert address_field(_package(file_type=3), 2) == b"\x45\x23\x01\x00"


def test_address_field_physical_address():
    """File type 2 carries the per-package physical address."""
    package = _package(file_type=2, physical_address={1: 0x08000000, 2: 0x08000800})
    assert address_field(package, 2) == (0x08000800).to_bytes(4, "little")


def test_address_field_missing_physical_address():
    """File type 2 without an address for the index is missing data."""
    package = _package(file_type=2, physical_address={1: 0x08000000})
    with pytest.raises(MissingPackageData) as excinfo:
        address_field(package, 2)
    assert excinfo.value.package_index == 2


def test_address_field_lux_length_table():
    """Lux packages carry the raw length table regardless of file type."""
    table = b"\x10\x20\x30\x40"
    package = _package(file_type=2, variant=LuxVariant(length_table=table))
    assert address_field(package, 1) == table


def test_build_send_data_missing_package():
    """A missing chunk raises MissingPackageData with the index."""
    package = _package(packages={1: b"\x01", 3: b"\x03"})
    with pytest.raises(MissingPackageData) as excinfo:
        build_send_data(package, SERIAL, 2)
    assert excinfo.value.package_index == 2


def test_build_send_data_payload():
    """The chunk for the index is embedded after the address field."""
    package = _package()
    frame = build_send_data(package, SERIAL, 3)
    assert frame[12:14] == b"\x03\x00"
    assert frame[21:-2] == b"\x03" * 4


def test_prepare_identical_across_variants():
    """Standard and Lux packages share the Prepare layout."""
    standard = _package()
    lux = _package(variant=LuxVariant(length_table=b"\x01\x02\x03\x04", file_handle_type=1))
    assert build_prepare(standard, SERIAL) == build_prepare(lux, SERIAL)


def test_reset_count_defaults_to_package_count():
    """Without a BMS header id the reset count is the package count."""
    package = _package()
    assert reset_count(package) == 3
    assert build_reset(package, SERIAL)[13:15] == b"\x03\x00"


def test_reset_count_bms_header_override():
    """The BMS header id overrides the count in both variants."""
    standard = _package(bms_header_id=0x0155)
    lux = _package(bms_header_id=0x0155, variant=LuxVariant(file_handle_type=2))
    assert build_reset(standard, SERIAL)[13:15] == b"\x55\x01"
    assert build_reset(lux, SERIAL) == build_reset(standard, SERIAL)
