"""Firmware package model consumed by the updater.

A package is produced by the download tool and cached on disk as a JSON
record. Chunk payloads, the tail marker and the Lux length table are
stored base64-encoded in that record; in memory they are raw bytes.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Any

from .device_types import FirmwareDeviceType

# fileType whose SendData address field is the per-package physical address
FILE_TYPE_PHYSICAL_ADDRESS = 2


@dataclass(frozen=True)
class StandardVariant:
    """Standard frame dialect: SendData carries a 32-bit address field."""

    name = "standard"


@dataclass(frozen=True)
class LuxVariant:
    """Lux frame dialect: SendData carries the raw 4-byte length table.

    ``file_handle_type`` selects the Lux reset dialect on devices that
    report one; its absence falls back to the standard reset.
    """

    name = "lux"

    length_table: bytes = b"\x00\x00\x00\x00"
    file_handle_type: int | None = None


ProtocolVariant = StandardVariant | LuxVariant


@dataclass
class FirmwarePackage:
    """A fully downloaded firmware image split into 1-based packages."""

    file_type: int
    file_size: int
    checksum32: int
    tail_marker: bytes
    packages: dict[int, bytes] = field(default_factory=dict)
    physical_address: dict[int, int] = field(default_factory=dict)
    bms_header_id: int | None = None
    variant: ProtocolVariant = field(default_factory=StandardVariant)

    record_id: str = ""
    file_name: str = ""
    standard: str = ""
    versions: tuple[int | None, int | None, int | None] = (None, None, None)
    device_type: FirmwareDeviceType | None = None
    done_download: bool = True

    @property
    def package_count(self) -> int:
        return len(self.packages)

    @property
    def is_lux(self) -> bool:
        return isinstance(self.variant, LuxVariant)

    @property
    def total_bytes(self) -> int:
        return sum(len(chunk) for chunk in self.packages.values())

    def missing_indices(self) -> list[int]:
        """Indices in ``1..package_count`` with no chunk data."""
        return [i for i in range(1, self.package_count + 1) if i not in self.packages]

    def summary(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "file_name": self.file_name,
            "standard": self.standard,
            "versions": list(self.versions),
            "device_type": self.device_type.name if self.device_type else None,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "crc32": f"0x{self.checksum32 & 0xFFFFFFFF:08X}",
            "variant": self.variant.name,
            "package_count": self.package_count,
            "total_bytes": self.total_bytes,
            "done_download": self.done_download,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FirmwarePackage:
        """Build a package from a cached JSON record.

        Key lookup is case-insensitive, matching the download tool.

        Raises:
            ValueError: If a required field is missing or a base64 field
                does not decode.
        """
        record = {str(k).lower(): v for k, v in data.items()}

        def get(key: str, default: Any = None) -> Any:
            value = record.get(key.lower())
            return default if value is None else value

        for required in ("fileType", "crc32"):
            if get(required) is None:
                raise ValueError(f"Firmware record is missing '{required}'")

        packages = {
            int(index): _b64decode(chunk, f"firmware[{index}]")
            for index, chunk in get("firmware", {}).items()
        }
        physical_address = {
            int(index): int(addr) for index, addr in get("physicalAddr", {}).items()
        }

        variant: ProtocolVariant
        if get("isLuxVersion", False):
            variant = LuxVariant(
                length_table=_b64decode(
                    get("firmwareLengthArrayEncoded", ""), "firmwareLengthArrayEncoded"
                ),
                file_handle_type=get("fileHandleType"),
            )
        else:
            variant = StandardVariant()

        device_type = None
        if get("firmwareDeviceType") is not None:
            device_type = FirmwareDeviceType.from_value(get("firmwareDeviceType"))

        return cls(
            file_type=int(get("fileType")),
            file_size=int(get("fileSize", 0)),
            checksum32=int(get("crc32")),
            tail_marker=_b64decode(get("tailEncoded", ""), "tailEncoded"),
            packages=packages,
            physical_address=physical_address,
            bms_header_id=get("bmsHeaderId"),
            variant=variant,
            record_id=str(get("recordId", "")),
            file_name=str(get("fileName", "")),
            standard=str(get("standard", "")),
            versions=(get("v1"), get("v2"), get("v3")),
            device_type=device_type,
            done_download=bool(get("doneDownload", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the cached JSON record layout."""
        lux = self.variant if isinstance(self.variant, LuxVariant) else None
        return {
            "recordId": self.record_id,
            "fileName": self.file_name,
            "standard": self.standard,
            "v1": self.versions[0],
            "v2": self.versions[1],
            "v3": self.versions[2],
            "fileType": self.file_type,
            "fileSize": self.file_size,
            "crc32": self.checksum32,
            "bmsHeaderId": self.bms_header_id,
            "isLuxVersion": lux is not None,
            "fileHandleType": lux.file_handle_type if lux else None,
            "firmwareDeviceType": self.device_type.name if self.device_type else None,
            "tailEncoded": base64.b64encode(self.tail_marker).decode("ascii"),
            "firmwareLengthArrayEncoded": (
                base64.b64encode(lux.length_table).decode("ascii") if lux else None
            ),
            "doneDownload": self.done_download,
            "physicalAddr": {str(k): v for k, v in sorted(self.physical_address.items())},
            "firmware": {
                str(k): base64.b64encode(v).decode("ascii")
                for k, v in sorted(self.packages.items())
            },
        }


def _b64decode(value: str, name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 in {name}: {e}") from e
