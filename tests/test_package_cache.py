"""Tests for reading cached firmware packages."""

import json

import pytest

from lux_firmware_mcp.models.device_types import Platform
from lux_firmware_mcp.models.firmware import FirmwarePackage
from lux_firmware_mcp.models.package_cache import (
    find_package,
    list_cached_packages,
    load_package,
)


def _package(record_id: str, file_name: str = "fw.hex") -> FirmwarePackage:
    return FirmwarePackage(
        file_type=1,
        file_size=8,
        checksum32=0x12345678,
        tail_marker=b"\x01\x02\x03\x04",
        packages={1: b"\x00" * 4, 2: b"\x01" * 4},
        record_id=record_id,
        file_name=file_name,
    )


def _write(path, package: FirmwarePackage) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(package.to_dict()))


def test_load_package(tmp_path):
    """A record on disk loads into a package."""
    path = tmp_path / "rec-1.json"
    _write(path, _package("rec-1"))
    package = load_package(path)
    assert package.record_id == "rec-1"
    assert package.package_count == 2


def test_load_package_invalid_json(tmp_path):
    """Non-JSON files are reported as ValueError."""
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(ValueError):
        load_package(path)


def test_list_cached_packages(tmp_path):
    """Records under every platform directory are listed once."""
    _write(tmp_path / "LUX_POWER" / "rec-1.json", _package("rec-1"))
    _write(tmp_path / "LUX_POWER" / "fw-copy.json", _package("rec-1"))
    _write(tmp_path / "EG4" / "rec-2.json", _package("rec-2"))
    (tmp_path / "EG4" / "junk.json").write_text("[]")

    packages = list_cached_packages(tmp_path)
    assert sorted(p.record_id for p in packages) == ["rec-1", "rec-2"]


def test_list_cached_packages_missing_dir(tmp_path):
    """A missing cache directory yields no packages."""
    assert list_cached_packages(tmp_path / "nope") == []


def test_find_package_in_platform_dir(tmp_path):
    """Records are found in the requested platform directory first."""
    _write(tmp_path / "EG4" / "rec-1.json", _package("rec-1", "eg4.hex"))
    _write(tmp_path / "LUX_POWER" / "rec-1.json", _package("rec-1", "lux.hex"))
    package = find_package("rec-1", tmp_path, Platform.LUX_POWER)
    assert package.file_name == "lux.hex"


def test_find_package_any_platform(tmp_path):
    """Without a platform every directory is searched."""
    _write(tmp_path / "EG4" / "rec-9.json", _package("rec-9"))
    assert find_package("rec-9", tmp_path).record_id == "rec-9"


def test_find_package_root_fallback(tmp_path):
    """Legacy records at the cache root are still found."""
    _write(tmp_path / "rec-3", _package("rec-3"))
    assert find_package("rec-3", tmp_path).record_id == "rec-3"


def test_find_package_not_found(tmp_path):
    """Unknown record ids raise FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        find_package("missing", tmp_path)


def test_list_cached_packages_includes_legacy_root_records(tmp_path):
    """Root-level records are listed after platform records, once per id."""
    _write(tmp_path / "LUX_POWER" / "rec-1.json", _package("rec-1", "platform.hex"))
    _write(tmp_path / "rec-1.json", _package("rec-1", "legacy-copy.hex"))
    _write(tmp_path / "legacy.json", _package("legacy"))
    (tmp_path / "_metadata.json").write_text(json.dumps({"platforms": []}))

    packages = {p.record_id: p for p in list_cached_packages(tmp_path)}
    assert sorted(packages) == ["legacy", "rec-1"]
    assert packages["rec-1"].file_name == "platform.hex"


def test_list_cached_packages_skips_metadata_file(tmp_path):
    """The catalog metadata file is never loaded as a package."""
    _write(tmp_path / "_metadata.json", _package("looks-like-a-record"))
    assert list_cached_packages(tmp_path) == []


def test_find_package_root_json_fallback(tmp_path):
    """A legacy ``<record_id>.json`` at the root is found by record id."""
    _write(tmp_path / "legacy.json", _package("legacy"))
    assert find_package("legacy", tmp_path).record_id == "legacy"


@pytest.mark.parametrize("record_id", ["../outside", "..", "sub/rec", "sub\\rec", ""])
def test_find_package_rejects_path_like_ids(tmp_path, record_id):
    """Record ids that would leave the cache directory are rejected."""
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    _write(tmp_path / "outside.json", _package("outside"))
    _write(tmp_path / "outside", _package("outside"))
    with pytest.raises(ValueError):
        find_package(record_id, cache_dir)
