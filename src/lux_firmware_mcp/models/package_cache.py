"""Read-only access to firmware packages cached by the download tool.

Layout::

    <cache_dir>/
        LUX_POWER/
            <recordId>.json      # package record (see FirmwarePackage.from_dict)
            <fileName>           # same record under its file name
        EG4/
            ...
        <recordId>.json          # legacy root-level record
        _metadata.json           # catalog metadata, not a package
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from .device_types import Platform
from .firmware import FirmwarePackage

logger = logging.getLogger(__name__)

DEFAULT_FIRMWARE_DIR = "firmware"
METADATA_FILE_NAME = "_metadata.json"


def load_package(path: str | Path) -> FirmwarePackage:
    """Load a single cached package record.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a valid package record.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a firmware record")
    return FirmwarePackage.from_dict(data)


def _record_paths(cache_dir: Path) -> list[Path]:
    paths = []
    for platform_dir in sorted(p for p in cache_dir.iterdir() if p.is_dir()):
        paths.extend(sorted(platform_dir.glob("*.json")))
    # Legacy root-level records last.
    paths.extend(sorted(p for p in cache_dir.glob("*.json") if p.is_file()))
    return paths


def _check_record_id(record_id: str) -> None:
    if record_id in ("", ".", "..") or "/" in record_id or "\\" in record_id:
        raise ValueError(f"Invalid firmware record id {record_id!r}")


def list_cached_packages(cache_dir: str | Path = DEFAULT_FIRMWARE_DIR) -> list[FirmwarePackage]:
    """Load every package record under ``cache_dir``.

    Platform directories are read first, then legacy ``*.json`` records
    at the cache root. Records are keyed by record id; duplicates (the
    same record saved under its file name, or a legacy copy) are reported
    once. Unreadable records are logged and skipped.
    """
    cache_dir = Path(cache_dir)
    if not cache_dir.is_dir():
        logger.info("Firmware cache %s does not exist", cache_dir)
        return []

    packages: dict[str, FirmwarePackage] = {}
    for path in _record_paths(cache_dir):
        if path.name == METADATA_FILE_NAME:
            continue
        try:
            package = load_package(path)
        except (OSError, ValueError) as e:
            logger.warning("Skipping unreadable firmware record %s: %s", path, e)
            continue
        key = package.record_id or str(path)
        packages.setdefault(key, package)

    logger.info("Restored %d firmware file(s) from %s", len(packages), cache_dir)
    return list(packages.values())


def find_package(
    record_id: str,
    cache_dir: str | Path = DEFAULT_FIRMWARE_DIR,
    platform: Platform | None = None,
) -> FirmwarePackage:
    """Find a cached package by record id.

    Searches the platform directory first (if given), then every platform
    directory, then the legacy root-level record (``<record_id>.json`` or
    ``<record_id>``).

    Raises:
        ValueError: If ``record_id`` is not a plain file name.
        FileNotFoundError: If no readable record matches.
    """
    _check_record_id(record_id)
    cache_dir = Path(cache_dir)
    candidates: list[Path] = []
    if platform is not None:
        candidates.append(cache_dir / platform.value / f"{record_id}.json")
    if cache_dir.is_dir():
        candidates.extend(
            p / f"{record_id}.json" for p in sorted(cache_dir.iterdir()) if p.is_dir()
        )
    candidates.append(cache_dir / f"{record_id}.json")
    candidates.append(cache_dir / record_id)

    for path in candidates:
        if not path.is_file():
            continue
        try:
            return load_package(path)
        except ValueError as e:
            logger.warning("Error loading firmware %s from %s: %s", record_id, path, e)

    raise FileNotFoundError(f"Firmware with record id {record_id} not found in {cache_dir}")
