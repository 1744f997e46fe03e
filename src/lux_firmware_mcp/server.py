"""MCP server entry point for local Lux/EG4 firmware updates.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from mcp.server.fastmcp import FastMCP

from .models.device_types import FirmwareDeviceType, Platform
from .models.package_cache import DEFAULT_FIRMWARE_DIR, find_package, list_cached_packages
from .transport.tcp_connection import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_TIMEOUT, TCPConnection
from .updater import DEFAULT_SERIAL_NUMBER, FirmwareUpdater, UpdateResult

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "lux-firmware",
    instructions="MCP server for local firmware updates of Lux/EG4 inverters and batteries",
)

_last_result: UpdateResult | None = None
_last_record_id: str | None = None


def _firmware_dir() -> str:
    return os.environ.get("LUX_FIRMWARE_DIR", DEFAULT_FIRMWARE_DIR)


def _parse_platform(brand: str | None) -> Platform | None:
    if brand is None:
        return None
    try:
        return Platform(brand.upper())
    except ValueError:
        raise ValueError(
            f"Unknown brand '{brand}'. Valid: {[p.value for p in Platform]}"
        ) from None


# ─── FIRMWARE CACHE TOOLS ────────────────────────────────────────────

@mcp.tool()
def list_cached_firmware() -> dict[str, Any]:
    """List firmware packages available in the local cache."""
    packages = list_cached_packages(_firmware_dir())
    return {
        "firmware_dir": _firmware_dir(),
        "firmware": [p.summary() for p in packages],
        "count": len(packages),
    }


@mcp.tool()
def get_firmware_info(record_id: str, brand: str | None = None) -> dict[str, Any]:
    """Show details of a cached firmware package.

    Args:
        record_id: Firmware record id from the vendor cloud.
        brand: Optional platform directory to search first (LUX_POWER, EG4, ...).
    """
    try:
        package = find_package(record_id, _firmware_dir(), _parse_platform(brand))
    except (FileNotFoundError, ValueError) as e:
        return {"error": str(e)}

    info = package.summary()
    info["missing_packages"] = package.missing_indices()
    return info


# ─── UPDATE TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def update_firmware(
    record_id: str,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    serial_number: str = DEFAULT_SERIAL_NUMBER,
    brand: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """Push a cached firmware package to an inverter or battery.

    The computer must be joined to the datalogger's access point. The
    update blocks until it completes; do not power off the device.

    Args:
        record_id: Firmware record id of a fully downloaded package.
        host: Device IP address (default 10.10.10.1).
        port: Device TCP port (default 8899).
        serial_number: Device serial number placed in every frame.
        brand: Optional platform directory to search first.
        timeout: Socket timeout in seconds.
    """
    global _last_result, _last_record_id

    try:
        package = find_package(record_id, _firmware_dir(), _parse_platform(brand))
    except (FileNotFoundError, ValueError) as e:
        return {
            "error": str(e),
            "hint": "Download the firmware into the cache before updating.",
        }

    if not package.done_download:
        return {"error": f"Firmware {record_id} is not fully downloaded"}

    logger.info(
        "Updating %s:%d (serial %s) with %s", host, port, serial_number, package.file_name
    )
    updater = FirmwareUpdater(TCPConnection(host, port, timeout), serial_number)
    result = updater.update_firmware(package)

    _last_result = result
    _last_record_id = record_id

    response = result.to_dict()
    response["record_id"] = record_id
    response["file_name"] = package.file_name
    return response


@mcp.tool()
def get_update_status() -> dict[str, Any]:
    """Return the outcome of the most recent update attempt."""
    if _last_result is None:
        return {"status": "no update has run"}
    response = _last_result.to_dict()
    response["record_id"] = _last_record_id
    return response


@mcp.tool()
def list_device_types(brand: str | None = None) -> dict[str, Any]:
    """List device models that accept local firmware updates.

    Args:
        brand: Optional platform filter (LUX_POWER, EG4, GSL, MID).
    """
    try:
        platform = _parse_platform(brand)
    except ValueError as e:
        return {"error": str(e)}

    devices = [
        {"id": dt.name, "name": dt.display_name}
        for dt in FirmwareDeviceType
        if platform is None or dt.is_supported_for_platform(platform)
    ]
    return {"brand": platform.value if platform else None, "devices": devices, "count": len(devices)}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("lux://device/defaults")
def resource_device_defaults() -> str:
    """Default connection settings for the datalogger access point."""
    return json.dumps({
        "host": DEFAULT_HOST,
        "port": DEFAULT_PORT,
        "timeout": DEFAULT_TIMEOUT,
        "serial_number": DEFAULT_SERIAL_NUMBER,
        "firmware_dir": _firmware_dir(),
    })


@mcp.resource("lux://update/last-result")
def resource_last_result() -> str:
    """Outcome of the most recent update attempt."""
    return json.dumps(get_update_status())


@mcp.resource("lux://catalog/device-types")
def resource_device_catalog() -> str:
    """All device types with the brands that support them."""
    catalog = [
        {
            "id": dt.name,
            "name": dt.display_name,
            "brands": [p.value for p in Platform if dt.is_supported_for_platform(p)],
        }
        for dt in FirmwareDeviceType
    ]
    return json.dumps({"device_types": catalog, "count": len(catalog)})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def plan_update(record_id: str) -> str:
    """Walk through a safe firmware update for a cached package.

    Args:
        record_id: Firmware record id to install.
    """
    return f"""Prepare to install firmware {record_id}.
Steps:
- Use get_firmware_info to confirm the package is fully downloaded,
  has no missing packages, and matches the device type being updated
- Confirm the computer is joined to the datalogger's access point
  (default device address {DEFAULT_HOST}:{DEFAULT_PORT})
- Ask for the device serial number if the default should not be used
- Run update_firmware and do not interrupt power while it runs
- Report the outcome; on failure, quote the phase and package index
  from the error and suggest retrying from the start

Inverters may take 6 to 10 minutes to restart after a successful update."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
