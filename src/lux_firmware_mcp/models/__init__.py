"""Data models for firmware packages, transfer progress, and device types."""

from .device_types import FirmwareDeviceType, Platform
from .firmware import FirmwarePackage, LuxVariant, ProtocolVariant, StandardVariant
from .progress import Phase, TransferProgress
