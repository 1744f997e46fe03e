"""Firmware device type catalog and brand platforms."""

from __future__ import annotations

from enum import Enum


class Platform(str, Enum):
    """Brand platforms served by the vendor cloud."""

    LUX_POWER = "LUX_POWER"
    EG4 = "EG4"
    GSL = "GSL"
    MID = "MID"


class FirmwareDeviceType(Enum):
    """Device families that accept firmware over the local TCP link.

    Values are display names; member order matches the numeric ids the
    download tool writes into cached records.
    """

    # SNA series
    SNA_3000_6000 = "SNA 3000-6000"
    SNA_US_6000 = "SNA-US 6000"
    SNA_12K = "SNA 12K"
    SNA_US_12K = "SNA-US 12K"

    # LXP series
    LXP_3_6K_HYBRID_STANDARD = "LXP-3-6K Hybrid (Standard)"
    LXP_3_6K_HYBRID_PARALLEL = "LXP-3-6K Hybrid (Parallel)"
    LXP_3600_ACS_STANDARD = "LXP_3600 ACS (Standard)"
    LXP_3600_ACS_PARALLEL = "LXP_3600 ACS (Parallel)"
    LXP_LB_8_12K = "LXP-LB-8-12K"

    # Other inverters
    LSP_100K = "LSP-100K"
    LXP_HV_6K_HYBRID = "LXP-HV-6K Hybrid"
    LITE_STOR = "LiteStor"
    TRIP_HB_EU_6_20K = "TRIP 6-30K"
    TRIP_LV_5_20K = "TRIP-LV 5-20K"
    GEN_LB_EU_3_6K = "GEN-LB-EU 3-6K"
    GEN_LB_EU_7_10K_GST = "GEN-LB-EU 7-10K"
    POWER_HUB = "PowerHub"

    # Battery packs
    BATT_HI_5_V1 = "Batt - Hi-5 GEN 1"
    BATT_HI_5_V2 = "Batt - Hi-5 GEN 2 / Li 5"
    BATT_POWER_GEM = "Batt - Power GEM / PGEM"
    BATT_POWER_GEM_PLUS = "Batt - Power GEM Plus / PGEM PRO"
    BATT_J_OF_10KWH = "Batt - J-OF 10kWh / LiteStor"
    BATT_ECO_BEAST = "Batt - Eco Beast"
    BATT_P_SHIELD = "Batt - P SHIELD"
    BATT_P_SHIELD_MAX = "Batt - PowerShield Max / PSHIELD MAX"
    BATT_POWER_STACK = "Batt - Power Stack / PSTACK"
    BATT_C14 = "Batt - C14"
    BATT_POWER_GEM_MAX = "Batt - Powergem Max / PGEMMAX"
    BATT_E0B_HI_LI = "Batt - E0B-100 / Hi-11.8(GEN3) / Li-11.8"

    # Dongles
    DONGLE_E_WIFI_DONGLE = "E-WiFi Dongle"

    @property
    def display_name(self) -> str:
        return self.value

    @classmethod
    def from_value(cls, value: int | str) -> FirmwareDeviceType:
        """Resolve a cached ``firmwareDeviceType`` (numeric id or name).

        Raises:
            ValueError: If the value matches no device type.
        """
        members = list(cls)
        if isinstance(value, int) and not isinstance(value, bool):
            if 0 <= value < len(members):
                return members[value]
            raise ValueError(f"Unknown device type id {value}")
        name = str(value).upper()
        if name in cls.__members__:
            return cls.__members__[name]
        raise ValueError(f"Unknown device type '{value}'")

    def is_supported_for_platform(self, platform: Platform) -> bool:
        if platform == Platform.EG4:
            return self in EG4_DEVICE_TYPES
        return True


EG4_DEVICE_TYPES = frozenset({
    FirmwareDeviceType.LXP_LB_8_12K,
    FirmwareDeviceType.SNA_US_6000,
    FirmwareDeviceType.SNA_US_12K,
    FirmwareDeviceType.POWER_HUB,
    FirmwareDeviceType.DONGLE_E_WIFI_DONGLE,
})
