"""Local TCP firmware updater for Lux/EG4 inverters and battery packs."""

__version__ = "0.1.0"
