"""Fleet API connector, BLE framing, Schnorr signatures and session caching for vehicle clients."""

__version__ = "0.1.0"
__all__ = ["account", "ble", "cache", "connector", "inet", "log", "schnorr"]