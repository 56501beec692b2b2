"""HTTP bridge to a serial device speaking a framed <command> text protocol."""

from .device_manager import DeviceManager, Link
from .errors import BridgeError

__all__ = ["BridgeError", "DeviceManager", "Link"]

__version__ = "1.0.0"
