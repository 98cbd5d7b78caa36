"""Device layer for connected Razer peripherals.

This module provides:
- Discovery of supported devices among HID interfaces (find_devices)
- Per-device query sessions with failure tracking (DeviceSession)
- The polling engine emitting battery change events (BatteryPoller)
"""

from .finder import find_devices, match_devices
from .session import DeviceSession
from .poller import BatteryPoller

__all__ = [
    'find_devices',
    'match_devices',
    'DeviceSession',
    'BatteryPoller',
]
