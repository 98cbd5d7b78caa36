"""Razer battery reader - HID protocol codec and polling engine for wireless Razer devices."""

from .models import (
    TransactionVariant,
    DeviceDescriptor,
    HidDeviceInfo,
    ConnectedDevice,
    BatteryState,
    SessionState,
    EventKind,
    AlertKind,
    BatteryEvent,
)
from .errors import (
    RazerBatteryError,
    TransportError,
    ProtocolError,
    ConfigurationError,
)
from .config import PollerConfig
from .registry import DEVICE_REGISTRY, lookup
from .transport import Transport, HidTransport
from .device import BatteryPoller, DeviceSession

__all__ = [
    "TransactionVariant",
    "DeviceDescriptor",
    "HidDeviceInfo",
    "ConnectedDevice",
    "BatteryState",
    "SessionState",
    "EventKind",
    "AlertKind",
    "BatteryEvent",
    "RazerBatteryError",
    "TransportError",
    "ProtocolError",
    "ConfigurationError",
    "PollerConfig",
    "DEVICE_REGISTRY",
    "lookup",
    "Transport",
    "HidTransport",
    "BatteryPoller",
    "DeviceSession",
]
