"""Immutable data models for device descriptors, battery state and events.

All models are frozen dataclasses to ensure immutability and thread-safety.
These models serve as the contract between registry, codec, sessions and the
presentation layer.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

# Battery percentage bounds
MIN_PERCENTAGE = 0
MAX_PERCENTAGE = 100


class TransactionVariant(Enum):
    """Transaction-id convention used by a device family.

    The value is the transaction id byte written into every request.
    """
    TID_1F = 0x1F
    TID_3F = 0x3F
    TID_FF = 0xFF


@dataclass(frozen=True)
class DeviceDescriptor:
    """Registry entry describing how to address one supported device.

    Attributes:
        name: Human-readable device name
        vendor_id: USB Vendor ID
        product_id: USB Product ID
        interface: HID interface number that answers battery commands
        usage_page: HID usage page of that interface
        usage: HID usage of that interface
        variant: Transaction-id variant of the device family
    """
    name: str
    vendor_id: int
    product_id: int
    interface: int
    usage_page: int
    usage: int
    variant: TransactionVariant

    @property
    def key(self) -> Tuple[int, int, int, int, int]:
        """Full match tuple (vid, pid, interface, usage_page, usage)."""
        return (self.vendor_id, self.product_id, self.interface, self.usage_page, self.usage)

    def __str__(self) -> str:
        return f"{self.name} ({self.vendor_id:04x}:{self.product_id:04x})"


@dataclass(frozen=True)
class HidDeviceInfo:
    """One HID interface as reported by hidapi enumeration.

    Attributes:
        path: Transport path used to open the interface
        vendor_id: USB Vendor ID
        product_id: USB Product ID
        interface: Interface number (-1 when the platform does not report it)
        usage_page: HID usage page (0 when unknown)
        usage: HID usage (0 when unknown)
        product_string: USB product string, if available
        serial_number: USB serial string, if available
    """
    path: bytes
    vendor_id: int
    product_id: int
    interface: int = -1
    usage_page: int = 0
    usage: int = 0
    product_string: Optional[str] = None
    serial_number: Optional[str] = None

    @classmethod
    def from_hid_dict(cls, info: Dict[str, Any]) -> HidDeviceInfo:
        """Build from a hidapi ``hid.enumerate()`` entry."""
        path = info.get("path", b"")
        if isinstance(path, str):
            path = path.encode("utf-8")
        return cls(
            path=path,
            vendor_id=info.get("vendor_id", 0),
            product_id=info.get("product_id", 0),
            interface=info.get("interface_number", -1),
            usage_page=info.get("usage_page", 0),
            usage=info.get("usage", 0),
            product_string=info.get("product_string") or None,
            serial_number=info.get("serial_number") or None,
        )

    @property
    def display_path(self) -> str:
        return self.path.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ConnectedDevice:
    """A physical device matched to its registry descriptor.

    Attributes:
        descriptor: Matching registry entry
        path: Transport path of the matched HID interface
        live: False once enumeration stops reporting the path
    """
    descriptor: DeviceDescriptor
    path: bytes
    live: bool = True

    @property
    def key(self) -> Tuple[bytes, DeviceDescriptor]:
        return (self.path, self.descriptor)

    @property
    def name(self) -> str:
        return self.descriptor.name

    def mark_stale(self) -> ConnectedDevice:
        return replace(self, live=False)


@dataclass(frozen=True)
class BatteryState:
    """Normalized battery reading.

    Compared by value: two readings with equal fields are the same state.

    Attributes:
        percentage: Charge level 0-100, or None before the first reading
        charging: Whether the device reports it is charging
        reachable: False once consecutive failures reach the threshold
    """
    percentage: Optional[int] = None
    charging: bool = False
    reachable: bool = True

    @classmethod
    def unknown(cls) -> BatteryState:
        """Placeholder state before the first successful query."""
        return cls(percentage=None, charging=False, reachable=True)

    @property
    def is_known(self) -> bool:
        return self.percentage is not None

    def mark_unreachable(self) -> BatteryState:
        """Return last-known values flagged as unreachable."""
        return replace(self, reachable=False)


class SessionState(Enum):
    """Lifecycle state of a device session."""
    IDLE = "idle"
    QUERYING = "querying"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNREACHABLE = "unreachable"


class EventKind(Enum):
    """Type of event emitted to the presentation layer."""
    CONNECTED = "connected"
    CHANGED = "changed"
    REMOVED = "removed"


class AlertKind(Enum):
    """Battery notifications worth surfacing to the user."""
    BATTERY_LOW = "battery_low"
    BATTERY_CRITICAL = "battery_critical"
    BATTERY_FULL = "battery_full"


@dataclass(frozen=True)
class BatteryEvent:
    """Change event delivered to the presentation layer.

    Attributes:
        kind: CONNECTED, CHANGED or REMOVED
        device_name: Human-readable device name
        path: Transport path identifying the device
        state: Battery state at emission time
        alert: Optional notification derived from the transition
    """
    kind: EventKind
    device_name: str
    path: bytes
    state: BatteryState
    alert: Optional[AlertKind] = None

    @property
    def summary(self) -> str:
        """Tooltip text, e.g. ``'Razer Viper Ultimate: 80%'``."""
        if self.state.percentage is None:
            return f"{self.device_name}: unknown"
        return f"{self.device_name}: {self.state.percentage}%"

    def as_dict(self) -> Dict[str, Any]:
        """Presentation payload."""
        return {
            "device_name": self.device_name,
            "percentage": self.state.percentage,
            "charging": self.state.charging,
            "reachable": self.state.reachable,
        }
