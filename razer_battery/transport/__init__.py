"""Transport layer for HID feature report exchange."""

from .base import Transport
from .hid_transport import HidTransport

__all__ = ["Transport", "HidTransport"]
