"""Error taxonomy for the battery reader.

Transport and protocol errors are always recovered at the device session
boundary. Configuration errors mark devices that are simply ignored.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from .protocol.frame import Status


class RazerBatteryError(RuntimeError):
    """Base error for razer_battery."""
    pass


class TransportError(RazerBatteryError):
    """Raised when the HID transport fails (device absent, timeout, OS I/O)."""
    pass


class ConfigurationError(RazerBatteryError):
    """Raised when a device or registry row cannot be matched or is invalid."""
    pass


class ProtocolError(RazerBatteryError):
    """Base class for rejected response frames."""
    pass


class TruncatedFrameError(ProtocolError):
    """Raised when a report is shorter than the fixed frame size."""
    pass


class ChecksumError(ProtocolError):
    """Raised when the recomputed checksum does not match the frame."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Checksum mismatch: expected 0x{expected:02X}, got 0x{actual:02X}")
        self.expected = expected
        self.actual = actual


class StatusError(ProtocolError):
    """Raised when the device answers with a status other than success."""

    def __init__(self, status: Union[Status, int], message: Optional[str] = None):
        super().__init__(message or f"Unexpected response status: {status!r}")
        self.status = status


class TransactionIdError(ProtocolError):
    """Raised when the response transaction id differs from the request's."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Transaction id mismatch: expected 0x{expected:02X}, got 0x{actual:02X}"
        )
        self.expected = expected
        self.actual = actual


class CommandMismatchError(ProtocolError):
    """Raised when the response echoes a different command class/id."""
    pass
