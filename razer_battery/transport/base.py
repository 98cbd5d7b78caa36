"""Abstract base class for the HID transport layer.

The Transport interface is the only place the core touches hardware. It is
injected into the poller so tests and alternative backends can replace it.

Key principles:
- Blocking request/response exchange over one opened handle
- I/O failures surface as TransportError; the core never inspects causes
- Handles are opaque to the caller
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List

from ..models import HidDeviceInfo
from ..protocol import CommandFrame, ResponseFrame


class Transport(ABC):
    """Abstract HID transport.

    Transports are responsible for:
    1. Enumerating HID interfaces
    2. Opening and closing interface handles
    3. Exchanging one feature report request for one response
    """

    @abstractmethod
    def enumerate(self) -> List[HidDeviceInfo]:
        """List currently present HID interfaces.

        Raises:
            TransportError: If enumeration fails.
        """
        pass

    @abstractmethod
    def open(self, path: bytes) -> Any:
        """Open the HID interface at ``path``.

        Returns:
            Opaque handle passed back to exchange() and close()

        Raises:
            TransportError: If the interface cannot be opened.
        """
        pass

    @abstractmethod
    def exchange(self, handle: Any, frame: CommandFrame, timeout: float) -> ResponseFrame:
        """Send a command frame and read back the response frame.

        Raises:
            TransportError: On I/O failure, timeout or empty read.
            ProtocolError: If the report is shorter than a frame.
        """
        pass

    @abstractmethod
    def close(self, handle: Any) -> None:
        """Close a handle. Should be safe to call on a failed handle."""
        pass
