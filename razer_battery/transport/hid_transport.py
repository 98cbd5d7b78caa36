"""hidapi transport for Razer feature reports.

Requests go out with ``send_feature_report`` and responses come back via
``get_feature_report`` on report id 0. The device needs a short settle delay
between the two, and may answer BUSY while it is still working on the
command; the response is re-read until it is no longer busy or the timeout
expires.
"""
from __future__ import annotations

import logging
import time
from typing import Any, List

import hid

from ..errors import TransportError
from ..models import HidDeviceInfo
from ..protocol import WIRE_SIZE, CommandFrame, ResponseFrame, Status
from ..protocol.frame import REPORT_ID, hex_dump
from .base import Transport

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.05  # seconds between write and read
BUSY_RETRY_DELAY = 0.02  # seconds


class HidTransport(Transport):
    """Transport backed by the ``hidapi`` package.

    Example:
        >>> transport = HidTransport()
        >>> infos = transport.enumerate()
        >>> handle = transport.open(infos[0].path)
        >>> response = transport.exchange(handle, frame, timeout=1.0)
        >>> transport.close(handle)
    """

    def __init__(self, settle_delay: float = DEFAULT_SETTLE_DELAY,
                 vendor_id: int = 0, product_id: int = 0):
        """Initialize transport.

        Args:
            settle_delay: Seconds to wait between sending and reading a report
            vendor_id: Restrict enumeration to this VID (0 for all)
            product_id: Restrict enumeration to this PID (0 for all)
        """
        self._settle_delay = settle_delay
        self._vendor_id = vendor_id
        self._product_id = product_id

    def enumerate(self) -> List[HidDeviceInfo]:
        try:
            entries = hid.enumerate(self._vendor_id, self._product_id)
        except (OSError, ValueError) as e:
            raise TransportError(f"HID enumeration failed: {e}") from e
        return [HidDeviceInfo.from_hid_dict(entry) for entry in entries]

    def open(self, path: bytes) -> Any:
        device = hid.device()
        try:
            device.open_path(path)
        except (OSError, ValueError) as e:
            raise TransportError(f"Failed to open {path!r}: {e}") from e
        logger.debug(f"Opened HID interface {path!r}")
        return device

    def exchange(self, handle: Any, frame: CommandFrame, timeout: float) -> ResponseFrame:
        if handle is None:
            raise TransportError("Device not open")

        deadline = time.monotonic() + timeout
        report = frame.to_report()
        logger.debug(f"TX {hex_dump(report)}")

        try:
            handle.send_feature_report(report)
        except (OSError, ValueError) as e:
            raise TransportError(f"Feature report write failed: {e}") from e

        time.sleep(self._settle_delay)

        while True:
            response = self._read_response(handle)
            if response.status != Status.BUSY:
                return response
            if time.monotonic() >= deadline:
                raise TransportError(f"Device still busy after {timeout}s")
            time.sleep(BUSY_RETRY_DELAY)

    def close(self, handle: Any) -> None:
        if handle is None:
            return
        try:
            handle.close()
        except (OSError, ValueError) as e:
            logger.warning(f"Error closing HID handle: {e}")

    # Internal methods

    def _read_response(self, handle: Any) -> ResponseFrame:
        try:
            data = handle.get_feature_report(REPORT_ID, WIRE_SIZE)
        except (OSError, ValueError) as e:
            raise TransportError(f"Feature report read failed: {e}") from e

        if not data:
            raise TransportError("Empty feature report")

        raw = bytes(data)
        logger.debug(f"RX {hex_dump(raw)}")
        return ResponseFrame.from_bytes(raw)
