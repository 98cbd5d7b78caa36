"""Per-device query session.

A DeviceSession binds one connected device to its registry descriptor and
runs the build -> exchange -> decode cycle for it. It owns the device's HID
handle and its last-known BatteryState; nothing else mutates either.

State machine:

    IDLE -> QUERYING -> HEALTHY | DEGRADED | UNREACHABLE

Every query re-attempts regardless of the previous outcome, so a device
recovers as soon as one exchange succeeds.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..config import DEFAULT_QUERY_TIMEOUT, DEFAULT_UNREACHABLE_THRESHOLD
from ..errors import ProtocolError, TransportError
from ..models import BatteryState, ConnectedDevice, SessionState
from ..protocol import (
    decode_battery_response,
    encode_battery_query,
    encode_charging_query,
)
from ..transport.base import Transport

logger = logging.getLogger(__name__)


class DeviceSession:
    """Query/decode cycle and failure tracking for one device.

    Example:
        >>> session = DeviceSession(device, transport)
        >>> state = session.query()
        >>> state.percentage, state.charging, state.reachable
        (80, False, True)
        >>> session.close()
    """

    def __init__(
        self,
        device: ConnectedDevice,
        transport: Transport,
        unreachable_threshold: int = DEFAULT_UNREACHABLE_THRESHOLD,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT,
    ):
        """Initialize session.

        Args:
            device: Matched device this session owns
            transport: Transport used to open and talk to the device
            unreachable_threshold: Consecutive failures before UNREACHABLE
            query_timeout: Timeout for each request/response exchange
        """
        self._device = device
        self._transport = transport
        self._threshold = unreachable_threshold
        self._timeout = query_timeout

        self._handle: Optional[Any] = None
        self._state = SessionState.IDLE
        self._battery = BatteryState.unknown()
        self._failure_count = 0
        self._last_error: Optional[Exception] = None

    # --- Properties ---

    @property
    def device(self) -> ConnectedDevice:
        return self._device

    @property
    def name(self) -> str:
        return self._device.name

    @property
    def path(self) -> bytes:
        return self._device.path

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def last_state(self) -> BatteryState:
        """Last-known battery state (placeholder before the first success)."""
        return self._battery

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    @property
    def is_stale(self) -> bool:
        """True while last_state comes from an earlier cycle than the latest one."""
        return self._state in (SessionState.DEGRADED, SessionState.UNREACHABLE)

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    # --- Query cycle ---

    def query(self) -> BatteryState:
        """Run one query cycle.

        Never raises for transport or protocol failures; those are counted
        and reflected in the returned state.

        Returns:
            Fresh BatteryState on success, otherwise the last-known state
            (flagged unreachable once the threshold is reached).
        """
        self._state = SessionState.QUERYING
        descriptor = self._device.descriptor

        try:
            handle = self._ensure_open()
            battery_request = encode_battery_query(descriptor)
            battery_response = self._transport.exchange(handle, battery_request, self._timeout)
            charging_request = encode_charging_query(descriptor)
            charging_response = self._transport.exchange(handle, charging_request, self._timeout)
            battery = decode_battery_response(
                descriptor,
                battery_response,
                charging_response=charging_response,
                request=battery_request,
            )
        except (TransportError, ProtocolError, OSError) as e:
            return self._record_failure(e)

        if self._failure_count:
            logger.info(f"{self.name}: recovered after {self._failure_count} failed queries")

        self._battery = battery
        self._failure_count = 0
        self._last_error = None
        self._state = SessionState.HEALTHY
        logger.info(f"{self.name} battery level: {battery.percentage}%")
        logger.info(f"{self.name} charging status: {battery.charging}")
        return battery

    def close(self) -> None:
        """Release the HID handle. Safe to call multiple times."""
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            self._transport.close(handle)
        except (TransportError, OSError) as e:
            logger.warning(f"{self.name}: error closing handle: {e}")

    def mark_removed(self) -> None:
        """Mark the underlying device stale and release its handle."""
        self._device = self._device.mark_stale()
        self.close()

    # Internal methods

    def _ensure_open(self) -> Any:
        if self._handle is None:
            self._handle = self._transport.open(self._device.path)
        return self._handle

    def _record_failure(self, error: Exception) -> BatteryState:
        """Count a failed cycle and move to DEGRADED or UNREACHABLE."""
        self._failure_count += 1
        self._last_error = error

        # Reopen on the next cycle; the handle may be dead after unplug
        self.close()

        kind = "protocol" if isinstance(error, ProtocolError) else "transport"
        logger.warning(
            f"{self.name}: {kind} failure {self._failure_count}/{self._threshold} "
            f"({type(error).__name__}: {error})"
        )

        if self._failure_count >= self._threshold:
            if self._battery.reachable:
                logger.warning(f"{self.name}: marking unreachable")
            self._battery = self._battery.mark_unreachable()
            self._state = SessionState.UNREACHABLE
        else:
            self._state = SessionState.DEGRADED

        return self._battery
