"""Battery poller that tracks connected devices and emits change events.

The BatteryPoller enumerates HID interfaces, keeps one DeviceSession per
matched device path and periodically queries every session. It emits an
event only when a device appears, disappears or its BatteryState changes
by value, so repeated identical readings are silent.

Events are delivered in emission order to a bounded queue and to
subscribed callbacks. Callbacks run on the polling thread and must not
block; a presentation layer should queue or mirror what it receives.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional

from ..alerts import check_alert
from ..config import PollerConfig
from ..errors import TransportError
from ..models import (
    BatteryEvent,
    BatteryState,
    DeviceDescriptor,
    EventKind,
    SessionState,
)
from ..registry import DEVICE_REGISTRY
from ..transport.base import Transport
from .finder import find_devices
from .session import DeviceSession

logger = logging.getLogger(__name__)


class BatteryPoller:
    """Enumeration, session lifecycle and tick loop for all devices.

    Can be driven manually (enumerate_and_sync() / tick()) or run in a
    background thread with start() / stop().

    Example:
        >>> poller = BatteryPoller(HidTransport())
        >>> poller.subscribe(lambda event: print(event.summary))
        >>> poller.start()
        >>> # Later...
        >>> poller.stop()
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[PollerConfig] = None,
        registry: Iterable[DeviceDescriptor] = DEVICE_REGISTRY,
    ):
        """Initialize poller.

        Args:
            transport: HID transport used for enumeration and exchanges
            config: Polling settings, defaults to PollerConfig()
            registry: Descriptor table to match devices against
        """
        self._transport = transport
        self._config = config or PollerConfig()
        self._registry = tuple(registry)

        # Sessions keyed by device path; the tick loop is their only writer
        self._sessions: Dict[bytes, DeviceSession] = {}

        # Last state emitted per path, for change detection
        self._emitted: Dict[bytes, BatteryState] = {}

        # Outgoing events
        self._events: queue.Queue[BatteryEvent] = queue.Queue(
            maxsize=self._config.event_queue_size
        )
        self._callbacks: List[Callable[[BatteryEvent], None]] = []

        # Thread safety. _lock guards the session and emitted-state maps and
        # is never held across device I/O; _io_lock serializes query cycles.
        self._lock = threading.RLock()
        self._io_lock = threading.RLock()
        self._callback_lock = threading.Lock()

        # Background loop
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._refresh_requested = False

    # --- Properties ---

    @property
    def config(self) -> PollerConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def device_paths(self) -> List[bytes]:
        with self._lock:
            return list(self._sessions.keys())

    def device_name(self, path: bytes) -> Optional[str]:
        with self._lock:
            session = self._sessions.get(path)
            return session.name if session else None

    def session_state(self, path: bytes) -> Optional[SessionState]:
        with self._lock:
            session = self._sessions.get(path)
            return session.state if session else None

    def is_stale(self, path: bytes) -> bool:
        """True while the device's last query failed and its state is last-known."""
        with self._lock:
            session = self._sessions.get(path)
            return session.is_stale if session else False

    def snapshot(self) -> Dict[bytes, BatteryState]:
        """Last emitted battery state per device path.

        A degraded device keeps its last-known state here unchanged; use
        is_stale() to tell it apart from a fresh reading.
        """
        with self._lock:
            return dict(self._emitted)

    # --- Enumeration ---

    def enumerate_and_sync(self) -> List[BatteryEvent]:
        """Reconcile sessions with the devices currently present.

        Creates a session for every newly seen (path, descriptor) pair and
        removes sessions whose device disappeared, emitting CONNECTED and
        REMOVED events respectively.

        Returns:
            Events emitted by this call, in order.
        """
        with self._io_lock:
            try:
                devices = find_devices(
                    self._transport,
                    registry=self._registry,
                    check_usage=self._config.check_usage,
                )
            except TransportError as e:
                logger.error(f"Device enumeration failed: {e}")
                return []

            present = {device.path: device for device in devices}
            removed: List[DeviceSession] = []
            pending: List[BatteryEvent] = []

            with self._lock:
                for path, session in list(self._sessions.items()):
                    device = present.get(path)
                    if device is not None and device.descriptor == session.device.descriptor:
                        continue
                    del self._sessions[path]
                    self._emitted.pop(path, None)
                    removed.append(session)
                    pending.append(BatteryEvent(
                        kind=EventKind.REMOVED,
                        device_name=session.name,
                        path=path,
                        state=session.last_state,
                    ))

                for device in devices:
                    if device.path in self._sessions:
                        continue
                    session = DeviceSession(
                        device,
                        self._transport,
                        unreachable_threshold=self._config.unreachable_threshold,
                        query_timeout=self._config.query_timeout,
                    )
                    self._sessions[device.path] = session
                    self._emitted[device.path] = session.last_state
                    pending.append(BatteryEvent(
                        kind=EventKind.CONNECTED,
                        device_name=device.name,
                        path=device.path,
                        state=session.last_state,
                    ))

            for session in removed:
                session.mark_removed()

            for event in pending:
                if event.kind is EventKind.REMOVED:
                    logger.info(f"Device removed: {event.device_name}")
                else:
                    logger.info(f"New device: {event.device_name}")
                self._emit(event)

            return pending

    # --- Query cycle ---

    def tick(self, paths: Optional[Iterable[bytes]] = None) -> List[BatteryEvent]:
        """Query live sessions and emit events for changed states.

        Device I/O runs without holding the state lock, so readers such as
        snapshot() never wait on a slow exchange.

        Args:
            paths: Restrict the tick to these device paths; None queries all

        Returns:
            CHANGED events emitted by this call, in order.
        """
        with self._io_lock:
            with self._lock:
                if paths is None:
                    targets = list(self._sessions.values())
                else:
                    targets = [self._sessions[p] for p in paths if p in self._sessions]

            events: List[BatteryEvent] = []
            for session in targets:
                state = session.query()
                event = self._check_change(session, state)
                if event is not None:
                    events.append(self._emit(event))
            return events

    def refresh_new_devices(self, events: Iterable[BatteryEvent]) -> List[BatteryEvent]:
        """Query devices reported CONNECTED in ``events`` right away."""
        new_paths = [e.path for e in events if e.kind is EventKind.CONNECTED]
        if not new_paths:
            return []
        return self.tick(paths=new_paths)

    def force_refresh(self) -> List[BatteryEvent]:
        """Request an out-of-cycle tick.

        When the background loop is running the tick happens on the loop
        thread and this returns immediately with an empty list. Otherwise
        the tick runs inline and its events are returned.
        """
        if self.is_running and threading.current_thread() is not self._thread:
            self._refresh_requested = True
            self._wake_event.set()
            return []
        return self.tick()

    def _check_change(self, session: DeviceSession, state: BatteryState) -> Optional[BatteryEvent]:
        """Record ``state`` and build a CHANGED event if it differs from the last one emitted."""
        with self._lock:
            if session.path not in self._sessions:
                return None
            previous = self._emitted.get(session.path)
            if previous == state:
                return None
            self._emitted[session.path] = state

        return BatteryEvent(
            kind=EventKind.CHANGED,
            device_name=session.name,
            path=session.path,
            state=state,
            alert=check_alert(previous, state),
        )

    # --- Event feed ---

    def subscribe(self, callback: Callable[[BatteryEvent], None]) -> Callable[[], None]:
        """Subscribe to battery events.

        Args:
            callback: Function called with each BatteryEvent, in emission order

        Returns:
            Unsubscribe function
        """
        with self._callback_lock:
            self._callbacks.append(callback)

        def unsubscribe():
            with self._callback_lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def get_event(self, block: bool = True, timeout: Optional[float] = None) -> Optional[BatteryEvent]:
        """Pop the next queued event, or None if none arrived in time."""
        try:
            return self._events.get(block=block, timeout=timeout)
        except queue.Empty:
            return None

    def drain_events(self) -> List[BatteryEvent]:
        """Pop all queued events without blocking."""
        events = []
        while True:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                break
        return events

    def _emit(self, event: BatteryEvent) -> BatteryEvent:
        """Queue an event and notify subscribers."""
        try:
            self._events.put(event, block=False)
        except queue.Full:
            # Queue is full, drop oldest event to make room
            try:
                self._events.get_nowait()
                self._events.put(event, block=False)
                logger.warning("Event queue full, dropped oldest event")
            except (queue.Empty, queue.Full):
                pass

        with self._callback_lock:
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in event callback: {e}")

        if event.alert is not None:
            logger.info(f"{event.device_name}: {event.alert.value} ({event.state.percentage}%)")

        return event

    # --- Background loop ---

    def start(self) -> None:
        """Start the background polling thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._wake_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            daemon=True,
            name="BatteryPoller"
        )
        self._thread.start()
        logger.debug(
            f"Battery poller started (enumerate={self._config.enumerate_interval}s, "
            f"battery={self._config.battery_interval}s)"
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the background thread and release device handles.

        In-flight queries are allowed to finish; the loop exits at the top
        of its next iteration.

        Args:
            timeout: Seconds to wait for the thread; defaults to a little
                more than one query cycle
        """
        if timeout is None:
            timeout = self._config.query_timeout * 2 + 1.0

        self._stop_event.set()
        self._wake_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Battery poller thread did not stop in time")
                return
        self._thread = None

        with self._io_lock:
            with self._lock:
                sessions = list(self._sessions.values())
            for session in sessions:
                session.close()
        logger.debug("Battery poller stopped")

    def _run_loop(self) -> None:
        """Enumerate and tick on their intervals until stopped."""
        next_enumerate = 0.0
        next_battery = 0.0

        while not self._stop_event.is_set():
            now = time.monotonic()
            try:
                refresh = self._refresh_requested
                battery_due = refresh or now >= next_battery

                if now >= next_enumerate:
                    events = self.enumerate_and_sync()
                    next_enumerate = now + self._config.enumerate_interval
                    if not battery_due:
                        self.refresh_new_devices(events)

                if battery_due:
                    self._refresh_requested = False
                    self.tick()
                    next_battery = now + self._config.battery_interval
            except Exception as e:
                logger.error(f"Error in battery poller loop: {e}")

            wait = max(0.0, min(next_enumerate, next_battery) - time.monotonic())
            self._wake_event.wait(wait)
            self._wake_event.clear()

    def __enter__(self) -> BatteryPoller:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
