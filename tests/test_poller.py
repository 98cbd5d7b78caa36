"""Unit tests for BatteryPoller enumeration, change detection and lifecycle."""
import threading
import time
import unittest

from razer_battery.config import PollerConfig
from razer_battery.device.poller import BatteryPoller
from razer_battery.errors import TransportError
from razer_battery.models import AlertKind, BatteryState, EventKind, SessionState

from fake_transport import FakeTransport, hid_info

VIPER = b"viper-path"
NAGA = b"naga-path"


def make_config(**kwargs):
    kwargs.setdefault("check_usage", True)
    return PollerConfig(**kwargs)


class TestPollerSync(unittest.TestCase):
    """Test enumeration and session lifecycle."""

    def setUp(self):
        self.transport = FakeTransport([hid_info(0x007B, VIPER)])
        self.poller = BatteryPoller(self.transport, make_config())

    def test_connected_event_for_new_device(self):
        events = self.poller.enumerate_and_sync()

        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].kind, EventKind.CONNECTED)
        self.assertEqual(events[0].path, VIPER)
        self.assertEqual(events[0].device_name, "Razer Viper Ultimate (Wireless)")
        self.assertEqual(events[0].state, BatteryState.unknown())
        self.assertEqual(self.poller.device_paths, [VIPER])
        self.assertEqual(self.poller.session_state(VIPER), SessionState.IDLE)

    def test_repeated_enumeration_is_silent(self):
        self.poller.enumerate_and_sync()
        self.assertEqual(self.poller.enumerate_and_sync(), [])
        self.assertEqual(len(self.poller.drain_events()), 1)

    def test_removed_event_when_device_disappears(self):
        self.poller.enumerate_and_sync()
        self.poller.tick()
        self.transport.devices = []

        events = self.poller.enumerate_and_sync()

        self.assertEqual([e.kind for e in events], [EventKind.REMOVED])
        self.assertEqual(events[0].state.percentage, 100)
        self.assertEqual(self.poller.device_paths, [])
        self.assertNotIn(VIPER, self.poller.snapshot())
        self.assertEqual(self.transport.closed, [VIPER])

    def test_replug_emits_connected_again(self):
        self.poller.enumerate_and_sync()
        self.transport.devices = []
        self.poller.enumerate_and_sync()
        self.transport.devices = [hid_info(0x007B, VIPER)]

        events = self.poller.enumerate_and_sync()

        self.assertEqual([e.kind for e in events], [EventKind.CONNECTED])

    def test_unsupported_interfaces_ignored(self):
        self.transport.devices.append(hid_info(0x007B, b"kbd", interface=1, usage=0x0006))
        self.transport.devices.append(hid_info(0xC52B, b"other", vendor_id=0x046D))
        self.poller.enumerate_and_sync()
        self.assertEqual(self.poller.device_paths, [VIPER])

    def test_enumeration_failure_keeps_sessions(self):
        self.poller.enumerate_and_sync()
        self.transport.enumerate_error = TransportError("backend gone")

        with self.assertLogs("razer_battery.device.poller", level="ERROR"):
            events = self.poller.enumerate_and_sync()

        self.assertEqual(events, [])
        self.assertEqual(self.poller.device_paths, [VIPER])

    def test_device_name(self):
        self.poller.enumerate_and_sync()
        self.assertEqual(self.poller.device_name(VIPER), "Razer Viper Ultimate (Wireless)")
        self.assertIsNone(self.poller.device_name(b"missing"))


class TestPollerTick(unittest.TestCase):
    """Test change detection across ticks."""

    def setUp(self):
        self.transport = FakeTransport([hid_info(0x007B, VIPER), hid_info(0x0090, NAGA)])
        self.transport.levels[VIPER] = 204
        self.transport.levels[NAGA] = 128
        self.poller = BatteryPoller(self.transport, make_config(unreachable_threshold=3))
        self.poller.enumerate_and_sync()
        self.poller.drain_events()

    def test_first_tick_emits_changed_per_device(self):
        events = self.poller.tick()

        self.assertEqual([e.kind for e in events], [EventKind.CHANGED, EventKind.CHANGED])
        by_path = {e.path: e.state for e in events}
        self.assertEqual(by_path[VIPER], BatteryState(80, False, True))
        self.assertEqual(by_path[NAGA], BatteryState(50, False, True))

    def test_identical_ticks_emit_once(self):
        first = self.poller.tick()
        second = self.poller.tick()
        third = self.poller.tick()

        self.assertEqual(len(first), 2)
        self.assertEqual(second, [])
        self.assertEqual(third, [])
        self.assertEqual(len(self.poller.drain_events()), 2)

    def test_only_changed_device_emits(self):
        self.poller.tick()
        self.transport.levels[NAGA] = 127  # still 50% after rounding
        self.assertEqual(self.poller.tick(), [])

        self.transport.charging[NAGA] = True
        events = self.poller.tick()
        self.assertEqual(len(events), 1)
        self.assertTrue(events[0].state.charging)

    def test_unreachable_emitted_exactly_once(self):
        """Crossing the threshold emits one event; further failures are silent."""
        self.poller.tick()
        self.transport.failing.add(VIPER)

        emitted = []
        for _ in range(6):
            emitted.extend(self.poller.tick(paths=[VIPER]))

        self.assertEqual(len(emitted), 1)
        self.assertEqual(emitted[0].state, BatteryState(80, False, False))
        self.assertEqual(self.poller.session_state(VIPER), SessionState.UNREACHABLE)

    def test_degraded_device_reported_stale(self):
        """A failed cycle keeps the last-known value and flags it stale."""
        self.poller.tick()
        self.assertFalse(self.poller.is_stale(VIPER))
        self.transport.failing.add(VIPER)

        self.assertEqual(self.poller.tick(paths=[VIPER]), [])

        self.assertTrue(self.poller.is_stale(VIPER))
        self.assertFalse(self.poller.is_stale(NAGA))
        self.assertEqual(self.poller.snapshot()[VIPER], BatteryState(80, False, True))
        self.assertFalse(self.poller.is_stale(b"unknown"))

        self.transport.failing.discard(VIPER)
        self.poller.tick(paths=[VIPER])
        self.assertFalse(self.poller.is_stale(VIPER))

    def test_recovery_emits_reachable_state(self):
        self.poller.tick()
        self.transport.failing.add(VIPER)
        for _ in range(3):
            self.poller.tick(paths=[VIPER])

        self.transport.failing.discard(VIPER)
        events = self.poller.tick(paths=[VIPER])

        self.assertEqual(len(events), 1)
        self.assertTrue(events[0].state.reachable)

    def test_tick_subset(self):
        events = self.poller.tick(paths=[NAGA, b"unknown"])
        self.assertEqual([e.path for e in events], [NAGA])

    def test_low_battery_alert(self):
        self.poller.tick()
        self.transport.levels[VIPER] = 38  # 15%

        events = self.poller.tick(paths=[VIPER])

        self.assertEqual(events[0].alert, AlertKind.BATTERY_LOW)

    def test_first_reading_critical_alert(self):
        self.transport.levels[VIPER] = 10  # 4%
        events = self.poller.tick(paths=[VIPER])
        self.assertEqual(events[0].alert, AlertKind.BATTERY_CRITICAL)

    def test_first_reading_in_low_range_is_silent(self):
        self.transport.levels[VIPER] = 31  # 12%
        events = self.poller.tick(paths=[VIPER])
        self.assertIsNone(events[0].alert)

    def test_snapshot(self):
        self.poller.tick()
        snapshot = self.poller.snapshot()
        self.assertEqual(snapshot[VIPER].percentage, 80)
        self.assertEqual(snapshot[NAGA].percentage, 50)

    def test_refresh_new_devices(self):
        self.transport.devices.append(hid_info(0x00A6, b"viper-v2"))
        connected = self.poller.enumerate_and_sync()

        events = self.poller.refresh_new_devices(connected)

        self.assertEqual([e.path for e in events], [b"viper-v2"])
        self.assertEqual(self.poller.refresh_new_devices([]), [])

    def test_force_refresh_inline_when_not_running(self):
        self.poller.tick()
        self.transport.levels[VIPER] = 255

        events = self.poller.force_refresh()

        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].state.percentage, 100)


class TestPollerEvents(unittest.TestCase):
    """Test event queue and subscriber delivery."""

    def setUp(self):
        self.transport = FakeTransport([hid_info(0x007B, VIPER)])

    def test_callbacks_in_emission_order(self):
        poller = BatteryPoller(self.transport, make_config())
        received = []
        poller.subscribe(received.append)

        poller.enumerate_and_sync()
        poller.tick()

        self.assertEqual([e.kind for e in received], [EventKind.CONNECTED, EventKind.CHANGED])

    def test_unsubscribe(self):
        poller = BatteryPoller(self.transport, make_config())
        received = []
        unsubscribe = poller.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        poller.enumerate_and_sync()

        self.assertEqual(received, [])

    def test_callback_error_does_not_stop_delivery(self):
        poller = BatteryPoller(self.transport, make_config())
        received = []

        def broken(event):
            raise RuntimeError("tray crashed")

        poller.subscribe(broken)
        poller.subscribe(received.append)

        with self.assertLogs("razer_battery.device.poller", level="ERROR"):
            poller.enumerate_and_sync()

        self.assertEqual(len(received), 1)
        self.assertEqual(len(poller.drain_events()), 1)

    def test_queue_overflow_drops_oldest(self):
        self.transport.devices = [hid_info(0x007B, VIPER), hid_info(0x0090, NAGA)]
        poller = BatteryPoller(self.transport, make_config(event_queue_size=2))

        poller.enumerate_and_sync()
        with self.assertLogs("razer_battery.device.poller", level="WARNING"):
            poller.tick()

        events = poller.drain_events()
        self.assertEqual(len(events), 2)
        self.assertEqual([e.kind for e in events], [EventKind.CHANGED, EventKind.CHANGED])

    def test_get_event_empty(self):
        poller = BatteryPoller(self.transport, make_config())
        self.assertIsNone(poller.get_event(block=False))
        self.assertIsNone(poller.get_event(timeout=0.01))


class BlockingTransport(FakeTransport):
    """FakeTransport whose exchanges wait until released."""

    def __init__(self, devices):
        super().__init__(devices)
        self.entered = threading.Event()
        self.release = threading.Event()

    def exchange(self, handle, frame, timeout):
        self.entered.set()
        self.release.wait(5.0)
        return super().exchange(handle, frame, timeout)


class TestPollerReadersDuringTick(unittest.TestCase):
    """Readers must not wait on device I/O in progress."""

    def setUp(self):
        self.transport = BlockingTransport([hid_info(0x007B, VIPER), hid_info(0x0090, NAGA)])
        self.poller = BatteryPoller(self.transport, make_config())
        self.poller.enumerate_and_sync()
        self.worker = threading.Thread(target=self.poller.tick, daemon=True)

    def tearDown(self):
        self.transport.release.set()
        self.worker.join(timeout=5.0)

    def test_snapshot_not_blocked_by_exchange(self):
        self.worker.start()
        self.assertTrue(self.transport.entered.wait(2.0))

        start = time.monotonic()
        snapshot = self.poller.snapshot()
        paths = self.poller.device_paths
        name = self.poller.device_name(VIPER)
        state = self.poller.session_state(VIPER)
        elapsed = time.monotonic() - start

        self.assertLess(elapsed, 0.5)
        self.assertEqual(snapshot[VIPER], BatteryState.unknown())
        self.assertEqual(sorted(paths), sorted([VIPER, NAGA]))
        self.assertEqual(name, "Razer Viper Ultimate (Wireless)")
        self.assertEqual(state, SessionState.QUERYING)

    def test_tick_result_visible_after_release(self):
        self.worker.start()
        self.assertTrue(self.transport.entered.wait(2.0))
        self.transport.release.set()
        self.worker.join(timeout=5.0)

        self.assertEqual(self.poller.snapshot()[VIPER].percentage, 100)


class TestPollerThread(unittest.TestCase):
    """Test background loop lifecycle."""

    def setUp(self):
        self.transport = FakeTransport([hid_info(0x007B, VIPER)])
        self.transport.levels[VIPER] = 204
        self.config = make_config(enumerate_interval=0.05, battery_interval=60.0, query_timeout=0.1)
        self.poller = BatteryPoller(self.transport, self.config)

    def tearDown(self):
        self.poller.stop()

    def wait_for(self, kind, timeout=2.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            event = self.poller.get_event(timeout=0.05)
            if event is not None and event.kind is kind:
                return event
        self.fail(f"No {kind} event within {timeout}s")

    def test_start_and_stop(self):
        self.poller.start()
        self.assertTrue(self.poller.is_running)

        self.wait_for(EventKind.CONNECTED)
        changed = self.wait_for(EventKind.CHANGED)
        self.assertEqual(changed.state.percentage, 80)

        self.poller.stop()
        self.assertFalse(self.poller.is_running)
        self.assertFalse(any(t.name == "BatteryPoller" and t.is_alive()
                             for t in threading.enumerate()))

    def test_start_twice_keeps_single_thread(self):
        self.poller.start()
        thread = self.poller._thread
        self.poller.start()
        self.assertIs(self.poller._thread, thread)

    def test_hotplug_detected_by_loop(self):
        self.poller.start()
        self.wait_for(EventKind.CHANGED)

        self.transport.devices = []
        removed = self.wait_for(EventKind.REMOVED)
        self.assertEqual(removed.path, VIPER)

    def test_force_refresh_wakes_loop(self):
        self.poller.start()
        self.wait_for(EventKind.CHANGED)
        self.transport.levels[VIPER] = 255

        self.assertEqual(self.poller.force_refresh(), [])

        changed = self.wait_for(EventKind.CHANGED)
        self.assertEqual(changed.state.percentage, 100)

    def test_stop_releases_handles(self):
        self.poller.start()
        self.wait_for(EventKind.CHANGED)
        self.poller.stop()
        self.assertIn(VIPER, self.transport.closed)

    def test_context_manager(self):
        with BatteryPoller(self.transport, self.config) as poller:
            self.assertTrue(poller.is_running)
        self.assertFalse(poller.is_running)


if __name__ == '__main__':
    unittest.main()
