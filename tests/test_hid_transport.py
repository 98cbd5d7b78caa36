"""Tests for HidTransport with a mocked hidapi module."""
import unittest
from unittest.mock import MagicMock, patch

from razer_battery.errors import TransportError, TruncatedFrameError
from razer_battery.models import DeviceDescriptor, TransactionVariant
from razer_battery.protocol import Status, encode_battery_query
from razer_battery.transport.hid_transport import HidTransport

from fake_transport import make_response

DESCRIPTOR = DeviceDescriptor(
    name="Razer DeathAdder V3 Pro (Wireless)",
    vendor_id=0x1532,
    product_id=0x00B7,
    interface=0,
    usage_page=0x0001,
    usage=0x0002,
    variant=TransactionVariant.TID_1F,
)


def wire(frame):
    """hidapi returns a list of ints including the report id."""
    return [0x00] + list(frame.data)


class TestHidTransportEnumerate(unittest.TestCase):
    """Test enumeration through hid.enumerate."""

    @patch('razer_battery.transport.hid_transport.hid')
    def test_enumerate(self, mock_hid):
        mock_hid.enumerate.return_value = [{
            "path": b"/dev/hidraw2",
            "vendor_id": 0x1532,
            "product_id": 0x00B7,
            "interface_number": 0,
            "usage_page": 0,
            "usage": 0,
        }]

        infos = HidTransport(vendor_id=0x1532).enumerate()

        mock_hid.enumerate.assert_called_once_with(0x1532, 0)
        self.assertEqual(len(infos), 1)
        self.assertEqual(infos[0].path, b"/dev/hidraw2")
        self.assertEqual(infos[0].product_id, 0x00B7)

    @patch('razer_battery.transport.hid_transport.hid')
    def test_enumerate_failure_wrapped(self, mock_hid):
        mock_hid.enumerate.side_effect = OSError("hidapi init failed")
        with self.assertRaises(TransportError):
            HidTransport().enumerate()


class TestHidTransportOpenClose(unittest.TestCase):
    """Test opening and closing HID handles."""

    @patch('razer_battery.transport.hid_transport.hid')
    def test_open_path(self, mock_hid):
        device = MagicMock()
        mock_hid.device.return_value = device

        handle = HidTransport().open(b"/dev/hidraw2")

        self.assertIs(handle, device)
        device.open_path.assert_called_once_with(b"/dev/hidraw2")

    @patch('razer_battery.transport.hid_transport.hid')
    def test_open_failure_wrapped(self, mock_hid):
        mock_hid.device.return_value.open_path.side_effect = OSError("open failed")
        with self.assertRaises(TransportError):
            HidTransport().open(b"/dev/hidraw2")

    def test_close_error_logged(self):
        handle = MagicMock()
        handle.close.side_effect = OSError("already closed")
        with self.assertLogs("razer_battery.transport.hid_transport", level="WARNING"):
            HidTransport().close(handle)

    def test_close_none(self):
        HidTransport().close(None)


class TestHidTransportExchange(unittest.TestCase):
    """Test feature report exchange."""

    def setUp(self):
        self.transport = HidTransport(settle_delay=0)
        self.handle = MagicMock()
        self.request = encode_battery_query(DESCRIPTOR)

    def test_exchange_sends_wire_report(self):
        self.handle.get_feature_report.return_value = wire(make_response(self.request, 128))

        response = self.transport.exchange(self.handle, self.request, timeout=1.0)

        sent = self.handle.send_feature_report.call_args.args[0]
        self.assertEqual(len(sent), 91)
        self.assertEqual(sent[0], 0x00)
        self.assertEqual(sent[1:], self.request.data)
        self.handle.get_feature_report.assert_called_once_with(0x00, 91)
        self.assertEqual(response.status, Status.SUCCESS)
        self.assertEqual(response.argument(1), 128)

    def test_busy_response_is_reread(self):
        self.handle.get_feature_report.side_effect = [
            wire(make_response(self.request, status=Status.BUSY)),
            wire(make_response(self.request, 200)),
        ]

        response = self.transport.exchange(self.handle, self.request, timeout=1.0)

        self.assertEqual(self.handle.get_feature_report.call_count, 2)
        self.assertEqual(response.argument(1), 200)

    def test_busy_until_timeout(self):
        self.handle.get_feature_report.return_value = wire(
            make_response(self.request, status=Status.BUSY)
        )
        with self.assertRaises(TransportError):
            self.transport.exchange(self.handle, self.request, timeout=0)

    def test_failure_status_returned_for_codec(self):
        """Non-busy statuses are left to the codec to reject."""
        self.handle.get_feature_report.return_value = wire(
            make_response(self.request, status=Status.NOT_SUPPORTED)
        )
        response = self.transport.exchange(self.handle, self.request, timeout=1.0)
        self.assertEqual(response.status, Status.NOT_SUPPORTED)

    def test_write_failure_wrapped(self):
        self.handle.send_feature_report.side_effect = OSError("device disconnected")
        with self.assertRaises(TransportError):
            self.transport.exchange(self.handle, self.request, timeout=1.0)

    def test_read_failure_wrapped(self):
        self.handle.get_feature_report.side_effect = ValueError("read error")
        with self.assertRaises(TransportError):
            self.transport.exchange(self.handle, self.request, timeout=1.0)

    def test_empty_read(self):
        self.handle.get_feature_report.return_value = []
        with self.assertRaises(TransportError):
            self.transport.exchange(self.handle, self.request, timeout=1.0)

    def test_short_read_is_protocol_error(self):
        self.handle.get_feature_report.return_value = [0x00] * 40
        with self.assertRaises(TruncatedFrameError):
            self.transport.exchange(self.handle, self.request, timeout=1.0)

    def test_exchange_without_handle(self):
        with self.assertRaises(TransportError):
            self.transport.exchange(None, self.request, timeout=1.0)


if __name__ == '__main__':
    unittest.main()
