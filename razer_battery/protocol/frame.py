"""Razer HID feature report frame layout.

Every request and response is a fixed 90-byte report:

    offset  size  field
    0       1     status
    1       1     transaction id
    2       2     remaining packets (big endian)
    4       1     protocol type
    5       1     data size (argument length)
    6       1     command class
    7       1     command id
    8       80    arguments
    88      1     checksum (XOR of bytes 2..87)
    89      1     reserved

On the wire hidapi prepends the report id (0x00), giving 91 bytes.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from ..errors import ChecksumError, TruncatedFrameError

REPORT_ID = 0x00
FRAME_SIZE = 90
WIRE_SIZE = FRAME_SIZE + 1
ARGUMENTS_SIZE = 80

STATUS_OFFSET = 0
TRANSACTION_ID_OFFSET = 1
REMAINING_PACKETS_OFFSET = 2
PROTOCOL_TYPE_OFFSET = 4
DATA_SIZE_OFFSET = 5
COMMAND_CLASS_OFFSET = 6
COMMAND_ID_OFFSET = 7
ARGUMENTS_OFFSET = 8
CHECKSUM_OFFSET = 88
RESERVED_OFFSET = 89

# Checksum covers bytes [CHECKSUM_START, CHECKSUM_END)
CHECKSUM_START = 2
CHECKSUM_END = CHECKSUM_OFFSET

RESERVED_DEFAULT = 0x00


class Status(IntEnum):
    """Status byte values."""
    NEW = 0x00
    BUSY = 0x01
    SUCCESS = 0x02
    FAILURE = 0x03
    TIMEOUT = 0x04
    NOT_SUPPORTED = 0x05


def compute_checksum(data: bytes) -> int:
    """XOR of bytes 2..87 of a frame."""
    checksum = 0
    for byte in data[CHECKSUM_START:CHECKSUM_END]:
        checksum ^= byte
    return checksum


def hex_dump(data: bytes, max_bytes: int = 16) -> str:
    """Return a hex string of data, truncated to max_bytes."""
    shown = data[:max_bytes]
    hex_str = ' '.join(f'{b:02X}' for b in shown)
    if len(data) > max_bytes:
        hex_str += f' ... ({len(data)} bytes total)'
    return hex_str


@dataclass(frozen=True)
class Frame:
    """Immutable 90-byte report with field accessors."""
    data: bytes

    def __post_init__(self) -> None:
        if len(self.data) != FRAME_SIZE:
            raise TruncatedFrameError(
                f"Frame must be {FRAME_SIZE} bytes, got {len(self.data)}"
            )

    @property
    def status(self) -> int:
        return self.data[STATUS_OFFSET]

    @property
    def transaction_id(self) -> int:
        return self.data[TRANSACTION_ID_OFFSET]

    @property
    def remaining_packets(self) -> int:
        return int.from_bytes(
            self.data[REMAINING_PACKETS_OFFSET:PROTOCOL_TYPE_OFFSET], "big"
        )

    @property
    def protocol_type(self) -> int:
        return self.data[PROTOCOL_TYPE_OFFSET]

    @property
    def data_size(self) -> int:
        return self.data[DATA_SIZE_OFFSET]

    @property
    def command_class(self) -> int:
        return self.data[COMMAND_CLASS_OFFSET]

    @property
    def command_id(self) -> int:
        return self.data[COMMAND_ID_OFFSET]

    @property
    def arguments(self) -> bytes:
        return self.data[ARGUMENTS_OFFSET:CHECKSUM_OFFSET]

    @property
    def checksum(self) -> int:
        return self.data[CHECKSUM_OFFSET]

    @property
    def reserved(self) -> int:
        return self.data[RESERVED_OFFSET]

    def argument(self, index: int) -> int:
        return self.arguments[index]

    def has_valid_checksum(self) -> bool:
        return compute_checksum(self.data) == self.checksum

    def verify_checksum(self) -> None:
        """Raise ChecksumError if the stored checksum is wrong."""
        expected = compute_checksum(self.data)
        if expected != self.checksum:
            raise ChecksumError(expected=expected, actual=self.checksum)

    def with_byte(self, offset: int, value: int) -> Frame:
        """Copy of this frame with one byte replaced (checksum untouched)."""
        data = bytearray(self.data)
        data[offset] = value & 0xFF
        return type(self)(bytes(data))

    def __str__(self) -> str:
        return (
            f"{type(self).__name__}(status=0x{self.status:02X} "
            f"tid=0x{self.transaction_id:02X} "
            f"cmd=0x{self.command_class:02X}/0x{self.command_id:02X} "
            f"args={hex_dump(self.arguments, 4)})"
        )


@dataclass(frozen=True)
class CommandFrame(Frame):
    """Outgoing feature report."""

    def to_report(self) -> bytes:
        """Wire bytes with the leading report id."""
        return bytes([REPORT_ID]) + self.data


@dataclass(frozen=True)
class ResponseFrame(Frame):
    """Incoming feature report populated by the device."""

    @classmethod
    def from_bytes(cls, raw) -> ResponseFrame:
        """Build from raw hidapi output.

        Accepts either a bare 90-byte report or the 91-byte wire form
        with the leading report id.

        Raises:
            TruncatedFrameError: If fewer than 90 bytes were received.
        """
        data = bytes(raw)
        if len(data) >= WIRE_SIZE:
            data = data[1:WIRE_SIZE]
        if len(data) < FRAME_SIZE:
            raise TruncatedFrameError(
                f"Response too short: {len(data)} bytes, expected {FRAME_SIZE}"
            )
        return cls(data)

    @classmethod
    def from_command(cls, frame: Frame) -> ResponseFrame:
        return cls(frame.data)
