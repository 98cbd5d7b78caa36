"""Battery command codec.

Builds outgoing command frames and validates/decodes response frames.
Pure functions with no side effects.

Device families differ only by transaction id and byte offsets, so the
codec dispatches on the descriptor's TransactionVariant through a layout
table rather than a class hierarchy.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from ..errors import (
    CommandMismatchError,
    StatusError,
    TransactionIdError,
)
from ..models import (
    MAX_PERCENTAGE,
    MIN_PERCENTAGE,
    BatteryState,
    DeviceDescriptor,
    TransactionVariant,
)
from .frame import (
    ARGUMENTS_OFFSET,
    ARGUMENTS_SIZE,
    CHECKSUM_OFFSET,
    COMMAND_CLASS_OFFSET,
    COMMAND_ID_OFFSET,
    DATA_SIZE_OFFSET,
    FRAME_SIZE,
    PROTOCOL_TYPE_OFFSET,
    REMAINING_PACKETS_OFFSET,
    RESERVED_DEFAULT,
    RESERVED_OFFSET,
    STATUS_OFFSET,
    TRANSACTION_ID_OFFSET,
    CommandFrame,
    Frame,
    ResponseFrame,
    Status,
    compute_checksum,
)

# Power command class
POWER_CLASS = 0x07
GET_BATTERY_LEVEL = 0x80
GET_CHARGING_STATUS = 0x84
BATTERY_DATA_SIZE = 0x02

PROTOCOL_TYPE = 0x00
RAW_BATTERY_MAX = 0xFF


@dataclass(frozen=True)
class VariantLayout:
    """Frame constants for one transaction-id variant.

    Attributes:
        transaction_id: Transaction id byte written in requests
        level_index: Argument index holding the raw battery level
        charging_index: Argument index holding the charging flag
    """
    transaction_id: int
    level_index: int = 1
    charging_index: int = 1


VARIANT_LAYOUTS: Dict[TransactionVariant, VariantLayout] = {
    TransactionVariant.TID_1F: VariantLayout(transaction_id=0x1F),
    TransactionVariant.TID_3F: VariantLayout(transaction_id=0x3F),
    TransactionVariant.TID_FF: VariantLayout(transaction_id=0xFF),
}


def layout_for(variant: TransactionVariant) -> VariantLayout:
    try:
        return VARIANT_LAYOUTS[variant]
    except KeyError:
        raise ValueError(f"No frame layout for variant {variant!r}") from None


def build_frame(
    variant: TransactionVariant,
    command_class: int,
    command_id: int,
    data_size: int,
    arguments: bytes = b"",
) -> CommandFrame:
    """Build a complete command frame.

    Every byte is initialized: arguments are zero-padded, the checksum is
    computed and the reserved trailer is set to its default.

    Raises:
        ValueError: If arguments exceed the argument area.
    """
    if len(arguments) > ARGUMENTS_SIZE:
        raise ValueError(
            f"Arguments too long: {len(arguments)} bytes, max {ARGUMENTS_SIZE}"
        )

    data = bytearray(FRAME_SIZE)
    data[STATUS_OFFSET] = Status.NEW
    data[TRANSACTION_ID_OFFSET] = layout_for(variant).transaction_id
    data[REMAINING_PACKETS_OFFSET:PROTOCOL_TYPE_OFFSET] = (0).to_bytes(2, "big")
    data[PROTOCOL_TYPE_OFFSET] = PROTOCOL_TYPE
    data[DATA_SIZE_OFFSET] = data_size
    data[COMMAND_CLASS_OFFSET] = command_class
    data[COMMAND_ID_OFFSET] = command_id
    data[ARGUMENTS_OFFSET:ARGUMENTS_OFFSET + len(arguments)] = arguments
    data[CHECKSUM_OFFSET] = compute_checksum(data)
    data[RESERVED_OFFSET] = RESERVED_DEFAULT
    return CommandFrame(bytes(data))


def encode_battery_query(descriptor: DeviceDescriptor) -> CommandFrame:
    """Build the "get battery level" request for a device."""
    return build_frame(
        descriptor.variant, POWER_CLASS, GET_BATTERY_LEVEL, BATTERY_DATA_SIZE
    )


def encode_charging_query(descriptor: DeviceDescriptor) -> CommandFrame:
    """Build the "get charging status" request for a device."""
    return build_frame(
        descriptor.variant, POWER_CLASS, GET_CHARGING_STATUS, BATTERY_DATA_SIZE
    )


def verify_frame(frame: Frame) -> None:
    """Self-check a frame's checksum. Length is enforced when the Frame is built.

    Raises:
        ChecksumError: If the checksum does not match.
    """
    frame.verify_checksum()


def validate_response(
    descriptor: DeviceDescriptor,
    request: CommandFrame,
    response: ResponseFrame,
) -> ResponseFrame:
    """Check a response against the request that produced it.

    Length needs no check here; a Frame cannot exist at any other size.

    Raises:
        StatusError: Status is not SUCCESS.
        TransactionIdError: Transaction id differs from the request's.
        CommandMismatchError: Response echoes another command.
        ChecksumError: Checksum does not validate.
    """
    if response.status != Status.SUCCESS:
        try:
            status = Status(response.status)
        except ValueError:
            status = response.status
        raise StatusError(status)

    if response.transaction_id != request.transaction_id:
        raise TransactionIdError(
            expected=request.transaction_id, actual=response.transaction_id
        )

    if (response.command_class, response.command_id) != (
        request.command_class,
        request.command_id,
    ):
        raise CommandMismatchError(
            f"{descriptor.name}: expected command "
            f"0x{request.command_class:02X}/0x{request.command_id:02X}, got "
            f"0x{response.command_class:02X}/0x{response.command_id:02X}"
        )

    response.verify_checksum()
    return response


def scale_percentage(raw: int) -> int:
    """Map the raw 0-255 level onto 0-100."""
    percentage = round(raw * MAX_PERCENTAGE / RAW_BATTERY_MAX)
    return max(MIN_PERCENTAGE, min(MAX_PERCENTAGE, percentage))


def decode_battery_level(
    descriptor: DeviceDescriptor,
    response: ResponseFrame,
    request: Optional[CommandFrame] = None,
) -> int:
    """Validate a battery level response and return the percentage."""
    request = request or encode_battery_query(descriptor)
    validate_response(descriptor, request, response)
    layout = layout_for(descriptor.variant)
    return scale_percentage(response.argument(layout.level_index))


def decode_charging_status(
    descriptor: DeviceDescriptor,
    response: ResponseFrame,
    request: Optional[CommandFrame] = None,
) -> bool:
    """Validate a charging status response and return the flag."""
    request = request or encode_charging_query(descriptor)
    validate_response(descriptor, request, response)
    layout = layout_for(descriptor.variant)
    return response.argument(layout.charging_index) != 0


def decode_battery_response(
    descriptor: DeviceDescriptor,
    response: ResponseFrame,
    charging_response: Optional[ResponseFrame] = None,
    request: Optional[CommandFrame] = None,
) -> BatteryState:
    """Decode a battery level response (and optional charging response).

    Args:
        descriptor: Device the frames belong to
        response: Response to the battery level query
        charging_response: Response to the charging status query, if any
        request: Request that produced ``response``; defaults to the
            descriptor's battery query

    Returns:
        BatteryState with reachable=True

    Raises:
        ProtocolError: If any frame is rejected.
    """
    percentage = decode_battery_level(descriptor, response, request)
    charging = False
    if charging_response is not None:
        charging = decode_charging_status(descriptor, charging_response)
    return BatteryState(percentage=percentage, charging=charging, reachable=True)
