"""Protocol layer for Razer HID feature reports."""

from .frame import (
    FRAME_SIZE,
    WIRE_SIZE,
    CommandFrame,
    ResponseFrame,
    Status,
    compute_checksum,
)
from .codec import (
    VARIANT_LAYOUTS,
    VariantLayout,
    build_frame,
    decode_battery_level,
    decode_battery_response,
    decode_charging_status,
    encode_battery_query,
    encode_charging_query,
    layout_for,
    validate_response,
    verify_frame,
)

__all__ = [
    "FRAME_SIZE",
    "WIRE_SIZE",
    "CommandFrame",
    "ResponseFrame",
    "Status",
    "compute_checksum",
    "VARIANT_LAYOUTS",
    "VariantLayout",
    "build_frame",
    "decode_battery_level",
    "decode_battery_response",
    "decode_charging_status",
    "encode_battery_query",
    "encode_charging_query",
    "layout_for",
    "validate_response",
    "verify_frame",
]
