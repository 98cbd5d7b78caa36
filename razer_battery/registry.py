"""
Device Registry - Maps full HID descriptor tuples to supported devices.

A physical device usually exposes several HID interfaces sharing one
vendor/product id; only the control interface answers battery commands,
so lookups always use the full (vid, pid, interface, usage_page, usage) key.

To add a device, append a row. Add a TransactionVariant only when no
existing variant's frame layout fits.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from .errors import ConfigurationError
from .models import DeviceDescriptor, HidDeviceInfo, TransactionVariant

RAZER_VENDOR_ID = 0x1532

# Control interface shared by Razer wireless mice and receivers
CONTROL_INTERFACE = 0
GENERIC_DESKTOP_PAGE = 0x0001
MOUSE_USAGE = 0x0002


def _razer(name: str, product_id: int, variant: TransactionVariant) -> DeviceDescriptor:
    return DeviceDescriptor(
        name=name,
        vendor_id=RAZER_VENDOR_ID,
        product_id=product_id,
        interface=CONTROL_INTERFACE,
        usage_page=GENERIC_DESKTOP_PAGE,
        usage=MOUSE_USAGE,
        variant=variant,
    )


# Wireless receivers and wireless-mode product ids only
DEVICE_REGISTRY: Tuple[DeviceDescriptor, ...] = (
    _razer("Razer Mamba 2012 (Wireless)", 0x0025, TransactionVariant.TID_FF),
    _razer("Razer Atheris (Receiver)", 0x0062, TransactionVariant.TID_1F),
    _razer("Razer Lancehead Wireless (Receiver)", 0x006F, TransactionVariant.TID_3F),
    _razer("Razer Mamba Wireless (Receiver)", 0x0073, TransactionVariant.TID_3F),
    _razer("Razer Viper Ultimate (Wireless)", 0x007B, TransactionVariant.TID_3F),
    _razer("Razer DeathAdder V2 Pro (Wireless)", 0x007D, TransactionVariant.TID_3F),
    _razer("Razer Basilisk X HyperSpeed", 0x0083, TransactionVariant.TID_1F),
    _razer("Razer Basilisk Ultimate (Receiver)", 0x0088, TransactionVariant.TID_1F),
    _razer("Razer Naga Pro (Wireless)", 0x0090, TransactionVariant.TID_1F),
    _razer("Razer Orochi V2 (Receiver)", 0x0094, TransactionVariant.TID_1F),
    _razer("Razer Viper V2 Pro (Wireless)", 0x00A6, TransactionVariant.TID_1F),
    _razer("Razer Basilisk V3 Pro (Wireless)", 0x00AB, TransactionVariant.TID_1F),
    _razer("Razer DeathAdder V3 Pro (Wireless)", 0x00B7, TransactionVariant.TID_1F),
    _razer("Razer Viper V3 Pro (Wireless)", 0x00C1, TransactionVariant.TID_1F),
)


def build_index(
    descriptors: Iterable[DeviceDescriptor],
) -> Dict[Tuple[int, int, int, int, int], DeviceDescriptor]:
    """Index descriptors by their full match tuple.

    Raises:
        ConfigurationError: If two rows share the same full tuple.
    """
    index: Dict[Tuple[int, int, int, int, int], DeviceDescriptor] = {}
    for descriptor in descriptors:
        if descriptor.key in index:
            raise ConfigurationError(
                f"Duplicate registry entry for {descriptor.key}: "
                f"'{index[descriptor.key].name}' and '{descriptor.name}'"
            )
        index[descriptor.key] = descriptor
    return index


_INDEX = build_index(DEVICE_REGISTRY)


def lookup(
    vendor_id: int,
    product_id: int,
    interface: int,
    usage_page: int,
    usage: int,
    *,
    registry: Optional[Iterable[DeviceDescriptor]] = None,
) -> Optional[DeviceDescriptor]:
    """Find the descriptor matching the full HID tuple.

    Returns:
        The DeviceDescriptor, or None if no row matches.
    """
    index = _INDEX if registry is None else build_index(registry)
    return index.get((vendor_id, product_id, interface, usage_page, usage))


def descriptors_for(
    vendor_id: int,
    product_id: int,
    *,
    registry: Optional[Iterable[DeviceDescriptor]] = None,
) -> List[DeviceDescriptor]:
    """All rows sharing a vendor/product id pair."""
    rows = DEVICE_REGISTRY if registry is None else registry
    return [d for d in rows if d.vendor_id == vendor_id and d.product_id == product_id]


def match_hid_device(
    info: HidDeviceInfo,
    *,
    check_usage: bool = True,
    registry: Optional[Iterable[DeviceDescriptor]] = None,
) -> Optional[DeviceDescriptor]:
    """Match an enumerated HID interface against the registry.

    Args:
        info: Enumerated interface
        check_usage: Compare usage page/usage too. Platforms whose HID
            backend does not report usages (e.g. Linux hidraw) pass False,
            which matches on vendor, product and interface only.
        registry: Alternative descriptor table, defaults to DEVICE_REGISTRY

    Returns:
        The matching DeviceDescriptor, or None.
    """
    if check_usage:
        return lookup(
            info.vendor_id,
            info.product_id,
            info.interface,
            info.usage_page,
            info.usage,
            registry=registry,
        )

    for descriptor in descriptors_for(info.vendor_id, info.product_id, registry=registry):
        if descriptor.interface == info.interface:
            return descriptor
    return None
