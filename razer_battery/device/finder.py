"""Discovery of supported devices among enumerated HID interfaces."""
from __future__ import annotations

import logging
import sys
from typing import Callable, Iterable, List, Optional

from ..models import ConnectedDevice, DeviceDescriptor, HidDeviceInfo
from ..registry import DEVICE_REGISTRY, RAZER_VENDOR_ID, match_hid_device
from ..transport.base import Transport

logger = logging.getLogger(__name__)


def default_check_usage() -> bool:
    """Usage page/usage are only reliable from the Windows HID backend."""
    return sys.platform == "win32"


def is_candidate(info: HidDeviceInfo, vendor_id: int = RAZER_VENDOR_ID) -> bool:
    """Cheap pre-filter before the registry lookup."""
    return info.vendor_id == vendor_id


def match_devices(
    infos: Iterable[HidDeviceInfo],
    *,
    registry: Iterable[DeviceDescriptor] = DEVICE_REGISTRY,
    check_usage: Optional[bool] = None,
    matcher: Optional[Callable[[HidDeviceInfo], Optional[DeviceDescriptor]]] = None,
) -> List[ConnectedDevice]:
    """Match enumerated interfaces against the registry.

    Interfaces without a matching descriptor are ignored. Each path is
    reported at most once.

    Args:
        infos: Enumerated HID interfaces
        registry: Descriptor table to match against
        check_usage: Compare usage page/usage; None picks the platform default
        matcher: Custom ``matcher(info) -> descriptor`` replacing the registry lookup

    Returns:
        List of ConnectedDevice objects in enumeration order.
    """
    if check_usage is None:
        check_usage = default_check_usage()
    registry = tuple(registry)

    results: List[ConnectedDevice] = []
    seen_paths = set()

    for info in infos:
        if info.path in seen_paths:
            continue

        if matcher is not None:
            descriptor = matcher(info)
        else:
            descriptor = match_hid_device(info, check_usage=check_usage, registry=registry)

        if descriptor is None:
            if is_candidate(info):
                logger.debug(
                    f"No descriptor for {info.vendor_id:04x}:{info.product_id:04x} "
                    f"interface={info.interface} usage={info.usage_page:#06x}/{info.usage:#06x}"
                )
            continue

        seen_paths.add(info.path)
        results.append(ConnectedDevice(descriptor=descriptor, path=info.path))

    return results


def find_devices(
    transport: Transport,
    *,
    registry: Iterable[DeviceDescriptor] = DEVICE_REGISTRY,
    check_usage: Optional[bool] = None,
) -> List[ConnectedDevice]:
    """Enumerate HID interfaces through ``transport`` and match them.

    Raises:
        TransportError: If enumeration itself fails.
    """
    return match_devices(transport.enumerate(), registry=registry, check_usage=check_usage)
