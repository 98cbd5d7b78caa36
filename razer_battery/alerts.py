"""Battery alert classification.

Decides whether a battery transition deserves a user notification.
Pure functions with no side effects; delivery is up to the presentation layer.
"""
from __future__ import annotations

from typing import Optional

from .models import MAX_PERCENTAGE, AlertKind, BatteryState

BATTERY_CRITICAL_LEVEL = 5
BATTERY_LOW_LEVEL = 15

# Previous level used when a device has no earlier reading. Below every
# threshold, so a first reading never counts as crossing into "low".
NO_PREVIOUS_LEVEL = -1


def check_alert(previous: Optional[BatteryState], current: BatteryState) -> Optional[AlertKind]:
    """Classify the transition from ``previous`` to ``current``.

    Rules:
    - Critical whenever the device is discharging at or below 5%
    - Low once, when a discharging device drops from above 15% to 15% or less
    - Full once, when a charging device reaches 100%

    A first reading can raise Critical or Full but never Low.

    Returns:
        AlertKind, or None if nothing should be announced
    """
    if not current.reachable or current.percentage is None:
        return None

    level = current.percentage
    old_level = NO_PREVIOUS_LEVEL
    if previous is not None and previous.percentage is not None:
        old_level = previous.percentage

    if not current.charging:
        if level <= BATTERY_CRITICAL_LEVEL:
            return AlertKind.BATTERY_CRITICAL
        if old_level > BATTERY_LOW_LEVEL and level <= BATTERY_LOW_LEVEL:
            return AlertKind.BATTERY_LOW
        return None

    if old_level < MAX_PERCENTAGE and level == MAX_PERCENTAGE:
        return AlertKind.BATTERY_FULL
    return None
