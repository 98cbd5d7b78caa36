"""Polling configuration.

Defaults mirror the tray application: devices are re-enumerated every few
seconds while batteries are only queried every five minutes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_ENUMERATE_INTERVAL = 5.0  # seconds
DEFAULT_BATTERY_INTERVAL = 300.0  # seconds
DEFAULT_UNREACHABLE_THRESHOLD = 3  # consecutive failed cycles
DEFAULT_QUERY_TIMEOUT = 1.0  # seconds per exchange
DEFAULT_EVENT_QUEUE_SIZE = 256


@dataclass(frozen=True)
class PollerConfig:
    """Settings for BatteryPoller.

    Attributes:
        enumerate_interval: Seconds between HID enumerations
        battery_interval: Seconds between battery query ticks
        unreachable_threshold: Consecutive failures before a device is unreachable
        query_timeout: Timeout for a single request/response exchange
        event_queue_size: Capacity of the outgoing event queue
        check_usage: Match on usage page/usage too; None picks the platform default
    """
    enumerate_interval: float = DEFAULT_ENUMERATE_INTERVAL
    battery_interval: float = DEFAULT_BATTERY_INTERVAL
    unreachable_threshold: int = DEFAULT_UNREACHABLE_THRESHOLD
    query_timeout: float = DEFAULT_QUERY_TIMEOUT
    event_queue_size: int = DEFAULT_EVENT_QUEUE_SIZE
    check_usage: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.enumerate_interval <= 0:
            raise ValueError(f"enumerate_interval must be positive, got {self.enumerate_interval}")
        if self.battery_interval <= 0:
            raise ValueError(f"battery_interval must be positive, got {self.battery_interval}")
        if self.unreachable_threshold < 1:
            raise ValueError(
                f"unreachable_threshold must be at least 1, got {self.unreachable_threshold}"
            )
        if self.query_timeout <= 0:
            raise ValueError(f"query_timeout must be positive, got {self.query_timeout}")
        if self.event_queue_size < 1:
            raise ValueError(f"event_queue_size must be at least 1, got {self.event_queue_size}")
