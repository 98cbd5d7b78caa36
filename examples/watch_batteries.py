#!/usr/bin/env python3
"""
Battery Watch Script.

Polls connected Razer wireless devices and prints every battery event.
Run it with a supported receiver plugged in; press Ctrl+C to stop.
"""

import sys
import time
import logging
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from razer_battery import BatteryPoller, HidTransport, PollerConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def print_event(event):
    flags = []
    if event.state.charging:
        flags.append("charging")
    if not event.state.reachable:
        flags.append("unreachable")
    suffix = f" ({', '.join(flags)})" if flags else ""
    alert = f" [{event.alert.value.upper()}]" if event.alert else ""
    print(f"{event.kind.value:>9}: {event.summary}{suffix}{alert}")


def main():
    interval = float(sys.argv[1]) if len(sys.argv) > 1 else 30.0
    config = PollerConfig(battery_interval=interval)

    print(f"Watching Razer batteries (query every {interval:.0f}s, Ctrl+C to stop)...")
    poller = BatteryPoller(HidTransport(), config)
    poller.subscribe(print_event)

    try:
        poller.start()
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        print("Stopping poller...")
        poller.stop()
        for path, state in poller.snapshot().items():
            print(f"  {poller.device_name(path) or path!r}: {state.percentage}%")
        print("Done.")


if __name__ == "__main__":
    main()
