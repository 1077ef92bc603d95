"""
Attach only the activity controller to a device and print every
notification it receives. Nothing is injected.

Run this to check logcat parsing against a new platform build:
- Launch and crash an app on the device; a CRASH block should appear
- Trigger an ANR; NOT RESPONDING should appear and the app gets killed
"""

import sys
import os
import time
import logging

# Add parent directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from packages.core.harness.errors import PlatformConnectionError
from packages.core.harness.controller import ActivityController
from packages.core.harness.session import SessionState
from packages.core.platform import handles as platform
from packages.core.platform.adb_handles import AdbPlatform

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)

def main():
    serial = sys.argv[1] if len(sys.argv) > 1 else None
    print("=" * 60)
    print("Notification watcher")
    print("=" * 60)

    provider = AdbPlatform({"serial": serial, "kill_on_anr": False,
                            "logcat_buffers": ["main", "system", "crash", "events"]})
    try:
        h = platform.acquire(provider)
    except PlatformConnectionError as e:
        print(f"❌ {e}")
        return -3

    session = SessionState()
    controller = ActivityController(session, h.lifecycle.build_info())
    platform.register(h, controller)
    print("✓ Controller attached (press Ctrl+C to stop)")
    print("-" * 60)

    try:
        while True:
            time.sleep(5.0)
            snap = session.snapshot()
            print(f"[foreground] {snap.package or '-'}")
    except KeyboardInterrupt:
        print()
        print("-" * 60)
    finally:
        platform.deregister(h)
        stats = controller.stats()
        print(f"✓ Detached: {stats.crashes} crash(es), {stats.anrs} ANR(s), {stats.watchdogs} watchdog(s)")

    return 0

if __name__ == "__main__":
    sys.exit(main())
