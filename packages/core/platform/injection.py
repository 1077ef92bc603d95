from __future__ import annotations

import logging
import time
from typing import Callable

from packages.core.harness.errors import RemoteCommunicationError
from packages.core.harness.events import (
    ActivityEvent,
    Event,
    KeyEvent,
    RotationEvent,
    TapEvent,
    TextEvent,
    ThrottleEvent,
    TouchEvent,
)
from packages.core.harness.results import InjectionResult

from .handles import PlatformHandles

log = logging.getLogger(__name__)


def _apply(handles: PlatformHandles, event: Event, sleep: Callable[[float], None]) -> bool:
    display = handles.display
    if isinstance(event, KeyEvent):
        return display.inject_key(event.keycode, event.action)
    if isinstance(event, TouchEvent):
        return display.inject_touch(event.action, event.x, event.y)
    if isinstance(event, TapEvent):
        return display.inject_tap(event.x, event.y)
    if isinstance(event, TextEvent):
        return display.inject_text(event.text)
    if isinstance(event, RotationEvent):
        if not display.freeze_rotation(event.rotation):
            return False
        if not event.persist:
            return display.thaw_rotation()
        return True
    if isinstance(event, ActivityEvent):
        return handles.lifecycle.start_activity(event.component)
    if isinstance(event, ThrottleEvent):
        sleep(event.millis / 1000.0)
        return True
    raise TypeError(f"Unsupported event: {type(event).__name__}")


def inject(handles: PlatformHandles, event: Event, sleep: Callable[[float], None] = time.sleep) -> InjectionResult:
    """Submit one event and classify the outcome.

    Transport and permission failures become results; anything else
    propagates to the caller.
    """
    try:
        ok = _apply(handles, event, sleep)
    except RemoteCommunicationError as e:
        log.debug(f"{event.kind} injection: remote error: {e}")
        return InjectionResult.REMOTE_ERROR
    except PermissionError as e:
        log.debug(f"{event.kind} injection: permission denied: {e}")
        return InjectionResult.PERMISSION_DENIED
    return InjectionResult.SUCCESS if ok else InjectionResult.FAIL
