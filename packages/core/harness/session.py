from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from .notifications import IntentDescriptor


@dataclass(frozen=True)
class ForegroundSnapshot:
    package: str = ""
    intent: Optional[IntentDescriptor] = None


class SessionState:
    """
    Foreground app identity as last reported by the monitor.

    Written from platform callback threads, read by the orchestrator for
    diagnostics. One lock guards the whole record so readers never see a
    package paired with another activity's intent.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._package = ""
        self._intent: Optional[IntentDescriptor] = None

    def set_foreground(self, package: str, intent: Optional[IntentDescriptor]) -> None:
        with self._lock:
            self._package = package
            self._intent = intent

    def set_foreground_package(self, package: str) -> None:
        with self._lock:
            self._package = package

    def snapshot(self) -> ForegroundSnapshot:
        with self._lock:
            return ForegroundSnapshot(package=self._package, intent=self._intent)
