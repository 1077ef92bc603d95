"""
Activity controller: the monitor registered with the platform.

The platform delivers notifications on its own threads and consults the
returned value synchronously:

    ActivityStarting / ActivityResuming -> True (allow)
    AppCrashed                          -> False (do not continue)
    AppNotResponding                    -> -1 (kill)
    AppEarlyNotResponding               -> 0 (no special action)
    SystemNotResponding                 -> -1

Handlers only update the session state and log; they never block.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

from . import channels
from .io_policy import disk_writes_allowed
from .notifications import (
    ActivityResuming,
    ActivityStarting,
    AppCrashed,
    AppEarlyNotResponding,
    AppNotResponding,
    BuildInfo,
    MonitorNotification,
    SystemNotResponding,
)
from .session import SessionState


Response = Union[bool, int]

ANR_KILL = -1
ANR_CONTINUE = 0


@dataclass
class MonitorStats:
    activity_starts: int = 0
    activity_resumes: int = 0
    crashes: int = 0
    anrs: int = 0
    early_anrs: int = 0
    watchdogs: int = 0


class ActivityController:
    def __init__(self, session: SessionState, build_info: Optional[BuildInfo] = None) -> None:
        self._session = session
        self._build = build_info or BuildInfo.unknown()
        self._stats = MonitorStats()
        self._stats_lock = threading.Lock()
        self._handlers: Dict[type, Callable[..., Response]] = {
            ActivityStarting: self.activity_starting,
            ActivityResuming: self.activity_resuming,
            AppCrashed: self.app_crashed,
            AppNotResponding: self.app_not_responding,
            AppEarlyNotResponding: self.app_early_not_responding,
            SystemNotResponding: self.system_not_responding,
        }

    @property
    def session(self) -> SessionState:
        return self._session

    def handle(self, notification: MonitorNotification) -> Response:
        """Dispatch one notification and return the platform-required response."""
        handler = self._handlers.get(type(notification))
        if handler is None:
            raise TypeError(f"Unsupported notification: {type(notification).__name__}")
        return handler(notification)

    def stats(self) -> MonitorStats:
        with self._stats_lock:
            return MonitorStats(**vars(self._stats))

    def _count(self, field: str) -> None:
        with self._stats_lock:
            setattr(self._stats, field, getattr(self._stats, field) + 1)

    def activity_starting(self, n: ActivityStarting) -> bool:
        with disk_writes_allowed():
            channels.trace(f"activityStarting({n.package})")
            self._session.set_foreground(n.package, n.intent)
            self._count("activity_starts")
        return True

    def activity_resuming(self, n: ActivityResuming) -> bool:
        with disk_writes_allowed():
            channels.trace(f"activityResuming({n.package})")
            self._session.set_foreground_package(n.package)
            self._count("activity_resumes")
        return True

    def app_crashed(self, n: AppCrashed) -> bool:
        with disk_writes_allowed():
            lines = [
                f"// CRASH: {n.process_name} (pid {n.pid})",
                f"// Short Msg: {n.short_msg}",
                f"// Long Msg: {n.long_msg}",
                f"// Build Label: {self._build.fingerprint}",
                f"// Build Changelist: {self._build.incremental}",
                f"// Build Time: {self._build.build_time}",
                *channels.comment_lines(n.stack_trace),
            ]
            channels.error_block(lines)
            self._count("crashes")
        return False

    def app_early_not_responding(self, n: AppEarlyNotResponding) -> int:
        with disk_writes_allowed():
            channels.trace(f"appEarlyNotResponding({n.process_name}) (pid {n.pid})")
            if n.annotation:
                channels.trace(n.annotation)
            self._count("early_anrs")
        return ANR_CONTINUE

    def app_not_responding(self, n: AppNotResponding) -> int:
        with disk_writes_allowed():
            channels.error(f"// NOT RESPONDING: {n.process_name} (pid {n.pid})")
            if n.diagnostics:
                channels.error_block(channels.comment_lines(n.diagnostics))
            self._count("anrs")
        return ANR_KILL

    def system_not_responding(self, n: SystemNotResponding) -> int:
        with disk_writes_allowed():
            channels.error(f"// WATCHDOG: {n.message}")
            self._count("watchdogs")
        return ANR_KILL
