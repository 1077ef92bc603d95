"""
Injection/monitor orchestration loop.

State machine: IDLE -> ACQUIRING -> REGISTERING -> RUNNING -> DRAINING -> TERMINATED

Once the monitor is registered, DRAINING runs exactly once on every way
out of RUNNING: it injects the rotation-restore event (best effort) and
deregisters the monitor. Acquisition or registration failures terminate
without draining since nothing on the platform was changed.

No timeout is applied to ``next_event()`` or to injection; a platform
that never answers blocks the loop.
"""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Literal, Optional

from packages.core.platform import handles as platform
from packages.core.platform.handles import PlatformHandles, PlatformProvider
from packages.core.platform.injection import inject

from . import channels
from .controller import ActivityController
from .errors import PlatformConnectionError, RegistrationError
from .events import restore_rotation_event
from .results import (
    EXIT_INTERRUPTED,
    EXIT_LOOP_FAULT,
    EXIT_NO_PLATFORM,
    EXIT_OK,
    EXIT_REGISTRATION_FAILED,
    InjectionResult,
)
from .session import SessionState
from .sources import EventSource

log = logging.getLogger(__name__)

Phase = Literal["IDLE", "ACQUIRING", "REGISTERING", "RUNNING", "DRAINING", "TERMINATED"]


@dataclass
class RunSummary:
    events: int = 0
    failures: int = 0
    remote_errors: int = 0
    permission_denied: int = 0
    status: Optional[int] = None


class Orchestrator:
    def __init__(
        self,
        provider: PlatformProvider,
        source: EventSource,
        *,
        session: Optional[SessionState] = None,
        throttle_ms: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._provider = provider
        self._source = source
        self._session = session or SessionState()
        self._throttle_ms = throttle_ms
        self._sleep = sleep

        self.phase: Phase = "IDLE"
        self._handles: Optional[PlatformHandles] = None
        self._controller: Optional[ActivityController] = None
        self._drained = False
        self._summary = RunSummary()

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def controller(self) -> Optional[ActivityController]:
        return self._controller

    def summary(self) -> RunSummary:
        return RunSummary(**vars(self._summary))

    def run(self) -> int:
        """Run to completion. Returns a posix-style status, 0 for no error."""
        status = self._run()
        self._summary.status = status
        self.phase = "TERMINATED"
        self._log_summary()
        return status

    def _run(self) -> int:
        self.phase = "ACQUIRING"
        try:
            handles = platform.acquire(self._provider)
        except PlatformConnectionError as e:
            log.error(f"Platform acquisition failed: {e}")
            return EXIT_NO_PLATFORM
        self._handles = handles

        self.phase = "REGISTERING"
        try:
            build = handles.lifecycle.build_info()
        except Exception as e:
            log.warning(f"Build identity unavailable: {e}")
            build = None
        controller = ActivityController(self._session, build)
        try:
            platform.register(handles, controller)
        except RegistrationError as e:
            log.error(f"Monitor registration failed: {e}")
            return EXIT_REGISTRATION_FAILED
        self._controller = controller

        with self._draining(handles):
            self.phase = "RUNNING"
            return self._run_cycles(handles)

    @contextmanager
    def _draining(self, handles: PlatformHandles) -> Iterator[None]:
        try:
            yield
        finally:
            self._drain(handles)

    def _drain(self, handles: PlatformHandles) -> None:
        if self._drained:
            return
        self._drained = True
        self.phase = "DRAINING"

        # Release the rotation lock if it's still held and restore the
        # natural orientation.
        try:
            result = inject(handles, restore_rotation_event(), self._sleep)
            if result is not InjectionResult.SUCCESS:
                channels.error(f"** Error: Unable to restore rotation ({result.name})")
        except Exception as e:
            channels.error(f"** Error: Unable to restore rotation: {e}")

        try:
            platform.deregister(handles)
        except Exception as e:
            channels.error(f"** Error: Unable to deregister activity controller: {e}")

    def _run_cycles(self, handles: PlatformHandles) -> int:
        try:
            while True:
                ev = self._source.next_event()
                if ev is None:
                    return EXIT_OK
                result = inject(handles, ev, self._sleep)
                self._summary.events += 1
                self._classify(result)
                if self._throttle_ms:
                    self._sleep(self._throttle_ms / 1000.0)
        except KeyboardInterrupt:
            channels.error("** Interrupted")
            return EXIT_INTERRUPTED
        except Exception as e:
            fg = self._session.snapshot().package or "unknown"
            channels.error(f"** Error: A {type(e).__name__} occurred (foreground: {fg}):")
            channels.error_block(channels.comment_lines(traceback.format_exc()))
            return EXIT_LOOP_FAULT

    def _classify(self, result: InjectionResult) -> None:
        if result is InjectionResult.SUCCESS:
            return
        if result is InjectionResult.FAIL:
            self._summary.failures += 1
            channels.trace("Injection Failed")
        elif result is InjectionResult.REMOTE_ERROR:
            self._summary.remote_errors += 1
            channels.error("** Error: RemoteException while injecting event.")
        elif result is InjectionResult.PERMISSION_DENIED:
            self._summary.permission_denied += 1
            channels.error("** Error: SecurityException while injecting event.")

    def _log_summary(self) -> None:
        s = self._summary
        channels.trace(
            f"Events injected: {s.events} (failed {s.failures}, remote errors {s.remote_errors}, "
            f"permission denied {s.permission_denied})"
        )
        if self._controller is not None:
            m = self._controller.stats()
            channels.trace(
                f"Activity starts: {m.activity_starts}, resumes: {m.activity_resumes}, "
                f"crashes: {m.crashes}, ANRs: {m.anrs} (early {m.early_anrs}), watchdogs: {m.watchdogs}"
            )
        if s.status == EXIT_OK:
            channels.trace("Monkey finished")
