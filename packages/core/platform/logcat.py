"""
Logcat-backed notification stream.

``LogcatParser`` turns ``logcat -v threadtime`` lines into monitor
notifications. ``LogcatWatcher`` runs ``adb logcat`` in a child process
and delivers every parsed notification to a sink on its own reader
thread, which is marked as disk-write restricted like any platform
callback thread.

Recognized records:
  ActivityTaskManager/ActivityManager "START u0 {... cmp=pkg/.Act}"  -> ActivityStarting
  am_resume_activity / wm_resume_activity events                   -> ActivityResuming
  AndroidRuntime "FATAL EXCEPTION" block                           -> AppCrashed
  am_anr event                                                     -> AppEarlyNotResponding
  ActivityManager "ANR in <proc>" block                            -> AppNotResponding
  Watchdog "*** WATCHDOG KILLING SYSTEM PROCESS"                   -> SystemNotResponding
"""

from __future__ import annotations

import logging
import re
import subprocess
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence

import psutil

from packages.core.harness.io_policy import disk_writes_allowed, restrict_thread_disk_writes
from packages.core.harness.notifications import (
    ActivityResuming,
    ActivityStarting,
    AppCrashed,
    AppEarlyNotResponding,
    AppNotResponding,
    IntentDescriptor,
    MonitorNotification,
    SystemNotResponding,
)

from .adb import AdbClient

log = logging.getLogger(__name__)

_LINE_RE = re.compile(
    r"^(?P<date>\d\d-\d\d)\s+(?P<time>\d\d:\d\d:\d\d\.\d+)\s+(?P<pid>\d+)\s+(?P<tid>\d+)\s+"
    r"(?P<level>[VDIWEFAS])\s+(?P<tag>[^:]*?)\s*: ?(?P<msg>.*)$"
)
_START_RE = re.compile(r"^START u\d+ \{(?P<body>.*)\}")
_ACT_RE = re.compile(r"\bact=(\S+)")
_CMP_RE = re.compile(r"\bcmp=([^\s}]+)")
_EVENT_ARGS_RE = re.compile(r"^\[(?P<args>.*)\]$")
_PROCESS_RE = re.compile(r"^Process: (?P<proc>\S+), PID: (?P<pid>\d+)")
_ANR_RE = re.compile(r"^ANR in (?P<proc>\S+)")
_PID_RE = re.compile(r"^PID: (?P<pid>\d+)")

_WATCHDOG_PREFIX = "*** WATCHDOG KILLING SYSTEM PROCESS:"
_START_TAGS = ("ActivityTaskManager", "ActivityManager")
_RESUME_TAGS = ("am_resume_activity", "wm_resume_activity")


@dataclass
class LogLine:
    timestamp_ms: int
    pid: int
    level: str
    tag: str
    msg: str


def parse_line(raw: str, year: Optional[int] = None) -> Optional[LogLine]:
    m = _LINE_RE.match(raw.rstrip("\r\n"))
    if not m:
        return None
    year = year or datetime.now().year
    try:
        ts = datetime.strptime(f"{year}-{m.group('date')} {m.group('time')}", "%Y-%m-%d %H:%M:%S.%f")
        timestamp_ms = int(ts.timestamp() * 1000)
    except ValueError:
        timestamp_ms = int(time.time() * 1000)
    return LogLine(
        timestamp_ms=timestamp_ms,
        pid=int(m.group("pid")),
        level=m.group("level"),
        tag=m.group("tag").strip(),
        msg=m.group("msg"),
    )


@dataclass
class _Block:
    kind: str  # "crash" | "anr"
    pid: int
    tag: str
    level: str
    timestamp_ms: int
    lines: List[str] = field(default_factory=list)


class LogcatParser:
    def __init__(self, year: Optional[int] = None) -> None:
        self._year = year
        self._block: Optional[_Block] = None

    def feed(self, raw: str) -> List[MonitorNotification]:
        line = parse_line(raw, self._year)
        if line is None:
            return []

        out: List[MonitorNotification] = []
        if self._block is not None:
            if self._continues_block(line):
                self._block.lines.append(line.msg)
                return out
            out.extend(self.flush())

        if line.tag == "AndroidRuntime" and line.msg.startswith("FATAL EXCEPTION"):
            self._block = _Block("crash", line.pid, line.tag, line.level, line.timestamp_ms)
            return out
        if line.tag == "ActivityManager" and _ANR_RE.match(line.msg):
            self._block = _Block("anr", line.pid, line.tag, line.level, line.timestamp_ms, [line.msg])
            return out

        n = self._single(line)
        if n is not None:
            out.append(n)
        return out

    def flush(self) -> List[MonitorNotification]:
        block, self._block = self._block, None
        if block is None:
            return []
        n = self._crash(block) if block.kind == "crash" else self._anr(block)
        return [n] if n is not None else []

    def _continues_block(self, line: LogLine) -> bool:
        b = self._block
        return line.pid == b.pid and line.tag == b.tag and line.level == b.level

    def _single(self, line: LogLine) -> Optional[MonitorNotification]:
        if line.tag in _START_TAGS:
            m = _START_RE.match(line.msg)
            if m:
                body = m.group("body")
                act = _ACT_RE.search(body)
                cmp_ = _CMP_RE.search(body)
                if cmp_ is None:
                    return None
                intent = IntentDescriptor(action=act.group(1) if act else None, component=cmp_.group(1))
                return ActivityStarting(package=intent.package or cmp_.group(1), intent=intent)
            return None
        if line.tag in _RESUME_TAGS:
            args = _event_args(line.msg)
            if args:
                component = args[-1]
                return ActivityResuming(package=component.split("/", 1)[0])
            return None
        if line.tag == "am_anr":
            args = _event_args(line.msg)
            if len(args) >= 3:
                return AppEarlyNotResponding(
                    process_name=args[2],
                    pid=_to_int(args[1]),
                    annotation=",".join(args[4:]) if len(args) > 4 else "",
                )
            return None
        if line.tag == "Watchdog" and line.msg.startswith(_WATCHDOG_PREFIX):
            return SystemNotResponding(message=line.msg[len(_WATCHDOG_PREFIX):].strip())
        return None

    @staticmethod
    def _crash(block: _Block) -> Optional[AppCrashed]:
        proc, pid = "unknown", block.pid
        body: List[str] = []
        for msg in block.lines:
            m = _PROCESS_RE.match(msg)
            if m and not body:
                proc, pid = m.group("proc"), int(m.group("pid"))
                continue
            body.append(msg)
        if not body:
            return None
        long_msg = body[0].strip()
        short_msg = long_msg.split(":", 1)[0]
        return AppCrashed(
            process_name=proc,
            pid=pid,
            short_msg=short_msg,
            long_msg=long_msg,
            timestamp_ms=block.timestamp_ms,
            stack_trace="\n".join(body),
        )

    @staticmethod
    def _anr(block: _Block) -> Optional[AppNotResponding]:
        m = _ANR_RE.match(block.lines[0])
        if m is None:
            return None
        proc, pid = m.group("proc"), 0
        diagnostics: List[str] = []
        for msg in block.lines[1:]:
            pm = _PID_RE.match(msg)
            if pm and pid == 0:
                pid = int(pm.group("pid"))
                continue
            diagnostics.append(msg)
        return AppNotResponding(process_name=proc, pid=pid, diagnostics="\n".join(diagnostics))


def _event_args(msg: str) -> List[str]:
    m = _EVENT_ARGS_RE.match(msg.strip())
    if not m:
        return []
    return [a.strip() for a in m.group("args").split(",")]


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def terminate_process_tree(pid: int, timeout: float = 2.0) -> None:
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return
    procs = parent.children(recursive=True) + [parent]
    for p in procs:
        try:
            p.terminate()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    _, alive = psutil.wait_procs(procs, timeout=timeout)
    for p in alive:
        try:
            p.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue


NotificationSink = Callable[[MonitorNotification], object]


class LogcatWatcher:
    """Streams ``adb logcat`` and feeds parsed notifications to ``sink``."""

    def __init__(self, client: AdbClient, sink: NotificationSink, buffers: Sequence[str] = ()) -> None:
        self._client = client
        self._sink = sink
        self._buffers = list(buffers)
        self._parser = LogcatParser()
        self._proc: Optional[subprocess.Popen] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()

    def command(self) -> List[str]:
        args = self._client.base_args() + ["logcat", "-v", "threadtime", "-T", "1"]
        for b in self._buffers:
            args += ["-b", b]
        return args

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_evt.clear()
        self._proc = subprocess.Popen(
            self.command(),
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        self._thread = threading.Thread(target=self._run, name="LogcatWatcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_evt.set()
        proc, self._proc = self._proc, None
        if proc is not None:
            terminate_process_tree(proc.pid)
            if proc.stdout is not None:
                proc.stdout.close()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)

    def _run(self) -> None:
        restrict_thread_disk_writes()
        proc = self._proc
        if proc is None or proc.stdout is None:
            return
        try:
            for raw in proc.stdout:
                if self._stop_evt.is_set():
                    break
                for n in self._parser.feed(raw):
                    self._deliver(n)
        except (OSError, ValueError):
            # stdout closed by stop()
            if not self._stop_evt.is_set():
                with disk_writes_allowed():
                    log.exception("Logcat stream failed")
        if not self._stop_evt.is_set():
            for n in self._parser.flush():
                self._deliver(n)
            with disk_writes_allowed():
                log.warning("Logcat stream ended; platform notifications are no longer observed")

    def _deliver(self, n: MonitorNotification) -> None:
        try:
            self._sink(n)
        except Exception:
            with disk_writes_allowed():
                log.exception(f"Notification handler failed for {type(n).__name__}")
