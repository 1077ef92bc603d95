"""
tests/test_logcat.py
Parsing logcat threadtime output into monitor notifications.
"""

import sys
import threading
import time
from datetime import datetime

import psutil
import pytest

from packages.core.harness.io_policy import get_thread_policy
from packages.core.harness.notifications import (
    ActivityResuming,
    ActivityStarting,
    AppCrashed,
    AppEarlyNotResponding,
    AppNotResponding,
    IntentDescriptor,
    SystemNotResponding,
)
from packages.core.platform.logcat import LogcatParser, LogcatWatcher, parse_line

CRASH = [
    "10-19 04:33:12.345  4321  4321 E AndroidRuntime: FATAL EXCEPTION: main",
    "10-19 04:33:12.345  4321  4321 E AndroidRuntime: Process: com.example, PID: 4321",
    "10-19 04:33:12.345  4321  4321 E AndroidRuntime: java.lang.IllegalStateException: boom",
    "10-19 04:33:12.345  4321  4321 E AndroidRuntime: \tat com.example.Main.onCreate(Main.java:12)",
    "10-19 04:33:12.345  4321  4321 E AndroidRuntime: \tat android.app.Activity.performCreate(Activity.java:8000)",
]

ANR = [
    "10-19 04:40:01.000  1500  1600 E ActivityManager: ANR in com.example (com.example/.Main)",
    "10-19 04:40:01.000  1500  1600 E ActivityManager: PID: 4321",
    "10-19 04:40:01.000  1500  1600 E ActivityManager: Reason: Input dispatching timed out",
    "10-19 04:40:01.000  1500  1600 E ActivityManager: Load: 1.5 / 1.2 / 0.9",
]

OTHER = "10-19 04:41:00.000  1500  1600 I chatty  : uid=1000 expire 3 lines"


@pytest.fixture
def parser():
    return LogcatParser(year=2026)


def feed_all(parser, lines):
    out = []
    for line in lines:
        out.extend(parser.feed(line + "\n"))
    return out


def test_parse_line_fields():
    line = parse_line(CRASH[0], year=2026)
    assert line.pid == 4321
    assert line.level == "E"
    assert line.tag == "AndroidRuntime"
    assert line.msg == "FATAL EXCEPTION: main"
    assert line.timestamp_ms == int(datetime(2026, 10, 19, 4, 33, 12, 345000).timestamp() * 1000)


def test_garbage_is_ignored(parser):
    assert parser.feed("--------- beginning of crash\n") == []
    assert parser.feed("\n") == []


def test_crash_block_closes_on_other_line(parser):
    assert feed_all(parser, CRASH) == []
    out = parser.feed(OTHER)

    assert len(out) == 1
    n = out[0]
    assert isinstance(n, AppCrashed)
    assert n.process_name == "com.example"
    assert n.pid == 4321
    assert n.short_msg == "java.lang.IllegalStateException"
    assert n.long_msg == "java.lang.IllegalStateException: boom"
    assert n.stack_trace.splitlines() == [
        "java.lang.IllegalStateException: boom",
        "\tat com.example.Main.onCreate(Main.java:12)",
        "\tat android.app.Activity.performCreate(Activity.java:8000)",
    ]


def test_crash_block_closes_on_flush(parser):
    feed_all(parser, CRASH)
    out = parser.flush()
    assert [type(n) for n in out] == [AppCrashed]
    assert parser.flush() == []


def test_anr_block(parser):
    feed_all(parser, ANR)
    (n,) = parser.flush()

    assert n == AppNotResponding(
        process_name="com.example",
        pid=4321,
        diagnostics="Reason: Input dispatching timed out\nLoad: 1.5 / 1.2 / 0.9",
    )


def test_early_anr_event(parser):
    out = parser.feed("10-19 04:40:00.900  1500  1600 I am_anr  : [0,4321,com.example,952647237,Input dispatching timed out]")
    assert out == [AppEarlyNotResponding("com.example", 4321, "Input dispatching timed out")]


def test_activity_start(parser):
    out = parser.feed(
        "10-19 04:30:00.000  1500  2000 I ActivityTaskManager: START u0 {act=android.intent.action.MAIN "
        "cat=[android.intent.category.LAUNCHER] flg=0x10000000 cmp=com.example/.Main} from uid 2000"
    )
    assert out == [ActivityStarting(
        package="com.example",
        intent=IntentDescriptor(action="android.intent.action.MAIN", component="com.example/.Main"),
    )]


@pytest.mark.parametrize("tag", ["am_resume_activity", "wm_resume_activity"])
def test_activity_resume(parser, tag):
    out = parser.feed(f"10-19 04:30:01.000  1500  2000 I {tag}: [0,202020,17,com.example/.Main]")
    assert out == [ActivityResuming("com.example")]


def test_watchdog(parser):
    out = parser.feed(
        "10-19 04:50:00.000  1500  1510 W Watchdog: *** WATCHDOG KILLING SYSTEM PROCESS: "
        "Blocked in handler on main thread (main)"
    )
    assert out == [SystemNotResponding("Blocked in handler on main thread (main)")]


def test_block_then_single_line_keeps_order(parser):
    feed_all(parser, ANR)
    out = parser.feed("10-19 04:50:00.000  1500  1510 W Watchdog: *** WATCHDOG KILLING SYSTEM PROCESS: stuck")
    assert [type(n) for n in out] == [AppNotResponding, SystemNotResponding]


def test_unrelated_system_server_lines_do_not_extend_anr(parser):
    feed_all(parser, ANR)
    out = parser.feed("10-19 04:40:02.000  1500  1600 I ActivityManager: Killing 4321:com.example/u0a99 (adj 0): bg anr")
    (n,) = out
    assert "Killing" not in n.diagnostics


FAKE_ADB = '''
import subprocess, sys, time
child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
print("10-19 04:40:00.900  1500  1600 I am_anr  : [0,4321,com.example,952647237,Input dispatching timed out]")
print("10-19 04:50:00.000  1500  1510 W Watchdog: *** WATCHDOG KILLING SYSTEM PROCESS: stuck")
sys.stdout.flush()
time.sleep(60)
'''


class ScriptClient:
    """Stands in for AdbClient; ``adb logcat ...`` runs a local script instead."""

    def __init__(self, script):
        self.script = script

    def base_args(self):
        return [sys.executable, str(self.script)]


def wait_for(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def is_gone(proc):
    try:
        return proc.status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


def test_watcher_delivers_on_restricted_thread_and_stops_tree(tmp_path):
    script = tmp_path / "fakeadb.py"
    script.write_text(FAKE_ADB, encoding="utf-8")
    delivered = []

    def sink(n):
        delivered.append((n, get_thread_policy().allow_disk_writes, threading.current_thread().name))

    watcher = LogcatWatcher(ScriptClient(script), sink=sink)
    watcher.start()
    try:
        assert watcher.is_running()
        assert wait_for(lambda: len(delivered) == 2)
        root = psutil.Process(watcher._proc.pid)
        assert wait_for(lambda: len(root.children(recursive=True)) == 1)
        tree = [root] + root.children(recursive=True)
    finally:
        watcher.stop()

    assert [n for n, _, _ in delivered] == [
        AppEarlyNotResponding("com.example", 4321, "Input dispatching timed out"),
        SystemNotResponding("stuck"),
    ]
    assert [allowed for _, allowed, _ in delivered] == [False, False]
    assert {name for _, _, name in delivered} == {"LogcatWatcher"}
    assert watcher.is_running() is False
    assert wait_for(lambda: all(is_gone(p) for p in tree))


def test_stop_without_start_is_harmless(tmp_path):
    watcher = LogcatWatcher(ScriptClient(tmp_path / "unused.py"), sink=lambda n: None)
    watcher.stop()
    assert watcher.is_running() is False
