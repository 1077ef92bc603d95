"""
Event sources: pull-based producers of Events.

``next_event()`` returns the next Event, or None once the stream has
ended. The orchestrator never asks a source for more than one Event at
a time.
"""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Protocol, TextIO

from .errors import ScriptError
from .events import (
    ActivityEvent,
    Event,
    KeyEvent,
    RotationEvent,
    TapEvent,
    TextEvent,
    ThrottleEvent,
    TouchEvent,
)


class EventSource(Protocol):
    def next_event(self) -> Optional[Event]:
        ...


class IterableEventSource:
    def __init__(self, events: Iterable[Event]) -> None:
        self._it = iter(events)

    def next_event(self) -> Optional[Event]:
        return next(self._it, None)


class BoundedEventSource:
    """Ends the wrapped stream after ``count`` events."""

    def __init__(self, source: EventSource, count: int) -> None:
        self._source = source
        self._remaining = count

    def next_event(self) -> Optional[Event]:
        if self._remaining <= 0:
            return None
        ev = self._source.next_event()
        if ev is not None:
            self._remaining -= 1
        return ev


def _ints(line_no: int, line: str, args: List[str], n: int) -> List[int]:
    if len(args) != n:
        raise ScriptError(line_no, line, f"expected {n} numeric argument(s)")
    try:
        return [int(a) for a in args]
    except ValueError:
        raise ScriptError(line_no, line, "not a number") from None


class ScriptEventSource:
    """
    Reads events from a line-oriented command script.

        press KEYCODE_BACK          key down+up
        key down|up KEYCODE_A
        touch down|up|move X Y
        tap X Y
        type some text
        sleep MS
        rotate 0-3 [persist]
        launch com.example/.MainActivity
        quit                        end of stream

    Blank lines and lines starting with ``#`` are skipped.
    """

    def __init__(self, lines: Iterable[str]) -> None:
        self._lines: Iterator[str] = iter(lines)
        self._line_no = 0
        self._done = False

    @classmethod
    def from_path(cls, path: Path) -> "ScriptEventSource":
        return cls(Path(path).read_text(encoding="utf-8").splitlines())

    @classmethod
    def from_stream(cls, stream: TextIO) -> "ScriptEventSource":
        return cls(stream)

    def next_event(self) -> Optional[Event]:
        if self._done:
            return None
        for raw in self._lines:
            self._line_no += 1
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            ev = self._parse(line)
            if ev is None:
                self._done = True
            return ev
        self._done = True
        return None

    def _parse(self, line: str) -> Optional[Event]:
        cmd, *tail = line.split(None, 1)
        cmd = cmd.lower()
        rest = tail[0].strip() if tail else ""
        n = self._line_no

        if cmd == "quit":
            return None
        if cmd == "type":
            if not rest:
                raise ScriptError(n, line, "nothing to type")
            return TextEvent(rest)

        try:
            args = shlex.split(rest)
        except ValueError as e:
            raise ScriptError(n, line, str(e)) from None

        try:
            if cmd == "press":
                if len(args) != 1:
                    raise ScriptError(n, line, "expected a keycode")
                return KeyEvent(args[0], "press")
            if cmd == "key":
                if len(args) != 2:
                    raise ScriptError(n, line, "expected down|up and a keycode")
                return KeyEvent(args[1], args[0].lower())
            if cmd == "touch":
                if not args:
                    raise ScriptError(n, line, "expected down|up|move")
                x, y = _ints(n, line, args[1:], 2)
                return TouchEvent(args[0].lower(), x, y)
            if cmd == "tap":
                x, y = _ints(n, line, args, 2)
                return TapEvent(x, y)
            if cmd == "sleep":
                (ms,) = _ints(n, line, args, 1)
                return ThrottleEvent(ms)
            if cmd == "rotate":
                if not args or len(args) > 2 or (len(args) == 2 and args[1].lower() != "persist"):
                    raise ScriptError(n, line, "expected a rotation and optional 'persist'")
                (rotation,) = _ints(n, line, args[:1], 1)
                return RotationEvent(rotation, persist=len(args) == 2)
            if cmd == "launch":
                if len(args) != 1:
                    raise ScriptError(n, line, "expected package/.Activity")
                return ActivityEvent(args[0])
        except ScriptError:
            raise
        except ValueError as e:
            raise ScriptError(n, line, str(e)) from None

        raise ScriptError(n, line, f"unknown command {cmd!r}")
