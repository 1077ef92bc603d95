"""
Immutable descriptions of the actions the harness injects.

Every variant carries a ``kind`` tag and validates its attributes on
construction. Events are consumed exactly once by injection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal, Union

ROTATION_0 = 0
ROTATION_90 = 1
ROTATION_180 = 2
ROTATION_270 = 3

KeyAction = Literal["press", "down", "up"]
TouchAction = Literal["down", "up", "move"]


def _check_point(x: int, y: int) -> None:
    if x < 0 or y < 0:
        raise ValueError(f"coordinates must be non-negative, got ({x}, {y})")


@dataclass(frozen=True)
class KeyEvent:
    kind: ClassVar[str] = "key"
    keycode: str
    action: KeyAction = "press"

    def __post_init__(self) -> None:
        if not self.keycode:
            raise ValueError("keycode must not be empty")
        if self.action not in ("press", "down", "up"):
            raise ValueError(f"unknown key action: {self.action}")


@dataclass(frozen=True)
class TouchEvent:
    kind: ClassVar[str] = "touch"
    action: TouchAction
    x: int
    y: int

    def __post_init__(self) -> None:
        if self.action not in ("down", "up", "move"):
            raise ValueError(f"unknown touch action: {self.action}")
        _check_point(self.x, self.y)


@dataclass(frozen=True)
class TapEvent:
    kind: ClassVar[str] = "tap"
    x: int
    y: int

    def __post_init__(self) -> None:
        _check_point(self.x, self.y)


@dataclass(frozen=True)
class TextEvent:
    kind: ClassVar[str] = "text"
    text: str


@dataclass(frozen=True)
class RotationEvent:
    """Freeze the display at ``rotation``; release the lock unless ``persist``."""
    kind: ClassVar[str] = "rotation"
    rotation: int
    persist: bool = False

    def __post_init__(self) -> None:
        if self.rotation not in (ROTATION_0, ROTATION_90, ROTATION_180, ROTATION_270):
            raise ValueError(f"rotation must be 0-3, got {self.rotation}")


@dataclass(frozen=True)
class ActivityEvent:
    kind: ClassVar[str] = "activity"
    component: str  # "com.example/.MainActivity"

    def __post_init__(self) -> None:
        pkg, sep, cls = self.component.partition("/")
        if not pkg or not sep or not cls:
            raise ValueError(f"component must look like package/.Activity, got {self.component!r}")

    @property
    def package(self) -> str:
        return self.component.split("/", 1)[0]


@dataclass(frozen=True)
class ThrottleEvent:
    kind: ClassVar[str] = "throttle"
    millis: int

    def __post_init__(self) -> None:
        if self.millis < 0:
            raise ValueError(f"throttle must be non-negative, got {self.millis}")


Event = Union[KeyEvent, TouchEvent, TapEvent, TextEvent, RotationEvent, ActivityEvent, ThrottleEvent]


def restore_rotation_event() -> RotationEvent:
    """The drain event: natural orientation, rotation lock released."""
    return RotationEvent(ROTATION_0, persist=False)
