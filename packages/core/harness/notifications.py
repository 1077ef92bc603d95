from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class IntentDescriptor:
    action: Optional[str] = None
    component: Optional[str] = None

    @property
    def package(self) -> Optional[str]:
        if self.component and "/" in self.component:
            return self.component.split("/", 1)[0]
        return None


@dataclass(frozen=True)
class BuildInfo:
    fingerprint: str
    incremental: str
    build_time: str

    @classmethod
    def unknown(cls) -> "BuildInfo":
        return cls(fingerprint="unknown", incremental="unknown", build_time="unknown")


@dataclass(frozen=True)
class ActivityStarting:
    package: str
    intent: Optional[IntentDescriptor] = None


@dataclass(frozen=True)
class ActivityResuming:
    package: str


@dataclass(frozen=True)
class AppCrashed:
    process_name: str
    pid: int
    short_msg: str
    long_msg: str
    timestamp_ms: int
    stack_trace: str


@dataclass(frozen=True)
class AppNotResponding:
    process_name: str
    pid: int
    diagnostics: str


@dataclass(frozen=True)
class AppEarlyNotResponding:
    process_name: str
    pid: int
    annotation: str


@dataclass(frozen=True)
class SystemNotResponding:
    message: str


MonitorNotification = Union[
    ActivityStarting,
    ActivityResuming,
    AppCrashed,
    AppNotResponding,
    AppEarlyNotResponding,
    SystemNotResponding,
]
