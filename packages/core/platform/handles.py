"""
Capability handles the harness needs from the platform, and how they are
acquired and bound to the monitor.

Acquisition is fail-fast: lifecycle, display, package, in that order.
The first missing handle aborts with PlatformConnectionError and nothing
on the platform has been touched yet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from packages.core.harness import channels
from packages.core.harness.controller import ActivityController
from packages.core.harness.errors import PlatformConnectionError, RegistrationError
from packages.core.harness.notifications import BuildInfo

log = logging.getLogger(__name__)

ACTIVITY_MANAGER = "activity manager"
WINDOW_MANAGER = "window manager"
PACKAGE_MANAGER = "package manager"


class LifecycleHandle(Protocol):
    def start_activity(self, component: str) -> bool:
        ...

    def force_stop(self, package: str) -> None:
        ...

    def build_info(self) -> BuildInfo:
        ...

    def set_controller(self, controller: ActivityController) -> None:
        ...

    def clear_controller(self) -> None:
        ...


class DisplayHandle(Protocol):
    def inject_key(self, keycode: str, action: str) -> bool:
        ...

    def inject_touch(self, action: str, x: int, y: int) -> bool:
        ...

    def inject_tap(self, x: int, y: int) -> bool:
        ...

    def inject_text(self, text: str) -> bool:
        ...

    def freeze_rotation(self, rotation: int) -> bool:
        ...

    def thaw_rotation(self) -> bool:
        ...


class PackageHandle(Protocol):
    def list_packages(self) -> List[str]:
        ...

    def is_installed(self, package: str) -> bool:
        ...


class PlatformProvider(Protocol):
    def lifecycle_service(self) -> Optional[LifecycleHandle]:
        ...

    def legacy_lifecycle_service(self) -> Optional[LifecycleHandle]:
        ...

    def display_service(self) -> Optional[DisplayHandle]:
        ...

    def package_service(self) -> Optional[PackageHandle]:
        ...


@dataclass(frozen=True)
class PlatformHandles:
    lifecycle: LifecycleHandle
    display: DisplayHandle
    packages: PackageHandle


def _primary_or_legacy(
    primary: Callable[[], Optional[LifecycleHandle]],
    legacy: Callable[[], Optional[LifecycleHandle]],
) -> Optional[LifecycleHandle]:
    try:
        handle = primary()
    except Exception as e:
        log.info(f"Primary lifecycle service unavailable ({e}), trying legacy")
        handle = None
    if handle is not None:
        return handle
    return legacy()


def _unavailable(which: str, detail: str = "") -> PlatformConnectionError:
    channels.error(f"** Error: Unable to connect to {which}; is the system running?")
    return PlatformConnectionError(which, detail)


def acquire(provider: PlatformProvider) -> PlatformHandles:
    """Obtain all three handles or raise PlatformConnectionError for the first missing one."""
    try:
        lifecycle = _primary_or_legacy(provider.lifecycle_service, provider.legacy_lifecycle_service)
    except Exception as e:
        raise _unavailable(ACTIVITY_MANAGER, str(e)) from e
    if lifecycle is None:
        raise _unavailable(ACTIVITY_MANAGER)

    try:
        display = provider.display_service()
    except Exception as e:
        raise _unavailable(WINDOW_MANAGER, str(e)) from e
    if display is None:
        raise _unavailable(WINDOW_MANAGER)

    try:
        packages = provider.package_service()
    except Exception as e:
        raise _unavailable(PACKAGE_MANAGER, str(e)) from e
    if packages is None:
        raise _unavailable(PACKAGE_MANAGER)

    return PlatformHandles(lifecycle=lifecycle, display=display, packages=packages)


def register(handles: PlatformHandles, controller: ActivityController) -> None:
    try:
        handles.lifecycle.set_controller(controller)
    except Exception as e:
        channels.error(f"** Error: Unable to register activity controller: {e}")
        raise RegistrationError(ACTIVITY_MANAGER, str(e)) from e


def deregister(handles: PlatformHandles) -> None:
    handles.lifecycle.clear_controller()
