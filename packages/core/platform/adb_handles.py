"""
Platform handles backed by adb shell commands.

The lifecycle handle comes in two flavors: the primary one drives
``cmd activity`` and the legacy one drives ``am`` for builds whose
``cmd`` binary does not expose the activity service.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from typing import List, Optional

from packages.core.harness.controller import ANR_KILL, ActivityController
from packages.core.harness.errors import RemoteCommunicationError
from packages.core.harness.io_policy import disk_writes_allowed
from packages.core.harness.notifications import AppNotResponding, BuildInfo, MonitorNotification

from .adb import AdbClient
from .logcat import LogcatWatcher

log = logging.getLogger(__name__)


def _failed(output: str) -> bool:
    return "Error" in output or "Exception" in output


@dataclass
class AdbPlatformConfig:
    adb_path: Optional[str]
    serial: Optional[str]
    kill_on_anr: bool
    logcat_buffers: List[str]


class AdbLifecycleHandle:
    def __init__(self, client: AdbClient, command: List[str], config: AdbPlatformConfig) -> None:
        self._client = client
        self._command = command  # ["cmd", "activity"] or ["am"]
        self._cfg = config
        self._watcher: Optional[LogcatWatcher] = None

    @property
    def command(self) -> List[str]:
        return list(self._command)

    def start_activity(self, component: str) -> bool:
        out = self._client.shell(*self._command, "start", "-W", "-n", shlex.quote(component))
        if _failed(out):
            log.debug(f"start {component}: {out.strip()[:200]}")
            return False
        return True

    def force_stop(self, package: str) -> None:
        self._client.shell(*self._command, "force-stop", shlex.quote(package))

    def build_info(self) -> BuildInfo:
        utc = self._client.getprop("ro.build.date.utc")
        return BuildInfo(
            fingerprint=self._client.getprop("ro.build.fingerprint") or "unknown",
            incremental=self._client.getprop("ro.build.version.incremental") or "unknown",
            build_time=str(int(utc) * 1000) if utc.isdigit() else (utc or "unknown"),
        )

    def set_controller(self, controller: ActivityController) -> None:
        if self._watcher is not None:
            raise RuntimeError("an activity controller is already registered")
        watcher = LogcatWatcher(
            self._client,
            lambda n: self._dispatch(controller, n),
            self._cfg.logcat_buffers,
        )
        watcher.start()
        self._watcher = watcher

    def clear_controller(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.stop()

    def _dispatch(self, controller: ActivityController, n: MonitorNotification) -> object:
        response = controller.handle(n)
        if isinstance(n, AppNotResponding) and response == ANR_KILL and self._cfg.kill_on_anr:
            package = n.process_name.split(":", 1)[0]
            try:
                self.force_stop(package)
            except (RemoteCommunicationError, PermissionError) as e:
                with disk_writes_allowed():
                    log.warning(f"Unable to kill {package} after ANR: {e}")
        return response


class AdbDisplayHandle:
    def __init__(self, client: AdbClient) -> None:
        self._client = client

    def _input(self, *args: str) -> bool:
        out = self._client.shell("input", *args)
        if _failed(out):
            log.debug(f"input {' '.join(args)}: {out.strip()[:200]}")
            return False
        return True

    def inject_key(self, keycode: str, action: str) -> bool:
        if action != "press":
            # `input` only sends complete down+up pairs
            log.debug(f"key {action} is not supported over adb input")
            return False
        return self._input("keyevent", shlex.quote(keycode))

    def inject_touch(self, action: str, x: int, y: int) -> bool:
        return self._input("motionevent", action.upper(), str(x), str(y))

    def inject_tap(self, x: int, y: int) -> bool:
        return self._input("tap", str(x), str(y))

    def inject_text(self, text: str) -> bool:
        return self._input("text", shlex.quote(text.replace(" ", "%s")))

    def freeze_rotation(self, rotation: int) -> bool:
        self._client.shell("settings", "put", "system", "accelerometer_rotation", "0")
        self._client.shell("settings", "put", "system", "user_rotation", str(rotation))
        return True

    def thaw_rotation(self) -> bool:
        self._client.shell("settings", "put", "system", "accelerometer_rotation", "1")
        return True


class AdbPackageHandle:
    def __init__(self, client: AdbClient) -> None:
        self._client = client

    def list_packages(self) -> List[str]:
        out = self._client.shell("pm", "list", "packages")
        return [line.split(":", 1)[1].strip() for line in out.splitlines() if line.startswith("package:")]

    def is_installed(self, package: str) -> bool:
        return package in self.list_packages()


class AdbPlatform:
    """PlatformProvider over a single adb-connected device."""

    def __init__(self, config: dict, client: Optional[AdbClient] = None) -> None:
        self._cfg = self._parse_config(config)
        self._client = client or AdbClient(self._cfg.adb_path, self._cfg.serial)

    @staticmethod
    def _parse_config(config: dict) -> AdbPlatformConfig:
        return AdbPlatformConfig(
            adb_path=config.get("adb_path"),
            serial=config.get("serial"),
            kill_on_anr=config.get("kill_on_anr", True),
            logcat_buffers=list(config.get("logcat_buffers") or []),
        )

    @property
    def client(self) -> AdbClient:
        return self._client

    def lifecycle_service(self) -> Optional[AdbLifecycleHandle]:
        if not self._client.is_device_ready():
            return None
        services = self._client.shell("cmd", "-l")
        if "activity" not in services.split():
            log.info("`cmd activity` unavailable on this build")
            return None
        return AdbLifecycleHandle(self._client, ["cmd", "activity"], self._cfg)

    def legacy_lifecycle_service(self) -> Optional[AdbLifecycleHandle]:
        if not self._client.is_device_ready():
            return None
        if not self._client.has_service("activity"):
            return None
        return AdbLifecycleHandle(self._client, ["am"], self._cfg)

    def display_service(self) -> Optional[AdbDisplayHandle]:
        if not self._client.has_service("window"):
            return None
        return AdbDisplayHandle(self._client)

    def package_service(self) -> Optional[AdbPackageHandle]:
        if not self._client.has_service("package"):
            return None
        return AdbPackageHandle(self._client)
