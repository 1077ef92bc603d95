"""
Android Debug Bridge client.

Runs ``adb`` through subprocess and maps failures onto the harness error
taxonomy:
  - adb missing, non-zero transport status, device offline/not found
    -> RemoteCommunicationError
  - SecurityException / Permission Denial in the command output
    -> PermissionError

Calls have no timeout; a wedged device blocks the caller.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import List, Optional, Sequence

from packages.core.harness.errors import RemoteCommunicationError

log = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (
    "device offline",
    "device not found",
    "no devices/emulators found",
    "device unauthorized",
    "more than one device",
    "closed",
)

_PERMISSION_ERRORS = (
    "SecurityException",
    "Permission Denial",
    "permission denied",
)


def detect_adb_path() -> Optional[str]:
    return shutil.which("adb")


class AdbClient:
    def __init__(self, adb_path: Optional[str] = None, serial: Optional[str] = None) -> None:
        self._adb = adb_path or detect_adb_path() or "adb"
        self._serial = serial

    @property
    def adb_path(self) -> str:
        return self._adb

    @property
    def serial(self) -> Optional[str]:
        return self._serial

    def base_args(self) -> List[str]:
        args = [self._adb]
        if self._serial:
            args += ["-s", self._serial]
        return args

    def run(self, args: Sequence[str]) -> str:
        """Run an adb subcommand and return its stdout."""
        cmd = self.base_args() + list(args)
        log.debug(f"adb: {' '.join(cmd[1:])}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                creationflags=subprocess.CREATE_NO_WINDOW if hasattr(subprocess, 'CREATE_NO_WINDOW') else 0
            )
        except FileNotFoundError as e:
            raise RemoteCommunicationError(f"adb executable not found: {self._adb}") from e
        except OSError as e:
            raise RemoteCommunicationError(f"adb failed to start: {e}") from e

        combined = f"{result.stdout}\n{result.stderr}"
        if any(marker in combined for marker in _PERMISSION_ERRORS):
            raise PermissionError(_first_line(combined))
        if result.returncode != 0:
            stderr = result.stderr.strip()
            log.debug(f"adb returned non-zero exit code: {result.returncode}")
            if stderr:
                log.debug(f"adb stderr: {stderr[:200]}")
            raise RemoteCommunicationError(
                f"adb {' '.join(args)} exited with {result.returncode}: {_first_line(stderr)}"
            )
        if any(marker in result.stderr for marker in _TRANSPORT_ERRORS):
            raise RemoteCommunicationError(_first_line(result.stderr))
        return result.stdout

    def shell(self, *args: str) -> str:
        return self.run(["shell", *args])

    def get_state(self) -> str:
        return self.run(["get-state"]).strip()

    def getprop(self, name: str) -> str:
        return self.shell("getprop", name).strip()

    def is_device_ready(self) -> bool:
        try:
            return self.get_state() == "device"
        except (RemoteCommunicationError, PermissionError) as e:
            log.debug(f"adb get-state failed: {e}")
            return False

    def has_service(self, name: str) -> bool:
        """True when ``service check <name>`` reports the service as found."""
        out = self.shell("service", "check", name)
        return "not found" not in out and "found" in out


def _first_line(text: str) -> str:
    for line in text.splitlines():
        line = line.strip()
        if line:
            return line
    return ""
