from __future__ import annotations


class HarnessError(Exception):
    pass


class PlatformConnectionError(HarnessError, ConnectionError):
    """A platform handle could not be obtained."""

    def __init__(self, which: str, detail: str = "") -> None:
        self.which = which
        self.detail = detail
        msg = f"Unable to connect to {which}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class RegistrationError(PlatformConnectionError):
    """The monitor could not be attached to the lifecycle handle."""


class RemoteCommunicationError(HarnessError):
    """Transport to the platform failed while executing a call."""


class ScriptError(HarnessError, ValueError):
    def __init__(self, line_no: int, line: str, reason: str) -> None:
        self.line_no = line_no
        self.line = line
        super().__init__(f"line {line_no}: {reason}: {line!r}")
