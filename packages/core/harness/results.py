from __future__ import annotations

from enum import Enum


class InjectionResult(Enum):
    SUCCESS = 1
    FAIL = 0
    REMOTE_ERROR = -1
    PERMISSION_DENIED = -2


EXIT_OK = 0
EXIT_LOOP_FAULT = 1
EXIT_INTERRUPTED = 130
EXIT_NO_PLATFORM = -3
EXIT_REGISTRATION_FAILED = -4
