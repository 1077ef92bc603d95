"""
Per-thread disk I/O policy.

Platform callback threads are marked as restricted when they start; the
file log handler drops records emitted from restricted threads. Monitor
handlers relax the restriction for the duration of their body only.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class ThreadPolicy:
    allow_disk_writes: bool = True


_PERMISSIVE = ThreadPolicy(allow_disk_writes=True)
_RESTRICTED = ThreadPolicy(allow_disk_writes=False)

_local = threading.local()


def get_thread_policy() -> ThreadPolicy:
    return getattr(_local, "policy", _PERMISSIVE)


def set_thread_policy(policy: ThreadPolicy) -> None:
    _local.policy = policy


def restrict_thread_disk_writes() -> ThreadPolicy:
    """Forbid disk writes on the calling thread. Returns the previous policy."""
    saved = get_thread_policy()
    set_thread_policy(_RESTRICTED)
    return saved


def allow_thread_disk_writes() -> ThreadPolicy:
    """Permit disk writes on the calling thread. Returns the previous policy."""
    saved = get_thread_policy()
    set_thread_policy(_PERMISSIVE)
    return saved


@contextmanager
def disk_writes_allowed() -> Iterator[None]:
    saved = allow_thread_disk_writes()
    try:
        yield
    finally:
        set_thread_policy(saved)


class DiskWritePolicyFilter(logging.Filter):
    """Rejects records from threads whose policy forbids disk writes."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._dropped = 0

    def filter(self, record: logging.LogRecord) -> bool:
        if get_thread_policy().allow_disk_writes:
            return True
        with self._lock:
            self._dropped += 1
        return False

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped
