"""Pytest configuration and in-memory platform fakes."""
import logging
from collections import deque

import pytest

from packages.core.harness.notifications import BuildInfo


class FakeLifecycle:
    def __init__(self, log):
        self.log = log
        self.controller = None
        self.set_calls = 0
        self.clear_calls = 0
        self.register_error = None
        self.clear_error = None
        self.stopped = []

    def start_activity(self, component):
        self.log.append(("activity", component))
        return True

    def force_stop(self, package):
        self.stopped.append(package)

    def build_info(self):
        return BuildInfo(fingerprint="test/fp:user", incremental="4242", build_time="1700000000000")

    def set_controller(self, controller):
        if self.register_error is not None:
            raise self.register_error
        self.set_calls += 1
        self.controller = controller

    def clear_controller(self):
        self.clear_calls += 1
        if self.clear_error is not None:
            raise self.clear_error
        self.controller = None


class FakeDisplay:
    """Records every call; ``outcomes`` scripts the result of successive input injections."""

    def __init__(self, log):
        self.log = log
        self.outcomes = deque()
        self.rotation_error = None

    def _next(self, record):
        self.log.append(record)
        outcome = self.outcomes.popleft() if self.outcomes else True
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def inject_key(self, keycode, action):
        return self._next(("key", keycode, action))

    def inject_touch(self, action, x, y):
        return self._next(("touch", action, x, y))

    def inject_tap(self, x, y):
        return self._next(("tap", x, y))

    def inject_text(self, text):
        return self._next(("text", text))

    def freeze_rotation(self, rotation):
        self.log.append(("freeze", rotation))
        if self.rotation_error is not None:
            raise self.rotation_error
        return True

    def thaw_rotation(self):
        self.log.append(("thaw",))
        return True

    def restores(self):
        return sum(
            1 for a, b in zip(self.log, self.log[1:]) if a == ("freeze", 0) and b == ("thaw",)
        )

    def injected(self):
        return [r for r in self.log if r[0] not in ("freeze", "thaw")]


class FakePackages:
    def list_packages(self):
        return ["com.example"]

    def is_installed(self, package):
        return package in self.list_packages()


class FakeProvider:
    def __init__(self):
        self.log = []
        self.lifecycle = FakeLifecycle(self.log)
        self.display = FakeDisplay(self.log)
        self.packages = FakePackages()
        self.missing = set()
        self.primary_error = None
        self.calls = []

    def lifecycle_service(self):
        self.calls.append("lifecycle")
        if self.primary_error is not None:
            raise self.primary_error
        return None if "lifecycle" in self.missing else self.lifecycle

    def legacy_lifecycle_service(self):
        self.calls.append("legacy")
        return None if "legacy" in self.missing else self.lifecycle

    def display_service(self):
        self.calls.append("display")
        return None if "display" in self.missing else self.display

    def package_service(self):
        self.calls.append("package")
        return None if "package" in self.missing else self.packages


class RecordingSource:
    """Yields the given events; list items that are exceptions are raised instead."""

    def __init__(self, items, on_pull=None):
        self._items = list(items)
        self._on_pull = on_pull
        self.pulls = 0

    def next_event(self):
        self.pulls += 1
        if self._on_pull is not None:
            self._on_pull(self.pulls)
        if not self._items:
            return None
        item = self._items.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture(autouse=True)
def _capture_info(caplog):
    caplog.set_level(logging.INFO)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def no_sleep():
    calls = []
    return calls.append, calls


@pytest.fixture
def make_source():
    return RecordingSource
