from __future__ import annotations

import logging
from typing import Iterable

TRACE_LOGGER = "harness.trace"
ERROR_LOGGER = "harness.err"

TRACE_PREFIX = "    // "

_trace = logging.getLogger(TRACE_LOGGER)
_err = logging.getLogger(ERROR_LOGGER)


def trace(msg: str) -> None:
    """Progress line on the trace channel, marked as a tailable comment."""
    for line in msg.splitlines() or [""]:
        _trace.info(f"{TRACE_PREFIX}{line}")


def error(msg: str) -> None:
    for line in msg.splitlines() or [""]:
        _err.error(line)


def error_block(lines: Iterable[str]) -> None:
    for line in lines:
        error(line)


def comment_lines(text: str) -> list[str]:
    """Prefix every line of a multi-line payload with the comment marker."""
    return [f"// {line}" for line in text.splitlines()]
