from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from packages.shared.paths import log_path, ensure_app_dirs
from packages.core.harness.channels import TRACE_LOGGER, ERROR_LOGGER
from packages.core.harness.io_policy import DiskWritePolicyFilter


def setup_logging(log_to_file: bool = True, verbose: bool = False) -> Optional[DiskWritePolicyFilter]:
    """Configure the trace/error channels and the diagnostic root logger.

    Returns the disk policy filter attached to the file handler, or None
    when file logging is off or logging was already configured.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    if root.handlers:
        return None

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")
    bare = logging.Formatter("%(message)s")

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(logging.DEBUG if verbose else logging.WARNING)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    trace_logger = logging.getLogger(TRACE_LOGGER)
    trace_logger.setLevel(logging.INFO)
    trace_logger.propagate = False
    out = logging.StreamHandler(sys.stdout)
    out.setFormatter(bare)
    trace_logger.addHandler(out)

    err_logger = logging.getLogger(ERROR_LOGGER)
    err_logger.setLevel(logging.INFO)
    err_logger.propagate = False
    err = logging.StreamHandler(sys.stderr)
    err.setFormatter(bare)
    err_logger.addHandler(err)

    if not log_to_file:
        return None

    ensure_app_dirs()
    policy_filter = DiskWritePolicyFilter()
    fh = RotatingFileHandler(str(log_path()), maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    fh.setLevel(logging.DEBUG if verbose else logging.INFO)
    fh.setFormatter(fmt)
    fh.addFilter(policy_filter)
    root.addHandler(fh)
    trace_logger.addHandler(fh)
    err_logger.addHandler(fh)

    return policy_filter
