import argparse
import logging
import sys
from logging.handlers import MemoryHandler
from pathlib import Path
from typing import List, Optional

from packages.shared.config import HarnessConfig
from packages.shared.store import ConfigStore
from packages.core.logging_ import setup_logging
from packages.core.harness.orchestrator import Orchestrator
from packages.core.harness.sources import BoundedEventSource, EventSource, ScriptEventSource
from packages.core.platform.adb_handles import AdbPlatform


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="monkey-harness",
        description="Inject scripted input into an Android device while watching for crashes and ANRs.",
    )
    p.add_argument("--config", type=Path, help="config JSON (default: per-user app data dir)")
    p.add_argument("-s", "--serial", help="target device serial")
    p.add_argument("--script", type=Path, help="event script (default: read commands from stdin)")
    p.add_argument("--count", type=int, help="stop after this many events")
    p.add_argument("--throttle", type=int, metavar="MS", help="delay after each event")
    p.add_argument("--no-log-file", action="store_true", help="do not write the rotating log file")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def apply_overrides(cfg: HarnessConfig, args: argparse.Namespace) -> HarnessConfig:
    updates = {}
    if args.serial:
        updates["serial"] = args.serial
    if args.count is not None:
        updates["event_count"] = args.count
    if args.throttle is not None:
        updates["throttle_ms"] = args.throttle
    if args.no_log_file:
        updates["log_to_file"] = False
    if args.verbose:
        updates["verbose"] = True
    return HarnessConfig.model_validate({**cfg.model_dump(), **updates})


def build_source(cfg: HarnessConfig, script: Optional[Path]) -> EventSource:
    source: EventSource
    if script is not None:
        source = ScriptEventSource.from_path(script)
    else:
        source = ScriptEventSource.from_stream(sys.stdin)
    if cfg.event_count is not None:
        source = BoundedEventSource(source, cfg.event_count)
    return source


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    # config warnings are replayed once the channels exist
    pending = MemoryHandler(capacity=1000, flushLevel=logging.CRITICAL + 1)
    store_log = logging.getLogger(ConfigStore.__module__)
    store_log.addHandler(pending)
    try:
        cfg = apply_overrides(ConfigStore(args.config).load(), args)
    finally:
        store_log.removeHandler(pending)
    setup_logging(log_to_file=cfg.log_to_file, verbose=cfg.verbose)
    for record in pending.buffer:
        logging.getLogger(record.name).handle(record)
    pending.close()

    try:
        source = build_source(cfg, args.script)
    except OSError as e:
        parser.error(f"cannot read script: {e}")
    platform = AdbPlatform(cfg.to_platform_config())
    return Orchestrator(platform, source, throttle_ms=cfg.throttle_ms).run()


if __name__ == "__main__":
    sys.exit(main())
