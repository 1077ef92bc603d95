"""
tests/test_config.py
Config model, store fallbacks and CLI overrides.
"""

import json

from apps.cli.main import apply_overrides, build_parser, build_source
from packages.core.harness.events import TapEvent
from packages.core.harness.sources import BoundedEventSource, ScriptEventSource
from packages.shared.config import HarnessConfig
from packages.shared.store import ConfigStore


def test_missing_file_is_created_with_defaults(tmp_path):
    path = tmp_path / "cfg" / "config.json"
    cfg = ConfigStore(path).load()

    assert cfg == HarnessConfig()
    assert json.loads(path.read_text(encoding="utf-8"))["throttle_ms"] == 0


def test_valid_file_is_loaded(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"serial": "R58M123", "throttle_ms": 300, "kill_on_anr": False}), encoding="utf-8")

    cfg = ConfigStore(path).load()

    assert cfg.serial == "R58M123"
    assert cfg.throttle_ms == 300
    assert cfg.to_platform_config()["kill_on_anr"] is False


def test_corrupt_file_resets_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    assert ConfigStore(path).load() == HarnessConfig()
    assert json.loads(path.read_text(encoding="utf-8")) == json.loads(HarnessConfig().model_dump_json())


def test_invalid_values_reset_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"throttle_ms": -10}), encoding="utf-8")

    assert ConfigStore(path).load().throttle_ms == 0


def test_cli_overrides_config():
    args = build_parser().parse_args(["-s", "emulator-5556", "--count", "25", "--throttle", "100", "--no-log-file"])
    cfg = apply_overrides(HarnessConfig(serial="other"), args)

    assert cfg.serial == "emulator-5556"
    assert cfg.event_count == 25
    assert cfg.throttle_ms == 100
    assert cfg.log_to_file is False


def test_cli_keeps_config_when_flags_absent():
    cfg = apply_overrides(HarnessConfig(serial="keep", throttle_ms=5), build_parser().parse_args([]))
    assert (cfg.serial, cfg.throttle_ms, cfg.log_to_file) == ("keep", 5, True)


def test_build_source_bounds_script(tmp_path):
    script = tmp_path / "events.txt"
    script.write_text("tap 1 1\ntap 2 2\ntap 3 3\n", encoding="utf-8")

    source = build_source(HarnessConfig(event_count=2), script)

    assert isinstance(source, BoundedEventSource)
    assert [source.next_event(), source.next_event(), source.next_event()] == [TapEvent(1, 1), TapEvent(2, 2), None]


def test_build_source_unbounded(tmp_path):
    script = tmp_path / "events.txt"
    script.write_text("quit\n", encoding="utf-8")
    assert isinstance(build_source(HarnessConfig(), script), ScriptEventSource)


def test_home_override(tmp_path, monkeypatch):
    from packages.shared import paths

    monkeypatch.setenv(paths.HOME_ENV, str(tmp_path / "h"))
    paths.ensure_app_dirs()

    assert paths.config_path() == tmp_path / "h" / "config.json"
    assert (tmp_path / "h" / "logs").is_dir()
    assert ConfigStore().path() == str(tmp_path / "h" / "config.json")


def test_config_warning_reaches_configured_logging(tmp_path, monkeypatch):
    import logging

    from apps.cli import main as cli

    cfg_path = tmp_path / "config.json"
    cfg_path.write_text("{not json", encoding="utf-8")
    script = tmp_path / "events.txt"
    script.write_text("quit\n", encoding="utf-8")

    seen = []

    class Collect(logging.Handler):
        def emit(self, record):
            seen.append(record.getMessage())

    collector = Collect()
    setup_calls = []

    def fake_setup_logging(log_to_file, verbose):
        setup_calls.append((log_to_file, verbose, list(seen)))
        logging.getLogger().addHandler(collector)

    class FakeOrchestrator:
        def __init__(self, platform, source, throttle_ms=0):
            pass

        def run(self):
            return 0

    monkeypatch.setattr(cli, "setup_logging", fake_setup_logging)
    monkeypatch.setattr(cli, "Orchestrator", FakeOrchestrator)
    monkeypatch.setattr(cli, "AdbPlatform", lambda cfg: None)
    try:
        status = cli.main(["--config", str(cfg_path), "--script", str(script), "--no-log-file", "-v"])
    finally:
        logging.getLogger().removeHandler(collector)

    assert status == 0
    assert setup_calls == [(False, True, [])]
    assert any("resetting to defaults" in m for m in seen)

