from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class HarnessConfig(BaseModel):
    adb_path: Optional[str] = None  # None: discover adb on PATH
    serial: Optional[str] = None
    event_count: Optional[int] = Field(default=None, ge=0)  # None: run until the source ends
    throttle_ms: int = Field(default=0, ge=0)
    kill_on_anr: bool = True
    logcat_buffers: List[str] = Field(default_factory=lambda: ["main", "system", "crash", "events"])
    log_to_file: bool = True
    verbose: bool = False

    def to_platform_config(self) -> dict:
        return {
            "adb_path": self.adb_path,
            "serial": self.serial,
            "kill_on_anr": self.kill_on_anr,
            "logcat_buffers": list(self.logcat_buffers),
        }
