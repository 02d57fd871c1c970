"""Settings storage for migration tunables.

Device paths and the partition layout are fixed; only timing and firmware
values can be overridden from the settings file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


SETTINGS_PATH = Path(
    os.environ.get(
        "RPI_NVME_MIGRATOR_SETTINGS_PATH",
        Path.home() / ".config" / "rpi-nvme-migrator" / "settings.json",
    )
)

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_SETTLE_TIMEOUT_SECONDS = 10.0
DEFAULT_SETTLE_INITIAL_DELAY = 0.25
DEFAULT_SETTLE_MAX_DELAY = 2.0
DEFAULT_SETTLE_BACKOFF_FACTOR = 2.0
DEFAULT_BOOT_ORDER = "0xf416"
DEFAULT_LOCK_DIR = "/run/lock"
DEFAULT_PROGRESS_LOG_INTERVAL = 5.0

DEFAULT_SETTINGS: dict[str, Any] = {
    "settle_timeout_seconds": DEFAULT_SETTLE_TIMEOUT_SECONDS,
    "settle_initial_delay": DEFAULT_SETTLE_INITIAL_DELAY,
    "settle_max_delay": DEFAULT_SETTLE_MAX_DELAY,
    "settle_backoff_factor": DEFAULT_SETTLE_BACKOFF_FACTOR,
    "eeprom_boot_order": DEFAULT_BOOT_ORDER,
    "lock_dir": DEFAULT_LOCK_DIR,
    "progress_log_interval": DEFAULT_PROGRESS_LOG_INTERVAL,
}


@dataclass
class SettingsStore:
    values: dict[str, Any] = field(default_factory=dict)


settings_store = SettingsStore()


def load_settings(path: Path | None = None) -> None:
    settings_store.values = dict(DEFAULT_SETTINGS)
    path = path or SETTINGS_PATH
    if not path.exists():
        return
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return
    if isinstance(data, dict):
        settings_store.values.update(
            {key: value for key, value in data.items() if key in DEFAULT_SETTINGS}
        )


def get_setting(key: str, default: Any | None = None) -> Any:
    return settings_store.values.get(key, default)


def get_float(key: str, default: float) -> float:
    try:
        return float(get_setting(key, default))
    except (TypeError, ValueError):
        return default


load_settings()
