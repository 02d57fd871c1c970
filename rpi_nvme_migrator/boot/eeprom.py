"""Pi 5 bootloader EEPROM boot order configuration.

BOOT_ORDER is read right to left, one nibble per boot mode:
    0xf416 -> NVMe (6), SD (1), USB (4), restart (f)

``update_eeprom_config()`` is a pure text transform; ``configure_boot_order()``
reads the current config with ``rpi-eeprom-config``, applies the transform
and hands the result to ``rpi-eeprom-config --apply``.
"""

from __future__ import annotations

import os
import shutil
import tempfile

from rpi_nvme_migrator.config.settings import DEFAULT_BOOT_ORDER, get_setting
from rpi_nvme_migrator.logging import LoggerFactory
from rpi_nvme_migrator.storage.commands import run_command


log = LoggerFactory.for_eeprom()

EEPROM_TOOL = "rpi-eeprom-config"


def _is_setting(line: str, key: str) -> bool:
    return line.strip().startswith(f"{key}=")


def update_eeprom_config(config: str, boot_order: str = DEFAULT_BOOT_ORDER) -> str:
    """Set BOOT_ORDER and make sure PCIE_PROBE is present."""
    lines = config.splitlines()
    if any(_is_setting(line, "BOOT_ORDER") for line in lines):
        lines = [
            f"BOOT_ORDER={boot_order}" if _is_setting(line, "BOOT_ORDER") else line
            for line in lines
        ]
    else:
        lines.append(f"BOOT_ORDER={boot_order}")

    if not any(_is_setting(line, "PCIE_PROBE") for line in lines):
        lines.append("PCIE_PROBE=1")
    return "\n".join(lines) + "\n"


def read_current_config() -> str:
    result = run_command([EEPROM_TOOL], check=False)
    if result.returncode != 0:
        log.warning("Could not read current EEPROM config; starting from empty")
        return ""
    return result.stdout


def configure_boot_order(boot_order: str | None = None) -> bool:
    """Apply an NVMe-first boot order to the bootloader EEPROM.

    Returns:
        False if rpi-eeprom-config is not installed (nothing changed)

    Raises:
        CommandFailedError: If ``rpi-eeprom-config --apply`` fails
    """
    boot_order = boot_order or get_setting("eeprom_boot_order", DEFAULT_BOOT_ORDER)
    if shutil.which(EEPROM_TOOL) is None:
        log.warning(f"{EEPROM_TOOL} not found. Install with: apt install rpi-eeprom")
        log.warning(f"Then manually set BOOT_ORDER={boot_order}")
        return False

    log.info("Updating EEPROM boot order...")
    new_config = update_eeprom_config(read_current_config(), boot_order)

    fd, tmp_path = tempfile.mkstemp(prefix="eeprom-", suffix=".conf")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(new_config)
        run_command([EEPROM_TOOL, "--apply", tmp_path])
    finally:
        os.unlink(tmp_path)

    log.success(f"EEPROM updated. Boot order: {boot_order} (NVMe -> SD -> USB -> Restart)")
    log.warning("Reboot required to apply EEPROM changes")
    return True
