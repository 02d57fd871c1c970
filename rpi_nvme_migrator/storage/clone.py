"""Copying the running system onto the mounted destination.

Two rsync passes:
    1. ``/`` -> root mount, staying on the root filesystem (``-x``) and
       excluding boot firmware, virtual filesystems and caches.
    2. ``/boot/firmware/`` -> boot mount. The firmware lives on its own
       source partition so it is copied from its mount, not walked as part
       of the root tree.

Both passes preserve permissions, ownership (numeric ids), ACLs, xattrs,
hard links and sparse files.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from rpi_nvme_migrator.config.settings import DEFAULT_PROGRESS_LOG_INTERVAL, get_float
from rpi_nvme_migrator.domain import ROOT_EXCLUDES, RUNTIME_PLACEHOLDERS, MigrationPlan
from rpi_nvme_migrator.logging import LoggerFactory, ThrottledLogger

from .commands import run_streaming_command


log = LoggerFactory.for_storage()

ROOT_RSYNC_FLAGS = ("-axHAWXS", "--numeric-ids", "--info=progress2")
BOOT_RSYNC_FLAGS = ("-avHAWXS", "--numeric-ids", "--info=progress2")


def rsync_root_command(
    source: str, destination: Path, excludes: Iterable[str] = ROOT_EXCLUDES
) -> list[str]:
    command = ["rsync", *ROOT_RSYNC_FLAGS]
    command += [f"--exclude={pattern}" for pattern in excludes]
    command += [_with_slash(source), f"{destination}/"]
    return command


def rsync_boot_command(source: str, destination: Path) -> list[str]:
    return ["rsync", *BOOT_RSYNC_FLAGS, _with_slash(source), f"{destination}/"]


def _with_slash(path: str) -> str:
    return path if path.endswith("/") else f"{path}/"


def _progress_reporter(label: str):
    throttled = ThrottledLogger(
        LoggerFactory.for_progress(),
        interval_seconds=get_float("progress_log_interval", DEFAULT_PROGRESS_LOG_INTERVAL),
    )

    def report(progress: dict) -> None:
        throttled.info(
            label,
            f"{label}: {progress['percent']}% "
            f"({progress['bytes']:,} bytes, {progress['rate']}, eta {progress['eta']})",
        )

    return report


def create_runtime_placeholders(root: Path) -> None:
    """Recreate the excluded runtime mount points as empty directories."""
    for name in RUNTIME_PLACEHOLDERS:
        (root / name).mkdir(parents=True, exist_ok=True)
    os.chmod(root / "tmp", 0o1777)


def clone_root(plan: MigrationPlan) -> None:
    log.info("Cloning root filesystem (this will take a while)...")
    log.info(f"Source: {plan.source_root} (mounted from {plan.source_root_partition})")
    log.info(f"Destination: {plan.root_mount}")
    run_streaming_command(
        rsync_root_command(plan.source_root, plan.root_mount),
        progress_callback=_progress_reporter("root"),
    )
    create_runtime_placeholders(plan.root_mount)
    log.info("Root filesystem cloned")


def clone_boot(plan: MigrationPlan) -> None:
    log.info("Cloning boot partition...")
    run_streaming_command(
        rsync_boot_command(plan.source_boot_dir, plan.boot_mount),
        progress_callback=_progress_reporter("boot"),
    )
    log.info("Boot partition cloned")


def clone_system(plan: MigrationPlan) -> None:
    clone_root(plan)
    clone_boot(plan)
