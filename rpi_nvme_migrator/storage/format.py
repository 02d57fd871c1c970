"""Filesystem creation on the destination partitions."""

from __future__ import annotations

from rpi_nvme_migrator.domain import MigrationPlan
from rpi_nvme_migrator.logging import LoggerFactory

from .commands import run_command


log = LoggerFactory.for_storage()


def format_vfat(partition: str, label: str) -> None:
    run_command(["mkfs.vfat", "-F", "32", "-n", label, partition])


def format_ext4(partition: str, label: str) -> None:
    # -F: proceed even though the partition may carry an old signature
    run_command(["mkfs.ext4", "-F", "-L", label, partition])


def format_partitions(plan: MigrationPlan) -> None:
    format_vfat(plan.destination_boot, plan.boot_label)
    format_ext4(plan.destination_root, plan.root_label)
    log.info("Formatting complete")
