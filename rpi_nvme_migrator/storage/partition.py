"""Destination disk partitioning.

Layout (MBR):
    p1: FAT32, 4MiB - 516MiB, LBA flag set (boot firmware)
    p2: ext4, 516MiB - 100% (root filesystem)

The boot partition is larger than the stock image's so future kernel
updates fit.

Operations:
    - wipe_disk(): Remove signatures and zero the first 16 MiB
    - create_partition_table(): Write the MBR table with parted
    - wait_for_partitions(): Poll for the partition nodes with backoff
    - partition_disk(): All of the above in order
"""

from __future__ import annotations

import time
from typing import Callable, Sequence

from rpi_nvme_migrator.config.settings import (
    DEFAULT_SETTLE_BACKOFF_FACTOR,
    DEFAULT_SETTLE_INITIAL_DELAY,
    DEFAULT_SETTLE_MAX_DELAY,
    DEFAULT_SETTLE_TIMEOUT_SECONDS,
    get_float,
)
from rpi_nvme_migrator.domain import MigrationPlan, PartitionSpec
from rpi_nvme_migrator.logging import LoggerFactory

from .commands import run_command
from .exceptions import PartitionNodeTimeoutError
from .validation import is_block_device


log = LoggerFactory.for_storage()


def wipe_disk(device: str, zero_mib: int = 16) -> None:
    log.debug(f"Wiping signatures and first {zero_mib} MiB of {device}")
    run_command(["wipefs", "-af", device], log_output=False)
    run_command(
        ["dd", "if=/dev/zero", f"of={device}", "bs=1M", f"count={zero_mib}", "status=none"]
    )


def parted_command(device: str, layout: Sequence[PartitionSpec]) -> list[str]:
    command = ["parted", "-s", device, "--", "mklabel", "msdos"]
    for spec in layout:
        command += spec.parted_args()
    return command


def create_partition_table(device: str, layout: Sequence[PartitionSpec]) -> None:
    run_command(parted_command(device, layout))
    run_command(["partprobe", device])


def wait_for_partitions(
    partitions: Sequence[str],
    *,
    timeout: float | None = None,
    initial_delay: float | None = None,
    max_delay: float | None = None,
    backoff: float | None = None,
    exists: Callable[[str], bool] = is_block_device,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Wait for partition nodes to appear after the table is rewritten.

    udev creates the nodes asynchronously; poll with exponential backoff until
    every node is a block device or ``timeout`` elapses.

    Raises:
        PartitionNodeTimeoutError: Naming the nodes still missing
    """
    timeout = timeout if timeout is not None else get_float(
        "settle_timeout_seconds", DEFAULT_SETTLE_TIMEOUT_SECONDS
    )
    delay = initial_delay if initial_delay is not None else get_float(
        "settle_initial_delay", DEFAULT_SETTLE_INITIAL_DELAY
    )
    max_delay = max_delay if max_delay is not None else get_float(
        "settle_max_delay", DEFAULT_SETTLE_MAX_DELAY
    )
    backoff = backoff if backoff is not None else get_float(
        "settle_backoff_factor", DEFAULT_SETTLE_BACKOFF_FACTOR
    )

    deadline = clock() + timeout
    while True:
        missing = [node for node in partitions if not exists(node)]
        if not missing:
            log.debug(f"Partition nodes present: {', '.join(partitions)}")
            return
        remaining = deadline - clock()
        if remaining <= 0:
            raise PartitionNodeTimeoutError(missing, timeout)
        log.trace(f"Waiting {min(delay, remaining):.2f}s for {', '.join(missing)}")
        sleep(min(delay, remaining))
        delay = min(delay * backoff, max_delay)


def partition_disk(plan: MigrationPlan) -> None:
    """Wipe and repartition the destination, then wait for its partitions."""
    wipe_disk(plan.destination_disk, plan.wipe_bytes_mib)
    create_partition_table(plan.destination_disk, plan.layout)
    wait_for_partitions(plan.destination_partitions)
    log.info("Partitions created successfully")
