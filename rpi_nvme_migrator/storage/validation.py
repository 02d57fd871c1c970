"""Safety validation functions run before any destructive step.

- Verifies the process runs as root
- Verifies source partitions and the destination disk are block devices
- Verifies every required external program is on PATH
- Validates source != destination
- Verifies no destination partition is mounted

All validation functions raise specific exceptions from the exceptions module
rather than returning boolean values, making error handling more explicit.

Example:
    from rpi_nvme_migrator.storage.validation import validate_preconditions

    try:
        validate_preconditions(plan)
    except PreconditionError as error:
        # Nothing has been touched yet
        ...
"""

from __future__ import annotations

import os
import re
import shutil
import stat
from typing import Iterable, Sequence

from rpi_nvme_migrator.domain import MigrationPlan
from rpi_nvme_migrator.logging import LoggerFactory

from .exceptions import (
    DeviceBusyError,
    DeviceNotFoundError,
    MissingToolError,
    PrivilegeError,
    SourceDestinationSameError,
)


log = LoggerFactory.for_system()

REQUIRED_TOOLS: tuple[str, ...] = (
    "wipefs",
    "dd",
    "parted",
    "partprobe",
    "mkfs.vfat",
    "mkfs.ext4",
    "mount",
    "umount",
    "rsync",
    "blkid",
    "sync",
)


def is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def read_mounts(mounts_path: str = "/proc/mounts") -> list[tuple[str, str]]:
    """Return ``(device, mountpoint)`` pairs from the mount table."""
    entries = []
    with open(mounts_path, "r", encoding="utf-8") as mounts_file:
        for line in mounts_file:
            parts = line.split()
            if len(parts) > 1:
                # Octal escapes (\040 for space) are used in mount table paths
                mountpoint = re.sub(
                    r"\\([0-7]{3})", lambda m: chr(int(m.group(1), 8)), parts[1]
                )
                entries.append((parts[0], mountpoint))
    return entries


def is_mountpoint_active(mountpoint: str) -> bool:
    """Check if a mountpoint is currently active."""
    try:
        return any(target == mountpoint for _, target in read_mounts())
    except FileNotFoundError:
        return os.path.ismount(mountpoint)


def get_base_device(name: str) -> str:
    """Strip the partition suffix from a device name.

    e.g., sda1 -> sda, nvme0n1p1 -> nvme0n1, mmcblk0p2 -> mmcblk0
    """
    name = name.replace("/dev/", "")
    match = re.match(r"^((?:nvme\d+n\d+)|(?:mmcblk\d+)|(?:loop\d+))(?:p\d+)?$", name)
    if match:
        return match.group(1)
    base = name.rstrip("0123456789")
    return base if base else name


def validate_root_privileges() -> None:
    """Raises:
    PrivilegeError: If the effective uid is not 0
    """
    euid = os.geteuid()
    if euid != 0:
        raise PrivilegeError(euid)


def validate_block_device(path: str, role: str = "") -> None:
    """Raises:
    DeviceNotFoundError: If ``path`` is missing or not a block device
    """
    if not is_block_device(path):
        raise DeviceNotFoundError(path, role)


def validate_required_tools(tools: Iterable[str] = REQUIRED_TOOLS) -> None:
    """Raises:
    MissingToolError: Listing every tool missing from PATH
    """
    missing = [tool for tool in tools if shutil.which(tool) is None]
    if missing:
        raise MissingToolError(missing)


def validate_devices_different(source: str, destination: str) -> None:
    """Validate that source and destination are different disks.

    Raises:
        SourceDestinationSameError: If both resolve to the same base disk
    """
    if get_base_device(source) == get_base_device(destination):
        raise SourceDestinationSameError(source, destination)


def validate_partitions_unmounted(partitions: Sequence[str]) -> None:
    """Validate that none of ``partitions`` is mounted anywhere.

    Raises:
        DeviceBusyError: If a partition appears in the mount table
    """
    try:
        mounts = read_mounts()
    except FileNotFoundError:
        return
    for device, mountpoint in mounts:
        if device in partitions:
            raise DeviceBusyError(device, f"mounted at {mountpoint}")


def validate_preconditions(plan: MigrationPlan) -> None:
    """Perform every check required before the confirmation prompt.

    Raises:
        Various PreconditionError subclasses, or DeviceBusyError
    """
    # 1. Root
    validate_root_privileges()

    # 2. Devices
    validate_block_device(plan.destination_disk, "NVMe disk")
    validate_block_device(plan.source_boot, "Source boot partition")
    validate_block_device(plan.source_root_partition, "Source root partition")

    # 3. Tools
    validate_required_tools()

    # 4. Never overwrite the disk we are running from
    validate_devices_different(plan.source_disk, plan.destination_disk)

    # 5. Destination must not be in use
    validate_partitions_unmounted(plan.destination_partitions)

    log.info("Pre-flight checks passed")
