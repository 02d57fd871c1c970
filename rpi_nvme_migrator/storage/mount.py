"""Mounting the destination filesystems.

Root is mounted first at a fixed mount point; boot is mounted at
``boot/firmware`` inside it, which is also where the new fstab puts it.
``mounted_destination()`` guarantees both are released on every exit path.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from rpi_nvme_migrator.domain import MigrationPlan
from rpi_nvme_migrator.logging import LoggerFactory

from .commands import run_command
from .exceptions import CommandFailedError, UnmountFailedError
from .validation import is_mountpoint_active


log = LoggerFactory.for_storage()


def mount_partition(partition: str, mountpoint: Path) -> None:
    """Create ``mountpoint`` and mount ``partition`` on it.

    Raises:
        ValueError: If partition is not a /dev/ path
        CommandFailedError: If mount fails
    """
    if not partition.startswith("/dev/"):
        raise ValueError(f"Invalid partition path: {partition}")
    mountpoint.mkdir(parents=True, exist_ok=True)
    run_command(["mount", partition, str(mountpoint)])
    log.debug(f"Mounted {partition} at {mountpoint}")


def unmount(mountpoint: Path) -> None:
    """Unmount ``mountpoint``.

    Raises:
        UnmountFailedError: If umount fails on an active mount point
    """
    try:
        run_command(["umount", str(mountpoint)])
    except CommandFailedError as error:
        raise UnmountFailedError(str(mountpoint), error.message) from error


def unmount_quietly(mountpoint: Path) -> bool:
    """Unmount ``mountpoint``, tolerating paths that are not mounted.

    Returns:
        True if the path is no longer a mount point
    """
    if not is_mountpoint_active(str(mountpoint)):
        log.debug(f"{mountpoint} already unmounted")
        return True
    try:
        unmount(mountpoint)
    except UnmountFailedError as error:
        log.warning(str(error))
        return False
    return True


@contextmanager
def mounted_destination(plan: MigrationPlan) -> Generator[tuple[Path, Path], None, None]:
    """Mount destination root then boot; unmount boot then root on exit.

    Yields:
        (root mount point, boot mount point)
    """
    try:
        mount_partition(plan.destination_root, plan.root_mount)
        mount_partition(plan.destination_boot, plan.boot_mount)
        log.info("Mounted successfully")
        yield plan.root_mount, plan.boot_mount
    finally:
        log.warning("Cleaning up mounts...")
        # Boot is nested inside root and must go first
        for mountpoint in (plan.boot_mount, plan.root_mount):
            unmount_quietly(mountpoint)
