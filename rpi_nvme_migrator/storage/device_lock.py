"""Exclusive access to the destination disk for the length of a migration.

Two layers:
    - an advisory ``flock`` on a lock file named after the disk, so a second
      migration run fails instead of racing the first;
    - an ``O_EXCL`` open probe of the disk node, which the kernel refuses
      while a partition is mounted or the disk is claimed by md/LVM.

The disk itself is never held open with ``O_EXCL`` because parted and mkfs
need to open it.

Usage:
    from rpi_nvme_migrator.storage.device_lock import device_operation

    with device_operation("/dev/nvme0n1"):
        # Partition, format, copy
        ...
"""

from __future__ import annotations

import errno
import fcntl
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from rpi_nvme_migrator.config.settings import DEFAULT_LOCK_DIR, get_setting
from rpi_nvme_migrator.logging import LoggerFactory

from .exceptions import DeviceBusyError


log = LoggerFactory.for_storage()


def lock_path_for(device: str, lock_dir: str | None = None) -> Path:
    lock_dir = lock_dir or get_setting("lock_dir", DEFAULT_LOCK_DIR)
    return Path(lock_dir) / f"rpi-nvme-migrator-{Path(device).name}.lock"


def probe_exclusive(device: str) -> None:
    """Check nothing else holds ``device`` exclusively.

    Raises:
        DeviceBusyError: If the kernel reports EBUSY on an O_EXCL open
    """
    try:
        fd = os.open(device, os.O_RDONLY | os.O_EXCL)
    except OSError as error:
        if error.errno == errno.EBUSY:
            raise DeviceBusyError(device, "in use by another holder") from error
        raise
    os.close(fd)


@contextmanager
def device_operation(device: str, lock_dir: str | None = None) -> Generator[Path, None, None]:
    """Hold the migration lock for ``device`` until the block exits.

    Raises:
        DeviceBusyError: If another run holds the lock or the disk is busy
    """
    path = lock_path_for(device, lock_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_file = open(path, "a+", encoding="utf-8")
    try:
        try:
            fcntl.flock(lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as error:
            raise DeviceBusyError(device, f"another migration holds {path}") from error

        lock_file.seek(0)
        lock_file.truncate()
        lock_file.write(f"{os.getpid()}\n")
        lock_file.flush()
        probe_exclusive(device)
        log.debug(f"Acquired exclusive lock on {device} ({path})")

        try:
            yield path
        finally:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
            log.debug(f"Released lock on {device}")
    finally:
        lock_file.close()
