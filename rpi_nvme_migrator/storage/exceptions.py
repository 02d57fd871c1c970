"""Custom exceptions for the migration.

Exception Hierarchy:
    MigrationError (base)
        ├── PreconditionError
        │   ├── PrivilegeError
        │   ├── DeviceNotFoundError
        │   ├── MissingToolError
        │   └── SourceDestinationSameError
        ├── UserAbortError
        ├── DeviceError
        │   ├── DeviceBusyError
        │   └── PartitionNodeTimeoutError
        ├── CommandFailedError
        ├── MountError
        │   └── UnmountFailedError
        └── BootConfigError
            └── IdentifierLookupError

Usage:
    from rpi_nvme_migrator.storage.exceptions import DeviceNotFoundError

    if not is_block_device(path):
        raise DeviceNotFoundError(path, "NVMe disk")
"""

from __future__ import annotations

from typing import Sequence


class MigrationError(Exception):
    """Base exception for all migration failures."""


class PreconditionError(MigrationError):
    """A check that must pass before anything destructive happens failed."""


class PrivilegeError(PreconditionError):
    """The process is not running as root."""

    def __init__(self, euid: int):
        self.euid = euid
        super().__init__(f"Run as root (effective uid is {euid})")


class DeviceNotFoundError(PreconditionError):
    """Device was not found or is not a block device."""

    def __init__(self, device: str, role: str = ""):
        self.device = device
        self.role = role
        if role:
            super().__init__(f"{role} {device} not found")
        else:
            super().__init__(f"Device not found: {device}")


class MissingToolError(PreconditionError):
    """A required external program is not on PATH."""

    def __init__(self, tools: Sequence[str]):
        self.tools = list(tools)
        super().__init__(f"Missing tool: {', '.join(self.tools)}")


class SourceDestinationSameError(PreconditionError):
    """Source and destination devices are the same."""

    def __init__(self, source_name: str, destination_name: str):
        self.source_name = source_name
        self.destination_name = destination_name
        super().__init__(
            f"Source and destination cannot be the same device: "
            f"{source_name} == {destination_name}"
        )


class UserAbortError(MigrationError):
    """The operator did not confirm the destructive action."""

    def __init__(self, answer: str | None = None):
        self.answer = answer
        super().__init__("Aborted by user")


class DeviceError(MigrationError):
    """Base exception for device-related errors."""


class DeviceBusyError(DeviceError):
    """Device is currently in use, mounted, or locked by another run."""

    def __init__(self, device_name: str, reason: str = ""):
        self.device_name = device_name
        self.reason = reason
        msg = f"Device {device_name} is busy"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PartitionNodeTimeoutError(DeviceError):
    """Partition device nodes did not appear after repartitioning."""

    def __init__(self, missing: Sequence[str], timeout: float):
        self.missing = list(missing)
        self.timeout = timeout
        super().__init__(
            f"Partition {', '.join(self.missing)} not created "
            f"(waited {timeout:.1f}s)"
        )


class CommandFailedError(MigrationError):
    """An external command exited with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, message: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.message = message
        text = f"Command failed ({' '.join(self.command)}) with exit code {returncode}"
        if message:
            text += f": {message}"
        super().__init__(text)


class MountError(MigrationError):
    """Base exception for mount-related errors."""


class UnmountFailedError(MountError):
    """Failed to unmount a mount point."""

    def __init__(self, mountpoint: str, reason: str = ""):
        self.mountpoint = mountpoint
        self.reason = reason
        msg = f"Failed to unmount {mountpoint}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class BootConfigError(MigrationError):
    """Base exception for cmdline.txt and fstab patching."""


class IdentifierLookupError(BootConfigError):
    """blkid returned no value for a partition tag."""

    def __init__(self, device: str, tag: str):
        self.device = device
        self.tag = tag
        super().__init__(f"Unable to resolve {tag} for {device}")
