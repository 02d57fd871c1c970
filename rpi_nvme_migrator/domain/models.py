"""Domain model for the microSD to NVMe migration.

The plan is a fixed description of the devices, mount points and layout;
identifiers are read from the destination after formatting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


# ==============================================================================
# Migration States
# ==============================================================================


class MigrationState(Enum):
    """Forward-only states of a migration run."""

    PRECONDITIONS = "preconditions"
    CONFIRMATION = "confirmation"
    PARTITION = "partition"
    FORMAT = "format"
    MOUNT = "mount"
    CLONE = "clone"
    PATCH_BOOT = "patch_boot"
    FINALIZE = "finalize"
    COMPLETE = "complete"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            MigrationState.COMPLETE,
            MigrationState.ABORTED,
            MigrationState.FAILED,
        )


WORKING_STATES: tuple[MigrationState, ...] = (
    MigrationState.PRECONDITIONS,
    MigrationState.CONFIRMATION,
    MigrationState.PARTITION,
    MigrationState.FORMAT,
    MigrationState.MOUNT,
    MigrationState.CLONE,
    MigrationState.PATCH_BOOT,
    MigrationState.FINALIZE,
)

STATE_TITLES: dict[MigrationState, str] = {
    MigrationState.PRECONDITIONS: "Checking preconditions",
    MigrationState.CONFIRMATION: "Waiting for confirmation",
    MigrationState.PARTITION: "Partitioning NVMe SSD",
    MigrationState.FORMAT: "Formatting partitions",
    MigrationState.MOUNT: "Mounting partitions",
    MigrationState.CLONE: "Cloning root filesystem and boot partition",
    MigrationState.PATCH_BOOT: "Updating boot configuration",
    MigrationState.FINALIZE: "Syncing and finishing",
}


def next_state(state: MigrationState) -> MigrationState:
    """Return the single forward transition out of a working state."""
    if state.is_terminal:
        raise ValueError(f"No transition out of terminal state {state.value}")
    index = WORKING_STATES.index(state)
    if index + 1 == len(WORKING_STATES):
        return MigrationState.COMPLETE
    return WORKING_STATES[index + 1]


# ==============================================================================
# Devices and Layout
# ==============================================================================


def partition_path(disk: str, number: int) -> str:
    """Partition node for a disk (nvme0n1 -> nvme0n1p1, sda -> sda1)."""
    suffix = "p" if disk[-1].isdigit() else ""
    return f"{disk}{suffix}{number}"


@dataclass(frozen=True)
class PartitionSpec:
    """One primary partition of the destination MBR layout."""

    number: int
    fs_type_hint: str  # parted filesystem type hint
    start: str
    end: str
    lba: bool = False

    def parted_args(self) -> list[str]:
        args = ["mkpart", "primary", self.fs_type_hint, self.start, self.end]
        if self.lba:
            args += ["set", str(self.number), "lba", "on"]
        return args


DEFAULT_LAYOUT: tuple[PartitionSpec, ...] = (
    PartitionSpec(number=1, fs_type_hint="fat32", start="4MiB", end="516MiB", lba=True),
    PartitionSpec(number=2, fs_type_hint="ext4", start="516MiB", end="100%"),
)

ROOT_EXCLUDES: tuple[str, ...] = (
    "/boot/firmware/*",
    "/mnt/*",
    "/proc/*",
    "/sys/*",
    "/dev/*",
    "/run/*",
    "/tmp/*",
    "/var/tmp/*",
    "/var/cache/apt/archives/*.deb",
    "/lost+found",
)

RUNTIME_PLACEHOLDERS: tuple[str, ...] = (
    "proc",
    "sys",
    "dev",
    "run",
    "tmp",
    "mnt",
    "boot/firmware",
)


@dataclass(frozen=True)
class MigrationPlan:
    """Everything the migration needs to know about devices and paths."""

    source_disk: str = "/dev/mmcblk0"
    destination_disk: str = "/dev/nvme0n1"
    source_description: str = "microSD - Kali"
    destination_description: str = "NVMe SSD - 1TB BIWIN"
    root_mount: Path = Path("/mnt/nvme_root")
    boot_subdir: str = "boot/firmware"
    source_root: str = "/"
    source_boot_dir: str = "/boot/firmware"
    boot_label: str = "BOOT"
    root_label: str = "kali-root"
    layout: tuple[PartitionSpec, ...] = field(default=DEFAULT_LAYOUT)
    wipe_bytes_mib: int = 16

    @property
    def source_boot(self) -> str:
        return partition_path(self.source_disk, 1)

    @property
    def source_root_partition(self) -> str:
        return partition_path(self.source_disk, 2)

    @property
    def destination_boot(self) -> str:
        return partition_path(self.destination_disk, 1)

    @property
    def destination_root(self) -> str:
        return partition_path(self.destination_disk, 2)

    @property
    def destination_partitions(self) -> tuple[str, str]:
        return (self.destination_boot, self.destination_root)

    @property
    def boot_mount(self) -> Path:
        return self.root_mount / self.boot_subdir

    @property
    def cmdline_path(self) -> Path:
        return self.boot_mount / "cmdline.txt"

    @property
    def fstab_path(self) -> Path:
        return self.root_mount / "etc" / "fstab"


# ==============================================================================
# Identifiers
# ==============================================================================


@dataclass(frozen=True)
class PartitionIdentifiers:
    """PARTUUID and filesystem UUID of one partition, as reported by blkid."""

    device: str
    partuuid: str
    uuid: str | None = None

    @property
    def partuuid_spec(self) -> str:
        return f"PARTUUID={self.partuuid}"


@dataclass(frozen=True)
class DestinationIdentifiers:
    boot: PartitionIdentifiers
    root: PartitionIdentifiers
