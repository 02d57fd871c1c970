"""Filesystem table generation for the destination.

The table is authored from a fixed three entry template instead of being
transformed from the source: entries such as swap on the old card would be
wrong or harmful on the new disk.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from rpi_nvme_migrator.domain import DestinationIdentifiers
from rpi_nvme_migrator.logging import LoggerFactory
from rpi_nvme_migrator.storage.exceptions import BootConfigError

from .cmdline import read_config_text


log = LoggerFactory.for_boot()

FSTAB_HEADER = (
    "# /etc/fstab - Kali on NVMe SSD\n"
    "# <file system>                          <mount point>   <type>  "
    "<options>                <dump> <pass>\n"
)


@dataclass(frozen=True)
class FstabEntry:
    spec: str
    file: str
    vfstype: str
    mntops: str = "defaults"
    freq: int = 0
    passno: int = 0

    def render(self) -> str:
        return (
            f"{self.spec:<40} {self.file:<15} {self.vfstype:<7} "
            f"{self.mntops:<24} {self.freq:<6} {self.passno}"
        )

    @classmethod
    def parse(cls, line: str) -> "FstabEntry | None":
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            return None
        fields = stripped.split()
        if len(fields) < 3:
            return None
        return cls(
            spec=fields[0],
            file=fields[1],
            vfstype=fields[2],
            mntops=fields[3] if len(fields) > 3 else "defaults",
            freq=int(fields[4]) if len(fields) > 4 and fields[4].isdigit() else 0,
            passno=int(fields[5]) if len(fields) > 5 and fields[5].isdigit() else 0,
        )


def parse_fstab(text: str) -> list[FstabEntry]:
    return [entry for entry in map(FstabEntry.parse, text.splitlines()) if entry]


def build_entries(identifiers: DestinationIdentifiers) -> list[FstabEntry]:
    return [
        FstabEntry(identifiers.root.partuuid_spec, "/", "ext4", "defaults,noatime", 0, 1),
        FstabEntry(identifiers.boot.partuuid_spec, "/boot/firmware", "vfat", "defaults", 0, 2),
        FstabEntry("tmpfs", "/tmp", "tmpfs", "defaults,nosuid,nodev", 0, 0),
    ]


def render_fstab(entries: list[FstabEntry]) -> str:
    return FSTAB_HEADER + "".join(entry.render() + "\n" for entry in entries)


def write_fstab(path: Path, identifiers: DestinationIdentifiers) -> list[FstabEntry]:
    """Back up ``path`` and replace it with the generated table.

    Returns:
        The entries written

    Raises:
        BootConfigError: If the cloned root has no fstab to back up or it is
            not valid UTF-8
    """
    if not path.is_file():
        raise BootConfigError(f"{path} not found on the cloned root filesystem")

    original = read_config_text(path)
    entries = build_entries(identifiers)
    shutil.copy2(path, path.with_name(path.name + ".bak"))
    kept_mountpoints = {entry.file for entry in entries}
    for old in parse_fstab(original):
        if old.file not in kept_mountpoints:
            log.info(f"Dropping fstab entry {old.spec} {old.file} ({old.vfstype})")

    content = render_fstab(entries)
    path.write_text(content, encoding="utf-8")
    log.info("New fstab:")
    for line in content.splitlines():
        log.info(line)
    return entries
