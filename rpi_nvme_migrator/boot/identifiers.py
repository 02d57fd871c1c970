"""Partition identifier lookups via blkid."""

from __future__ import annotations

from typing import Optional

from rpi_nvme_migrator.domain import DestinationIdentifiers, MigrationPlan, PartitionIdentifiers
from rpi_nvme_migrator.logging import LoggerFactory
from rpi_nvme_migrator.storage.commands import run_checked_command
from rpi_nvme_migrator.storage.exceptions import CommandFailedError, IdentifierLookupError


log = LoggerFactory.for_boot()


def blkid_value(device: str, tag: str) -> Optional[str]:
    """Return the value of ``tag`` for ``device``, or None if blkid has none.

    blkid exits 2 when the tag is absent; that is reported as None rather
    than an error.
    """
    try:
        output = run_checked_command(["blkid", "-s", tag, "-o", "value", device])
    except CommandFailedError as error:
        if error.returncode == 2:
            return None
        raise
    value = output.strip()
    return value or None


def read_identifiers(device: str) -> PartitionIdentifiers:
    """Raises:
    IdentifierLookupError: If the partition has no PARTUUID
    """
    partuuid = blkid_value(device, "PARTUUID")
    if not partuuid:
        raise IdentifierLookupError(device, "PARTUUID")
    return PartitionIdentifiers(device=device, partuuid=partuuid, uuid=blkid_value(device, "UUID"))


def read_destination_identifiers(plan: MigrationPlan) -> DestinationIdentifiers:
    identifiers = DestinationIdentifiers(
        boot=read_identifiers(plan.destination_boot),
        root=read_identifiers(plan.destination_root),
    )
    log.info(f"NVMe root PARTUUID: {identifiers.root.partuuid}")
    log.info(f"NVMe boot PARTUUID: {identifiers.boot.partuuid}")
    log.debug(f"NVMe root UUID: {identifiers.root.uuid}, boot UUID: {identifiers.boot.uuid}")
    return identifiers


def log_source_identifiers(plan: MigrationPlan) -> None:
    """Record the microSD identifiers so a manual rollback has them at hand."""
    for device in (plan.source_root_partition, plan.source_boot):
        try:
            log.info(f"Source {device} PARTUUID: {blkid_value(device, 'PARTUUID')}")
        except CommandFailedError as error:
            log.warning(f"Could not read PARTUUID of {device}: {error}")
