"""Domain models for the microSD to NVMe migration."""

from __future__ import annotations

from .models import (
    DEFAULT_LAYOUT,
    ROOT_EXCLUDES,
    RUNTIME_PLACEHOLDERS,
    STATE_TITLES,
    WORKING_STATES,
    DestinationIdentifiers,
    MigrationPlan,
    MigrationState,
    PartitionIdentifiers,
    PartitionSpec,
    next_state,
    partition_path,
)


__all__ = [
    "DEFAULT_LAYOUT",
    "ROOT_EXCLUDES",
    "RUNTIME_PLACEHOLDERS",
    "STATE_TITLES",
    "WORKING_STATES",
    "DestinationIdentifiers",
    "MigrationPlan",
    "MigrationState",
    "PartitionIdentifiers",
    "PartitionSpec",
    "next_state",
    "partition_path",
]
