"""
Pytest configuration and shared fixtures for rpi-nvme-migrator tests.

No test touches a real block device: subprocess calls and device probes are
patched, and destination mount points live under tmp_path.
"""

import subprocess
from pathlib import Path
from typing import Callable, List

import pytest
from loguru import logger

from rpi_nvme_migrator.config import settings
from rpi_nvme_migrator.domain import (
    DestinationIdentifiers,
    MigrationPlan,
    PartitionIdentifiers,
)


# ==============================================================================
# Plan Fixtures
# ==============================================================================


@pytest.fixture
def plan(tmp_path: Path) -> MigrationPlan:
    """Default plan with the destination root mounted under tmp_path."""
    return MigrationPlan(root_mount=tmp_path / "nvme_root")


@pytest.fixture
def destination_identifiers() -> DestinationIdentifiers:
    """Identifiers blkid would report for a freshly formatted NVMe disk."""
    return DestinationIdentifiers(
        boot=PartitionIdentifiers(
            device="/dev/nvme0n1p1", partuuid="6c586e13-01", uuid="5DF9-E225"
        ),
        root=PartitionIdentifiers(
            device="/dev/nvme0n1p2",
            partuuid="6c586e13-02",
            uuid="9f2d1c3a-8b7e-4e1f-a2b3-c4d5e6f70819",
        ),
    )


# ==============================================================================
# Subprocess Fixtures
# ==============================================================================


@pytest.fixture
def completed_process() -> Callable[..., subprocess.CompletedProcess]:
    """Factory for subprocess.CompletedProcess results."""

    def _make(returncode=0, stdout="", stderr="", args=None):
        return subprocess.CompletedProcess(
            args=args or [], returncode=returncode, stdout=stdout, stderr=stderr
        )

    return _make


# ==============================================================================
# Logging / Settings Fixtures
# ==============================================================================


@pytest.fixture
def log_records() -> List[dict]:
    """Collect loguru records emitted during the test."""
    records: List[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="TRACE")
    yield records
    logger.remove(handler_id)


@pytest.fixture(autouse=True)
def default_settings(tmp_path: Path):
    """Every test starts from DEFAULT_SETTINGS, never the user's file."""
    settings.load_settings(tmp_path / "no-settings.json")
    yield
    settings.load_settings(tmp_path / "no-settings.json")
