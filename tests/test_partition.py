"""Tests for storage/partition.py - wiping, partitioning and node settling."""

from unittest.mock import call, patch

import pytest

from rpi_nvme_migrator.domain import DEFAULT_LAYOUT
from rpi_nvme_migrator.storage import partition
from rpi_nvme_migrator.storage.exceptions import CommandFailedError, PartitionNodeTimeoutError


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestPartedCommand:
    """Tests for parted_command()."""

    def test_msdos_layout(self):
        """Test the full parted invocation for the default layout."""
        assert partition.parted_command("/dev/nvme0n1", DEFAULT_LAYOUT) == [
            "parted", "-s", "/dev/nvme0n1", "--",
            "mklabel", "msdos",
            "mkpart", "primary", "fat32", "4MiB", "516MiB",
            "set", "1", "lba", "on",
            "mkpart", "primary", "ext4", "516MiB", "100%",
        ]


class TestWipeAndCreate:
    """Tests for wipe_disk() and create_partition_table()."""

    @patch("rpi_nvme_migrator.storage.partition.run_command")
    def test_wipe_disk(self, mock_run):
        """Test signatures are removed and the first 16 MiB zeroed."""
        partition.wipe_disk("/dev/nvme0n1")

        assert mock_run.call_args_list == [
            call(["wipefs", "-af", "/dev/nvme0n1"], log_output=False),
            call(["dd", "if=/dev/zero", "of=/dev/nvme0n1", "bs=1M", "count=16", "status=none"]),
        ]

    @patch("rpi_nvme_migrator.storage.partition.run_command")
    def test_create_partition_table_rereads_table(self, mock_run):
        """Test partprobe runs after parted."""
        partition.create_partition_table("/dev/nvme0n1", DEFAULT_LAYOUT)

        assert mock_run.call_args_list[0][0][0][0] == "parted"
        assert mock_run.call_args_list[1] == call(["partprobe", "/dev/nvme0n1"])


class TestWaitForPartitions:
    """Tests for wait_for_partitions()."""

    def test_returns_immediately_when_present(self):
        """Test no sleep happens when the nodes already exist."""
        clock = FakeClock()

        partition.wait_for_partitions(
            ["/dev/nvme0n1p1", "/dev/nvme0n1p2"],
            exists=lambda node: True,
            sleep=clock.sleep,
            clock=clock,
        )

        assert clock.sleeps == []

    def test_polls_until_nodes_appear(self):
        """Test delays double until the nodes show up."""
        clock = FakeClock()
        appear_at = 1.0

        partition.wait_for_partitions(
            ["/dev/nvme0n1p1", "/dev/nvme0n1p2"],
            timeout=10,
            initial_delay=0.25,
            max_delay=2.0,
            backoff=2.0,
            exists=lambda node: clock.now >= appear_at,
            sleep=clock.sleep,
            clock=clock,
        )

        assert clock.sleeps == [0.25, 0.5, 1.0]

    def test_timeout_names_missing_nodes(self):
        """Test the timeout error lists only the nodes still missing."""
        clock = FakeClock()

        with pytest.raises(PartitionNodeTimeoutError) as exc_info:
            partition.wait_for_partitions(
                ["/dev/nvme0n1p1", "/dev/nvme0n1p2"],
                timeout=3,
                initial_delay=0.25,
                max_delay=1.0,
                backoff=2.0,
                exists=lambda node: node.endswith("p1"),
                sleep=clock.sleep,
                clock=clock,
            )

        assert exc_info.value.missing == ["/dev/nvme0n1p2"]
        # Delay is capped and the last sleep never overshoots the deadline
        assert clock.sleeps == [0.25, 0.5, 1.0, 1.0, 0.25]
        assert clock.now == pytest.approx(3.0)

    def test_uses_settings_defaults(self):
        """Test unset arguments come from the settings defaults."""
        clock = FakeClock()

        with pytest.raises(PartitionNodeTimeoutError) as exc_info:
            partition.wait_for_partitions(
                ["/dev/nvme0n1p1"], exists=lambda node: False, sleep=clock.sleep, clock=clock
            )

        assert exc_info.value.timeout == 10.0
        assert clock.sleeps[0] == 0.25
        assert max(clock.sleeps) == 2.0


class TestPartitionDisk:
    """Tests for partition_disk()."""

    def test_runs_steps_in_order(self, mocker, plan):
        """Test wipe, table creation and wait run in that order."""
        manager = mocker.Mock()
        mocker.patch("rpi_nvme_migrator.storage.partition.wipe_disk", manager.wipe)
        mocker.patch("rpi_nvme_migrator.storage.partition.create_partition_table", manager.create)
        mocker.patch("rpi_nvme_migrator.storage.partition.wait_for_partitions", manager.wait)

        partition.partition_disk(plan)

        assert manager.mock_calls == [
            call.wipe("/dev/nvme0n1", 16),
            call.create("/dev/nvme0n1", DEFAULT_LAYOUT),
            call.wait(("/dev/nvme0n1p1", "/dev/nvme0n1p2")),
        ]

    def test_parted_failure_stops_before_wait(self, mocker, plan):
        """Test a parted failure propagates without waiting for nodes."""
        mocker.patch("rpi_nvme_migrator.storage.partition.wipe_disk")
        mocker.patch(
            "rpi_nvme_migrator.storage.partition.create_partition_table",
            side_effect=CommandFailedError(["parted"], 1, "Error: busy"),
        )
        wait = mocker.patch("rpi_nvme_migrator.storage.partition.wait_for_partitions")

        with pytest.raises(CommandFailedError):
            partition.partition_disk(plan)

        wait.assert_not_called()
