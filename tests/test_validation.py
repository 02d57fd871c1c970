"""Tests for storage/validation.py - pre-flight checks.

Covers:
- Block device detection and mount table parsing
- Base device names for nvme, mmcblk and sd disks
- Each individual precondition check
- validate_preconditions() ordering
"""

import stat
from unittest.mock import Mock, patch

import pytest

from rpi_nvme_migrator.storage import validation
from rpi_nvme_migrator.storage.exceptions import (
    DeviceBusyError,
    DeviceNotFoundError,
    MissingToolError,
    PrivilegeError,
    SourceDestinationSameError,
)


def _block_stat():
    return Mock(st_mode=stat.S_IFBLK | 0o660)


class TestIsBlockDevice:
    """Tests for is_block_device()."""

    @patch("rpi_nvme_migrator.storage.validation.os.stat")
    def test_block_device(self, mock_stat):
        """Test a node with S_IFBLK mode is a block device."""
        mock_stat.return_value = _block_stat()
        assert validation.is_block_device("/dev/nvme0n1") is True

    @patch("rpi_nvme_migrator.storage.validation.os.stat", side_effect=FileNotFoundError)
    def test_missing_path(self, mock_stat):
        """Test a missing node is reported as not a block device."""
        assert validation.is_block_device("/dev/nvme9n9") is False

    def test_regular_file_is_not_block_device(self, tmp_path):
        """Test a regular file is rejected."""
        path = tmp_path / "disk.img"
        path.write_bytes(b"\0" * 16)
        assert validation.is_block_device(str(path)) is False


class TestReadMounts:
    """Tests for read_mounts() and is_mountpoint_active()."""

    def test_parses_device_and_mountpoint(self, tmp_path):
        """Test device and mount point are taken from the first two fields."""
        mounts = tmp_path / "mounts"
        mounts.write_text(
            "/dev/mmcblk0p2 / ext4 rw,noatime 0 0\n"
            "/dev/mmcblk0p1 /boot/firmware vfat rw 0 0\n"
        )

        assert validation.read_mounts(str(mounts)) == [
            ("/dev/mmcblk0p2", "/"),
            ("/dev/mmcblk0p1", "/boot/firmware"),
        ]

    def test_decodes_octal_escapes(self, tmp_path):
        """Test \\040 in a mount point is decoded to a space."""
        mounts = tmp_path / "mounts"
        mounts.write_text("/dev/sda1 /media/my\\040drive vfat rw 0 0\n")

        assert validation.read_mounts(str(mounts)) == [("/dev/sda1", "/media/my drive")]

    @patch("rpi_nvme_migrator.storage.validation.read_mounts")
    def test_is_mountpoint_active(self, mock_read):
        """Test only exact mount point matches count as active."""
        mock_read.return_value = [("/dev/nvme0n1p2", "/mnt/nvme_root")]

        assert validation.is_mountpoint_active("/mnt/nvme_root") is True
        assert validation.is_mountpoint_active("/mnt/nvme_root/boot/firmware") is False


class TestGetBaseDevice:
    """Tests for get_base_device()."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("nvme0n1p1", "nvme0n1"),
            ("nvme0n1", "nvme0n1"),
            ("/dev/mmcblk0p2", "mmcblk0"),
            ("mmcblk0", "mmcblk0"),
            ("sda1", "sda"),
            ("/dev/sdb", "sdb"),
        ],
    )
    def test_strips_partition_suffix(self, name, expected):
        """Test partition suffixes are removed for each naming scheme."""
        assert validation.get_base_device(name) == expected


class TestIndividualChecks:
    """Tests for each precondition check."""

    @patch("rpi_nvme_migrator.storage.validation.os.geteuid", return_value=1000)
    def test_non_root_rejected(self, mock_euid):
        """Test a non-zero effective uid raises PrivilegeError."""
        with pytest.raises(PrivilegeError):
            validation.validate_root_privileges()

    @patch("rpi_nvme_migrator.storage.validation.os.geteuid", return_value=0)
    def test_root_accepted(self, mock_euid):
        """Test root passes the privilege check."""
        validation.validate_root_privileges()

    @patch("rpi_nvme_migrator.storage.validation.is_block_device", return_value=False)
    def test_missing_block_device(self, mock_is_block):
        """Test a missing device is reported with its role."""
        with pytest.raises(DeviceNotFoundError) as exc_info:
            validation.validate_block_device("/dev/nvme0n1", "NVMe disk")
        assert "NVMe disk /dev/nvme0n1 not found" in str(exc_info.value)

    @patch("rpi_nvme_migrator.storage.validation.shutil.which")
    def test_missing_tools_reported_together(self, mock_which):
        """Test every missing tool is listed in one error."""
        mock_which.side_effect = lambda tool: None if tool in ("rsync", "parted") else f"/usr/bin/{tool}"

        with pytest.raises(MissingToolError) as exc_info:
            validation.validate_required_tools()

        assert exc_info.value.tools == ["parted", "rsync"]

    @patch("rpi_nvme_migrator.storage.validation.shutil.which", return_value="/usr/bin/x")
    def test_all_tools_present(self, mock_which):
        """Test every required tool is looked up on PATH."""
        validation.validate_required_tools()
        assert mock_which.call_count == len(validation.REQUIRED_TOOLS)

    def test_same_disk_rejected(self):
        """Test a partition of the source disk is refused as destination."""
        with pytest.raises(SourceDestinationSameError):
            validation.validate_devices_different("/dev/mmcblk0", "/dev/mmcblk0p2")

    def test_different_disks_accepted(self):
        """Test distinct disks pass."""
        validation.validate_devices_different("/dev/mmcblk0", "/dev/nvme0n1")

    @patch("rpi_nvme_migrator.storage.validation.read_mounts")
    def test_mounted_destination_partition_rejected(self, mock_read):
        """Test a mounted destination partition raises with its mount point."""
        mock_read.return_value = [
            ("/dev/mmcblk0p2", "/"),
            ("/dev/nvme0n1p2", "/media/pi/rootfs"),
        ]

        with pytest.raises(DeviceBusyError) as exc_info:
            validation.validate_partitions_unmounted(("/dev/nvme0n1p1", "/dev/nvme0n1p2"))

        assert "/media/pi/rootfs" in str(exc_info.value)

    @patch("rpi_nvme_migrator.storage.validation.read_mounts", side_effect=FileNotFoundError)
    def test_missing_mount_table_is_tolerated(self, mock_read):
        """Test a missing /proc/mounts does not block the run."""
        validation.validate_partitions_unmounted(("/dev/nvme0n1p1",))


class TestValidatePreconditions:
    """Tests for validate_preconditions()."""

    @pytest.fixture
    def all_ok(self, mocker):
        mocker.patch("rpi_nvme_migrator.storage.validation.os.geteuid", return_value=0)
        mocker.patch("rpi_nvme_migrator.storage.validation.is_block_device", return_value=True)
        mocker.patch("rpi_nvme_migrator.storage.validation.shutil.which", return_value="/usr/bin/x")
        mocker.patch("rpi_nvme_migrator.storage.validation.read_mounts", return_value=[])

    def test_passes_when_everything_present(self, all_ok, plan):
        """Test a healthy system passes every check."""
        validation.validate_preconditions(plan)

    @pytest.mark.parametrize(
        "missing, role",
        [
            ("/dev/nvme0n1", "NVMe disk"),
            ("/dev/mmcblk0p1", "Source boot partition"),
            ("/dev/mmcblk0p2", "Source root partition"),
        ],
    )
    def test_each_missing_device_fails(self, all_ok, mocker, plan, missing, role):
        """Test each required device is checked and named on failure."""
        mocker.patch(
            "rpi_nvme_migrator.storage.validation.is_block_device",
            side_effect=lambda path: path != missing,
        )

        with pytest.raises(DeviceNotFoundError) as exc_info:
            validation.validate_preconditions(plan)

        assert exc_info.value.device == missing
        assert exc_info.value.role == role

    def test_privilege_checked_first(self, all_ok, mocker, plan):
        """Test devices are not probed when not running as root."""
        mocker.patch("rpi_nvme_migrator.storage.validation.os.geteuid", return_value=1000)
        is_block = mocker.patch("rpi_nvme_migrator.storage.validation.is_block_device")

        with pytest.raises(PrivilegeError):
            validation.validate_preconditions(plan)

        is_block.assert_not_called()
