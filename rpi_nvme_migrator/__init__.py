"""Migrate a Raspberry Pi 5 root filesystem from microSD to NVMe."""

from .__version__ import __version__


__all__ = ["__version__"]
