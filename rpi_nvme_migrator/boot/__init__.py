"""Boot configuration for the migrated system.

- cmdline.py: rewrite the kernel command line root= token
- fstab.py: generate the destination filesystem table
- identifiers.py: PARTUUID/UUID lookups via blkid
- eeprom.py: optional bootloader EEPROM boot order update
"""

from .cmdline import KernelCmdline, patch_cmdline, rewrite_root
from .eeprom import configure_boot_order, update_eeprom_config
from .fstab import FstabEntry, build_entries, parse_fstab, render_fstab, write_fstab
from .identifiers import log_source_identifiers, read_destination_identifiers


__all__ = [
    "FstabEntry",
    "KernelCmdline",
    "build_entries",
    "configure_boot_order",
    "log_source_identifiers",
    "parse_fstab",
    "patch_cmdline",
    "read_destination_identifiers",
    "render_fstab",
    "rewrite_root",
    "update_eeprom_config",
    "write_fstab",
]
