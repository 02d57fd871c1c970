"""Kernel command line (cmdline.txt) rewriting.

The command line is parsed into whitespace separated tokens and every
``root=`` token is replaced, whatever form it takes:

    root=PARTUUID=775d7214-02
    root=UUID=db3c7508-ce47-4b20-b1da-a1ac4446755c
    root=/dev/mmcblk0p2

Other tokens keep their order and spelling. Rewriting an already rewritten
line gives the same line back.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rpi_nvme_migrator.logging import LoggerFactory
from rpi_nvme_migrator.storage.exceptions import BootConfigError


log = LoggerFactory.for_boot()


@dataclass
class KernelCmdline:
    tokens: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> "KernelCmdline":
        return cls(tokens=text.split())

    def get(self, key: str) -> Optional[str]:
        for token in self.tokens:
            name, sep, value = token.partition("=")
            if name == key and sep:
                return value
        return None

    def set(self, key: str, value: str) -> bool:
        """Replace every ``key=`` token, appending one if none exists.

        Returns:
            True if an existing token was replaced
        """
        replacement = f"{key}={value}"
        replaced = False
        for index, token in enumerate(self.tokens):
            name, sep, _ = token.partition("=")
            if name == key and sep:
                self.tokens[index] = replacement
                replaced = True
        if not replaced:
            self.tokens.append(replacement)
        return replaced

    def serialize(self) -> str:
        return " ".join(self.tokens) + "\n"


def read_config_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as error:
        raise BootConfigError(f"{path} is not valid UTF-8: {error}") from error


def rewrite_root(text: str, root_partuuid: str) -> str:
    cmdline = KernelCmdline.parse(text)
    if not cmdline.set("root", f"PARTUUID={root_partuuid}"):
        log.warning("cmdline.txt had no root= entry; appended one")
    return cmdline.serialize()


def patch_cmdline(path: Path, root_partuuid: str) -> bool:
    """Back up and rewrite ``path`` to boot from ``root_partuuid``.

    Returns:
        False if the file does not exist (nothing written)

    Raises:
        BootConfigError: If the file is not valid UTF-8
    """
    if not path.is_file():
        log.warning(f"{path.name} not found - manual configuration needed")
        return False
    original = read_config_text(path)
    shutil.copy2(path, path.with_name(path.name + ".bak"))
    updated = rewrite_root(original, root_partuuid)
    path.write_text(updated, encoding="utf-8")
    log.info(f"{path.name} updated:")
    log.info(updated.rstrip("\n"))
    return True
