"""Terminal banners and prompts for the operator."""

from __future__ import annotations

import sys
from typing import Callable, Iterable, Optional, TextIO

from rpi_nvme_migrator.domain import MigrationPlan
from rpi_nvme_migrator.storage.exceptions import UserAbortError


RED = "\033[0;31m"
GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
NC = "\033[0m"

BOX_WIDTH = 62
CONFIRMATION_WORD = "YES"

InputFn = Callable[[str], str]


def render_box(title: str, lines: Iterable[str], width: int = BOX_WIDTH) -> list[str]:
    """Frame ``title`` and ``lines`` in a box-drawing border."""
    rows = [f"╔{'═' * width}╗", f"║  {title:<{width - 2}}║", f"╠{'═' * width}╣"]
    rows += [f"║  {line:<{width - 2}}║" for line in lines]
    rows.append(f"╚{'═' * width}╝")
    return rows


def display_lines(
    rows: Iterable[str], color: str = "", stream: Optional[TextIO] = None
) -> None:
    stream = stream or sys.stdout
    colorize = bool(color) and stream.isatty()
    print("", file=stream)
    for row in rows:
        print(f"{color}{row}{NC}" if colorize else row, file=stream)
    print("", file=stream)


def warning_banner(plan: MigrationPlan) -> list[str]:
    return render_box(
        f"WARNING: ALL DATA ON {plan.destination_disk} WILL BE DESTROYED",
        [
            f"Source:  {plan.source_disk}  ({plan.source_description})",
            f"Target:  {plan.destination_disk}  ({plan.destination_description})",
        ],
    )


def completion_banner(boot_order: str) -> list[str]:
    return render_box(
        "MIGRATION COMPLETE",
        [
            "Next steps:",
            "",
            "1. Configure Pi 5 EEPROM to boot from NVMe:",
            "   sudo rpi-eeprom-config --edit",
            f"   Set: BOOT_ORDER={boot_order}",
            "   (NVMe first, then SD, then USB, then restart)",
            "",
            "2. Reboot:",
            "   sudo reboot",
            "",
            "3. After successful NVMe boot, verify with:",
            "   lsblk",
            "   findmnt /",
            "",
            "KEEP THE microSD AS FALLBACK until verified!",
        ],
    )


def _read(prompt: str, input_fn: InputFn) -> Optional[str]:
    try:
        return input_fn(prompt)
    except EOFError:
        return None


def confirm_destruction(plan: MigrationPlan, input_fn: InputFn = input) -> None:
    """Show the warning and require the exact word YES.

    Raises:
        UserAbortError: On any other answer, including end of input
    """
    display_lines(warning_banner(plan), RED)
    # Exact match only: "YES " and " YES" are refused, unlike a shell `read`
    answer = _read(f"Type {CONFIRMATION_WORD} to proceed: ", input_fn)
    if answer != CONFIRMATION_WORD:
        raise UserAbortError(answer)


def ask_yes_no(prompt: str, input_fn: InputFn = input) -> bool:
    """Default-no question; only ``y`` or ``Y`` answers yes."""
    answer = _read(prompt, input_fn)
    return answer is not None and answer in ("y", "Y")
