"""The migration as an explicit forward-only state machine.

    PRECONDITIONS -> CONFIRMATION -> PARTITION -> FORMAT -> MOUNT
        -> CLONE -> PATCH_BOOT -> FINALIZE -> COMPLETE

Any exception moves the run to FAILED (or ABORTED for a declined
confirmation) and stops it. Resources acquired along the way (the device
lock, the destination mounts) are registered on one ``ExitStack`` so they
are released on every exit transition: success, error or interrupt.
"""

from __future__ import annotations

from contextlib import ExitStack
from typing import Callable, Optional

from rpi_nvme_migrator.boot import (
    configure_boot_order,
    log_source_identifiers,
    patch_cmdline,
    read_destination_identifiers,
    write_fstab,
)
from rpi_nvme_migrator.config.settings import DEFAULT_BOOT_ORDER, get_setting
from rpi_nvme_migrator.domain import (
    STATE_TITLES,
    WORKING_STATES,
    DestinationIdentifiers,
    MigrationPlan,
    MigrationState,
    next_state,
)
from rpi_nvme_migrator.logging import LoggerFactory, operation_context
from rpi_nvme_migrator.storage.clone import clone_system
from rpi_nvme_migrator.storage.commands import run_command
from rpi_nvme_migrator.storage.device_lock import device_operation
from rpi_nvme_migrator.storage.exceptions import UserAbortError
from rpi_nvme_migrator.storage.format import format_partitions
from rpi_nvme_migrator.storage.mount import mounted_destination
from rpi_nvme_migrator.storage.partition import partition_disk
from rpi_nvme_migrator.storage.validation import validate_preconditions
from rpi_nvme_migrator.ui.console import (
    GREEN,
    ask_yes_no,
    completion_banner,
    confirm_destruction,
    display_lines,
)


class Migrator:
    """Runs one migration from PRECONDITIONS to a terminal state."""

    def __init__(
        self,
        plan: Optional[MigrationPlan] = None,
        input_fn: Callable[[str], str] = input,
    ):
        self.plan = plan or MigrationPlan()
        self.input_fn = input_fn
        self.state = MigrationState.PRECONDITIONS
        self.history: list[MigrationState] = [self.state]
        self.identifiers: Optional[DestinationIdentifiers] = None
        self.log = LoggerFactory.for_migration()
        self._stack: Optional[ExitStack] = None
        self._handlers: dict[MigrationState, Callable[[], None]] = {
            MigrationState.PRECONDITIONS: self.check_preconditions,
            MigrationState.CONFIRMATION: self.confirm,
            MigrationState.PARTITION: self.partition,
            MigrationState.FORMAT: self.format,
            MigrationState.MOUNT: self.mount,
            MigrationState.CLONE: self.clone,
            MigrationState.PATCH_BOOT: self.patch_boot,
            MigrationState.FINALIZE: self.finalize,
        }

    def _transition(self, state: MigrationState) -> None:
        self.log.trace(f"{self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def run(self) -> MigrationState:
        """Run to completion.

        Raises:
            Whatever stopped the run, after cleanup has been performed
        """
        with ExitStack() as stack:
            self._stack = stack
            try:
                while not self.state.is_terminal:
                    step = WORKING_STATES.index(self.state) + 1
                    self.log.info(
                        f"Step {step}/{len(WORKING_STATES)}: {STATE_TITLES[self.state]}..."
                    )
                    with operation_context(self.state.value):
                        self._handlers[self.state]()
                    self._transition(next_state(self.state))
            except UserAbortError:
                self._transition(MigrationState.ABORTED)
                raise
            except BaseException:
                self._transition(MigrationState.FAILED)
                raise
            finally:
                self._stack = None
        return self.state

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    def check_preconditions(self) -> None:
        validate_preconditions(self.plan)

    def confirm(self) -> None:
        confirm_destruction(self.plan, self.input_fn)

    def partition(self) -> None:
        # Held until the run ends, whatever the outcome
        self._stack.enter_context(device_operation(self.plan.destination_disk))
        partition_disk(self.plan)

    def format(self) -> None:
        format_partitions(self.plan)

    def mount(self) -> None:
        self._stack.enter_context(mounted_destination(self.plan))

    def clone(self) -> None:
        clone_system(self.plan)

    def patch_boot(self) -> None:
        self.identifiers = read_destination_identifiers(self.plan)
        log_source_identifiers(self.plan)
        patch_cmdline(self.plan.cmdline_path, self.identifiers.root.partuuid)
        write_fstab(self.plan.fstab_path, self.identifiers)

    def finalize(self) -> None:
        run_command(["sync"])
        boot_order = get_setting("eeprom_boot_order", DEFAULT_BOOT_ORDER)
        display_lines(completion_banner(boot_order), GREEN)
        if ask_yes_no("Configure EEPROM boot order for NVMe now? (y/N): ", self.input_fn):
            configure_boot_order(boot_order)
        self.log.info("Done. Reboot when ready.")
