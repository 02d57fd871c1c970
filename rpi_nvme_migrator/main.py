"""Command line entry point for the microSD to NVMe migration."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional, Sequence

from rpi_nvme_migrator.__version__ import __version__
from rpi_nvme_migrator.config.settings import load_settings
from rpi_nvme_migrator.domain import MigrationPlan
from rpi_nvme_migrator.logging import LoggerFactory, setup_logging
from rpi_nvme_migrator.migration import Migrator
from rpi_nvme_migrator.storage.exceptions import MigrationError, UserAbortError


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_ABORTED = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rpi-nvme-migrate",
        description=(
            "Migrate the running Raspberry Pi 5 system from microSD to NVMe. "
            "ALL DATA ON THE NVMe DISK WILL BE DESTROYED."
        ),
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Log every command and transition")
    parser.add_argument("--log-dir", type=Path, default=None, help="Directory for log files")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug, trace=args.trace, log_dir=args.log_dir)
    load_settings()
    log = LoggerFactory.for_system()

    migrator = Migrator(MigrationPlan())
    try:
        migrator.run()
    except UserAbortError as error:
        log.error(str(error))
        return EXIT_ABORTED
    except MigrationError as error:
        log.error(str(error))
        log.error(f"Migration stopped in state {migrator.history[-2].value}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        log.error("Interrupted; destination left partially written")
        return EXIT_INTERRUPTED
    except OSError as error:
        log.exception(f"Unexpected I/O error: {error}")
        return EXIT_FAILURE
    return EXIT_OK
