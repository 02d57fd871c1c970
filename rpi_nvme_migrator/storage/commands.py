"""Command execution helpers.

Every external program the migration runs goes through this module so the
command line is logged and a non-zero exit becomes ``CommandFailedError``.
"""

from __future__ import annotations

import codecs
import re
import shlex
import subprocess
from typing import Callable, Optional, Sequence

from rpi_nvme_migrator.logging import LoggerFactory
from rpi_nvme_migrator.storage.exceptions import CommandFailedError


log = LoggerFactory.for_storage()

TERMINATE_TIMEOUT_SECONDS = 10

# rsync --info=progress2 line, e.g. "  1,234,567  42%   12.34MB/s    0:01:02 (xfr#10, to-chk=5/20)"
_RSYNC_PROGRESS = re.compile(
    r"^\s*(?P<bytes>[\d,]+)\s+(?P<percent>\d+)%\s+(?P<rate>\S+/s)\s+(?P<eta>\d+:\d{2}:\d{2})"
)


def _fmt(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(part) for part in command)


def _failure_message(stderr: Optional[str], stdout: Optional[str]) -> str:
    stderr = (stderr or "").strip()
    stdout = (stdout or "").strip()
    text = stderr or stdout
    if not text:
        return ""
    return text.splitlines()[-1]


def run_command(
    command: Sequence[str],
    check: bool = True,
    log_output: bool = True,
) -> subprocess.CompletedProcess:
    """Run a command, capturing output.

    Raises:
        CommandFailedError: If ``check`` is set and the command exits non-zero
    """
    command = list(command)
    log.debug(f"Running command: {_fmt(command)}")
    result = subprocess.run(
        command,
        text=True,
        capture_output=True,
    )
    if result.stdout and (log_output or result.returncode != 0):
        log.trace(f"stdout: {result.stdout.strip()}")
    if result.stderr and (log_output or result.returncode != 0):
        log.trace(f"stderr: {result.stderr.strip()}")
    if check and result.returncode != 0:
        raise CommandFailedError(
            command,
            result.returncode,
            _failure_message(result.stderr, result.stdout),
        )
    return result


def run_checked_command(command: Sequence[str]) -> str:
    """Run a command and return its stdout, raising on failure."""
    return run_command(command).stdout


def parse_rsync_progress(line: str) -> Optional[dict]:
    """Parse one ``--info=progress2`` line into bytes, percent, rate and eta."""
    match = _RSYNC_PROGRESS.match(line)
    if not match:
        return None
    return {
        "bytes": int(match.group("bytes").replace(",", "")),
        "percent": int(match.group("percent")),
        "rate": match.group("rate"),
        "eta": match.group("eta"),
    }


def run_streaming_command(
    command: Sequence[str],
    progress_callback: Optional[Callable[[dict], None]] = None,
) -> int:
    """Run a long command, feeding parsed progress to ``progress_callback``.

    rsync rewrites its progress line with carriage returns, so output is split
    on both ``\\r`` and ``\\n``. stderr is merged into stdout so the last
    non-progress lines can be reported on failure. No timeout is applied.

    If reading is interrupted (KeyboardInterrupt, or an error raised by the
    callback) the child is terminated and reaped before the error propagates.

    Returns:
        The process return code (always 0; failures raise)

    Raises:
        CommandFailedError: If the command exits non-zero
    """
    command = list(command)
    log.debug(f"Running command: {_fmt(command)}")
    process = subprocess.Popen(command, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    tail: list[str] = []
    buffer = ""
    try:
        while True:
            # read1 returns whatever is available instead of waiting for a full block
            chunk = process.stdout.read1(4096)
            if not chunk:
                buffer += decoder.decode(b"", final=True)
                break
            buffer += decoder.decode(chunk)
            pieces = re.split(r"[\r\n]", buffer)
            buffer = pieces.pop()
            for piece in pieces:
                if not piece.strip():
                    continue
                progress = parse_rsync_progress(piece)
                if progress is not None:
                    if progress_callback:
                        progress_callback(progress)
                    continue
                log.debug(piece.strip())
                tail.append(piece)
                del tail[:-20]
    except BaseException:
        # The child must be gone before the caller unmounts its target
        _stop_process(process, command)
        raise
    finally:
        process.stdout.close()
    if buffer.strip():
        tail.append(buffer)
    returncode = process.wait()
    if returncode != 0:
        raise CommandFailedError(command, returncode, _failure_message("\n".join(tail), None))
    return returncode


def _stop_process(process: subprocess.Popen, command: Sequence[str]) -> None:
    if process.poll() is not None:
        return
    log.warning(f"Stopping {command[0]} (pid {process.pid})")
    process.terminate()
    try:
        process.wait(timeout=TERMINATE_TIMEOUT_SECONDS)
    except subprocess.TimeoutExpired:
        log.warning(f"{command[0]} ignored SIGTERM; killing it")
        process.kill()
        process.wait()


__all__ = [
    "parse_rsync_progress",
    "run_checked_command",
    "run_command",
    "run_streaming_command",
]
