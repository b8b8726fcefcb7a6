"""Subprocess runner with cancellation and coarse progress reporting.

Runs a prebuilt command string through the platform shell, keeps stdout and
stderr in memory, and kills the whole process tree when the caller cancels.
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import time
from typing import Callable, Optional

from kubescape_api.core.cancellation import CancellationToken
from kubescape_api.core.logging import get_logger
from kubescape_api.errors import CancelledError, ExecutionError

LOGGER = get_logger(__name__)

# Interval between cancellation checks while the process runs
DEFAULT_POLL_INTERVAL = 0.1

# Seconds after which a still-running process is reported as half done
DEFAULT_MIDPOINT_AFTER = 2.0

_IS_WINDOWS = sys.platform == "win32"


def _spawn(command: str) -> subprocess.Popen:
    kwargs = {}
    if _IS_WINDOWS:
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        # Own session so the shell and its children can be killed together
        kwargs["start_new_session"] = True
    return subprocess.Popen(
        command,
        shell=True,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        **kwargs,
    )


def kill_process_tree(proc: subprocess.Popen) -> None:
    """Forcefully terminate a shell process and everything it started."""
    if proc.poll() is not None:
        return
    try:
        if _IS_WINDOWS:
            subprocess.run(
                ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        else:
            os.killpg(proc.pid, signal.SIGKILL)
    except (OSError, ProcessLookupError) as e:
        LOGGER.debug(f"Process group kill failed, killing pid {proc.pid}: {e}")
        proc.kill()


def run(
    ui,
    command: str,
    cancel: Optional[CancellationToken] = None,
    on_progress: Optional[Callable[[float], None]] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    midpoint_after: float = DEFAULT_MIDPOINT_AFTER,
) -> str:
    """Run a command to completion and return its stdout.

    Args:
        ui: KubescapeUi used for debug output, or None.
        command: Complete shell command string.
        cancel: Optional cancellation token.
        on_progress: Optional callback receiving fractions in [0, 1].
        poll_interval: Seconds between cancellation checks.
        midpoint_after: Seconds of runtime after which 0.5 is reported.

    Returns:
        Captured stdout.

    Raises:
        CancelledError: If ``cancel`` fires before the process finishes.
        ExecutionError: If the process cannot be started or exits non-zero.
    """
    report = on_progress or (lambda fraction: None)

    if cancel is not None:
        cancel.raise_if_cancelled()

    LOGGER.debug(f"Running: {command}")
    if ui is not None:
        ui.debug(f"Running: {command}")

    try:
        proc = _spawn(command)
    except OSError as e:
        raise ExecutionError(-1, f"Failed to start process: {e}") from e

    report(0.0)
    started = time.monotonic()
    midpoint_reported = False

    with proc:
        while True:
            if cancel is not None and cancel.cancelled:
                kill_process_tree(proc)
                # Reap the process and close the pipes
                proc.communicate()
                LOGGER.debug(f"Cancelled: {command}")
                raise CancelledError(f"Cancelled: {command}")
            try:
                stdout, stderr = proc.communicate(timeout=poll_interval)
                break
            except subprocess.TimeoutExpired:
                if not midpoint_reported and time.monotonic() - started >= midpoint_after:
                    midpoint_reported = True
                    report(0.5)

    if proc.returncode != 0:
        LOGGER.debug(f"Command exited with {proc.returncode}: {stderr.strip()}")
        raise ExecutionError(proc.returncode, stderr)

    if ui is not None and stderr.strip():
        ui.debug(stderr.strip())

    report(1.0)
    return stdout
