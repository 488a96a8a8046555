"""Bounded-time execution of external commands (git, rsync, generators)."""
from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from subprocess import TimeoutExpired
from typing import Optional, Sequence

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one external command run."""

    command: tuple[str, ...]
    returncode: Optional[int]
    timed_out: bool = False
    duration: float = 0.0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.error is None and self.returncode == 0

    def describe(self) -> str:
        if self.timed_out:
            return f"killed after {self.duration:.1f}s deadline"
        if self.error is not None:
            return f"failed to start: {self.error}"
        return f"exit status {self.returncode}"


class ProcessRunner:
    """Run a command and wait for it, killing it once its deadline passes.

    The runner never raises for a failing or hung command; it reports what
    happened and leaves the decision to the caller.
    """

    def __init__(
        self,
        *,
        verbose: bool = True,
        default_timeout: float = 60.0,
        kill_timeout: float = 5.0,
    ) -> None:
        self.verbose = verbose
        self.default_timeout = max(0.1, default_timeout)
        self._kill_timeout = max(0.0, kill_timeout)

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        timeout: Optional[float] = None,
        cwd: Optional[Path] = None,
    ) -> ProcessResult:
        argv = (command, *[str(arg) for arg in args])
        deadline = self.default_timeout if timeout is None else max(0.1, timeout)
        # Inherited streams put the child's output next to our own log lines.
        output = None if self.verbose else subprocess.DEVNULL

        started = time.monotonic()
        try:
            process = subprocess.Popen(  # noqa: S603 - argv is built by the caller
                argv,
                cwd=str(cwd) if cwd is not None else None,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=output,
            )
        except OSError as exc:
            LOGGER.error("Unable to launch %s: %s", command, exc)
            return ProcessResult(command=argv, returncode=None, error=str(exc))

        try:
            returncode = process.wait(timeout=deadline)
        except TimeoutExpired:
            LOGGER.warning("Process %s (pid=%s) exceeded %.1fs; killing", command, process.pid, deadline)
            try:
                process.kill()
            except OSError as exc:  # pragma: no cover - process exited in between
                LOGGER.debug("Kill of pid=%s failed: %s", process.pid, exc)
            returncode = self._reap(process)
            duration = time.monotonic() - started
            LOGGER.info("Process killed (%s, returncode=%s)", command, returncode)
            return ProcessResult(
                command=argv,
                returncode=returncode,
                timed_out=True,
                duration=duration,
            )

        duration = time.monotonic() - started
        result = ProcessResult(command=argv, returncode=returncode, duration=duration)
        if result.ok:
            LOGGER.info("Process %s done in %.1fs", command, duration)
        else:
            LOGGER.warning("Process %s done with %s", command, result.describe())
        return result

    def _reap(self, process: subprocess.Popen) -> Optional[int]:
        try:
            return process.wait(timeout=self._kill_timeout)
        except TimeoutExpired:
            LOGGER.error("Process pid=%s still running after SIGKILL", process.pid)
            return process.returncode


__all__ = ["ProcessResult", "ProcessRunner"]
