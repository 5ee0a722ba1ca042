"""Subprocess execution with Result-based error handling.

This is the only module that spawns processes. Every aws/docker/git call
in the release pipelines goes through ``run`` (output captured) or
``run_silent`` (output streamed to the terminal, e.g. ``docker build``),
and comes back as a typed value instead of a raised exception.

Usage:
    result = run(["docker", "pull", ref], cwd=Path("."), timeout=600)
    match result:
        case Ok(stdout):
            print(stdout)
        case Err(error):
            print(f"pull failed: {error.detail}")
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from deploykit.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_silent"]

# Return code reported when the process never ran or was killed on timeout.
NOT_RUN = -1


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that failed to start, timed out, or exited non-zero.

    ``stdout``/``stderr`` are empty for ``run_silent`` failures, whose
    output went straight to the terminal.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        shown = " ".join(self.command[:3])
        if len(self.command) > 3:
            shown += " ..."
        return f"{shown} failed (exit {self.returncode})"

    @property
    def detail(self) -> str:
        """Best available human-readable failure text."""
        return self.stderr.strip() or self.stdout.strip() or str(self)


def _spawn(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None,
    timeout: float | None,
    *,
    capture: bool,
    input: str | None = None,
) -> subprocess.CompletedProcess[str] | ProcessError:
    try:
        return subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            input=input,
            capture_output=capture,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return ProcessError(tuple(cmd), NOT_RUN, partial, f"Command timed out after {timeout}s")
    except OSError as e:
        return ProcessError(tuple(cmd), NOT_RUN, "", str(e))


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
    input: str | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return its stdout.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Environment variables (uses current env if None).
        timeout: Maximum seconds to wait (None for no limit).
        input: Text fed to stdin (e.g. a registry password for
            ``docker login --password-stdin``). Never echoed in errors.
    """
    proc = _spawn(cmd, cwd, env, timeout, capture=True, input=input)
    if isinstance(proc, ProcessError):
        return Err(proc)
    if proc.returncode != 0:
        return Err(ProcessError(tuple(cmd), proc.returncode, proc.stdout, proc.stderr))
    return Ok(proc.stdout)


def run_silent(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[None, ProcessError]:
    """Execute a command whose output streams to the terminal.

    Use this for long commands whose progress the operator should see
    (image builds). Output is not available on failure.
    """
    proc = _spawn(cmd, cwd, env, timeout, capture=False)
    if isinstance(proc, ProcessError):
        return Err(proc)
    if proc.returncode != 0:
        return Err(ProcessError(tuple(cmd), proc.returncode, "", ""))
    return Ok(None)
