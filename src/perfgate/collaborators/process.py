"""Subprocess helper shared by the command-line collaborators."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured result of a finished shell command."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, limit: int = 500) -> str:
        """Last ``limit`` characters of stderr (or stdout), for error messages."""
        text = (self.stderr or self.stdout).strip()
        return text[-limit:]


async def run_command(
    command: str,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
) -> CommandResult:
    """Run ``command`` through the shell and capture its output.

    The child is killed if the awaiting task is cancelled (stage
    timeout or abort), and the cancellation propagates.
    """
    merged_env = {**os.environ, **(env or {})}
    logger.debug("Running command: %s", command)

    proc = await asyncio.create_subprocess_shell(
        command,
        cwd=str(cwd) if cwd is not None else None,
        env=merged_env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    return CommandResult(
        command=command,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def start_background(command: str, cwd: Path | None = None) -> asyncio.subprocess.Process:
    """Start a long-running shell command in its own process group."""
    logger.debug("Starting background command: %s", command)
    return await asyncio.create_subprocess_shell(
        command,
        cwd=str(cwd) if cwd is not None else None,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
        start_new_session=os.name == "posix",
    )


def stop_background(proc: asyncio.subprocess.Process) -> None:
    """Kill a process started by start_background, including its children."""
    if proc.returncode is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass
