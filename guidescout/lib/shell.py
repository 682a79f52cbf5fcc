"""Async wrapper around external toolchain commands.

Adapters that depend on a toolchain (``go``, ``find``) take a
``CommandRunner`` so tests can substitute a fake one. Output is returned
as plain text; callers parse stdout themselves.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

logger = logging.getLogger("lib.shell")


class ToolNotFoundError(RuntimeError):
    """The requested executable is not on PATH."""


@dataclass
class CommandResult:
    """Captured output of a finished process."""

    stdout: str
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Runs commands with ``asyncio.create_subprocess_exec``."""

    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: str | Path | None = None,
    ) -> CommandResult:
        """Run ``argv`` and wait for it to exit.

        Args:
            argv: Executable followed by its arguments. No shell is involved.
            cwd: Working directory for the process.

        Returns:
            CommandResult with decoded stdout/stderr and the exit code.

        Raises:
            ToolNotFoundError: If the executable is not on PATH.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd else None,
            )
        except FileNotFoundError:
            raise ToolNotFoundError(f"'{argv[0]}' not found on PATH") from None

        stdout, stderr = await proc.communicate()
        result = CommandResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=proc.returncode if proc.returncode is not None else -1,
        )
        if not result.ok:
            logger.debug(
                "%s exited with %d: %s", " ".join(argv), result.exit_code, result.stderr[:300]
            )
        return result
