"""Execution of validated, rewritten investigation commands."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import signal
from pathlib import Path

from contextkit.cancellation import CancellationToken
from contextkit.config import SandboxConfig
from contextkit.exceptions import SandboxExecutionError
from contextkit.sandbox.policy import ALLOWED_COMMANDS, check_command
from contextkit.sandbox.rewrite import rewrite_command

logger = logging.getLogger("contextkit.sandbox")

_READ_CHUNK = 64 * 1024
_MAX_STDERR_BYTES = 64 * 1024
# Exit status 1 from these means "no matches" or "files differ"
_BENIGN_EXIT_ONE = re.compile(r"(^|[\s|])(grep|diff|cmp)(\s|$)")


def _inside_vcs(cwd: str) -> bool:
    current = Path(cwd).resolve()
    for directory in (current, *current.parents):
        if (directory / ".git").exists():
            return True
    return False


async def _read_capped(stream: asyncio.StreamReader, limit: int, on_overflow=None) -> tuple[bytes, bool]:
    """Read to EOF keeping at most `limit` bytes."""
    buf = bytearray()
    overflow = False
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        room = limit - len(buf)
        if len(chunk) > room:
            buf.extend(chunk[: max(0, room)])
            if not overflow:
                overflow = True
                if on_overflow is not None:
                    on_overflow()
            continue
        buf.extend(chunk)
    return bytes(buf), overflow


class CommandSandbox:
    """Runs allow-listed, read-only commands inside a workspace.

    ``execute`` validates (raising ``CommandDenied``), rewrites, runs under
    ``/bin/sh`` with stdin closed, and caps stdout at
    ``config.max_output_bytes``.
    """

    def __init__(self, config: SandboxConfig | None = None) -> None:
        self.config = config or SandboxConfig()

    @staticmethod
    def allowed_commands() -> list[str]:
        return sorted(ALLOWED_COMMANDS)

    def is_tool_available(self, tool: str) -> bool:
        """Whether an allow-listed tool is on PATH. Never runs it."""
        if tool not in ALLOWED_COMMANDS:
            return False
        return shutil.which(tool) is not None

    def prepare(self, command: str, cwd: str) -> str:
        """Validate and rewrite `command` for `cwd` without running it."""
        check_command(command)
        vcs_listing = self.config.vcs_listing and self.is_tool_available("git") and _inside_vcs(cwd)
        return rewrite_command(command, vcs_listing=vcs_listing)

    @property
    def truncation_marker(self) -> str:
        size = self.config.max_output_bytes / (1024 * 1024)
        return f"\n... [Output truncated by sandbox due to size limit ({size:g}MB)]"

    async def execute(self, command: str, cwd: str, token: CancellationToken | None = None) -> str:
        """Run `command` in `cwd` and return its stdout.

        Raises:
            CommandDenied: The command violates the policy.
            SandboxExecutionError: The command exited with a non-benign status.
            OperationCancelled: `token` was already cancelled.
        """
        if token is not None:
            token.raise_if_cancelled()
        final = self.prepare(command, cwd)
        if final != command:
            logger.debug("Rewrote command %r -> %r", command, final)

        proc = await asyncio.create_subprocess_shell(
            final,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )

        def kill() -> None:
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass  # already exited

        (stdout, truncated), (stderr, _) = await asyncio.gather(
            _read_capped(proc.stdout, self.config.max_output_bytes, on_overflow=kill),
            _read_capped(proc.stderr, _MAX_STDERR_BYTES),
        )
        exit_code = await proc.wait()
        output = stdout.decode("utf-8", errors="replace")

        if truncated:
            logger.info("Output of %r truncated at %d bytes", command, self.config.max_output_bytes)
            return output + self.truncation_marker
        if exit_code == 0:
            return output
        if exit_code == 1 and _BENIGN_EXIT_ONE.search(final):
            return output
        raise SandboxExecutionError(command, exit_code, stderr.decode("utf-8", errors="replace"))
