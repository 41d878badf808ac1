"""Shell command executor service."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import signal
from datetime import datetime, timezone
from typing import Callable

from shelltask.exceptions import ExecutionFailure, ExecutionTimeout
from shelltask.storage.models import ExecutionResult

logger = logging.getLogger(__name__)

ShellWrapper = Callable[[str], list[str]]

_LINE_BREAK = re.compile(r"\r\n?")


def detect_host_kind() -> str:
    return "windows" if os.name == "nt" else "posix"


def default_shell_wrapper(host_kind: str) -> list[str]:
    """Argument prefix that hands a full command line to the host shell."""
    if host_kind == "windows":
        return ["cmd", "/c"]
    return ["bash", "-lc"]


def normalize_output(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace")
    return _LINE_BREAK.sub("\n", text).strip()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CommandExecutor:
    """Run one validated command line in a child shell with a wall-clock limit.

    The executor does no validation of its own; callers pass commands through
    ``CommandValidator`` first. Each ``run`` call owns its process and output
    buffer, so calls may be awaited concurrently.
    """

    def __init__(
        self,
        timeout: float = 30,
        host_kind: str | None = None,
        shell_wrapper: ShellWrapper = default_shell_wrapper,
    ) -> None:
        self.timeout = timeout
        self.host_kind = host_kind or detect_host_kind()
        self.shell_wrapper = shell_wrapper

    def build_argv(self, command: str) -> list[str]:
        return [*self.shell_wrapper(self.host_kind), command]

    async def run(self, command: str, timeout: float | None = None) -> ExecutionResult:
        """Execute a command and return its output.

        The exit status is not inspected: a command that exits non-zero still
        produces a result.

        Raises:
            ExecutionTimeout: the process was still running after ``timeout``
                seconds and has been killed.
            ExecutionFailure: the shell could not be started or its output
                could not be read.
        """
        limit = self.timeout if timeout is None else timeout
        argv = self.build_argv(command)

        started_at = _now()
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                # Own process group so a timeout kills the whole tree
                start_new_session=self.host_kind != "windows",
            )
        except OSError as e:
            logger.error("Failed to start %s: %s", argv[0], e)
            raise ExecutionFailure(command, str(e)) from e

        reader = asyncio.ensure_future(proc.communicate())
        try:
            done, _ = await asyncio.wait({reader}, timeout=limit)
            if not done:
                logger.warning("Command timed out after %ss: %s", limit, command)
                raise ExecutionTimeout(command, limit)
            try:
                stdout_bytes, _ = reader.result()
            except OSError as e:
                logger.error("Failed to read output of %r: %s", command, e)
                raise ExecutionFailure(command, str(e)) from e
            ended_at = _now()
        finally:
            if proc.returncode is None:
                self._kill(proc)
            if not reader.done():
                reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)
            await proc.wait()

        logger.debug("Command exited with %s: %s", proc.returncode, command)
        return ExecutionResult(
            started_at=started_at,
            ended_at=ended_at,
            output=normalize_output(stdout_bytes or b""),
        )

    def _kill(self, proc: asyncio.subprocess.Process) -> None:
        try:
            if self.host_kind == "windows":
                proc.kill()
            else:
                os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError:
            # Group leader may already be a zombie; fall back to the child itself
            proc.kill()
