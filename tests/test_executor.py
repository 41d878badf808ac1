"""Tests for the shell command executor."""

from __future__ import annotations

import asyncio
import os
import shutil
from unittest.mock import AsyncMock, patch

import pytest

from shelltask.exceptions import ExecutionFailure, ExecutionTimeout
from shelltask.services.executor import (
    CommandExecutor,
    default_shell_wrapper,
    detect_host_kind,
    normalize_output,
)

needs_bash = pytest.mark.skipif(
    os.name == "nt" or shutil.which("bash") is None,
    reason="requires bash",
)


class TestShellWrapper:
    def test_windows_uses_cmd(self):
        assert default_shell_wrapper("windows") == ["cmd", "/c"]

    def test_posix_uses_bash_login(self):
        assert default_shell_wrapper("posix") == ["bash", "-lc"]

    def test_detect_host_kind(self):
        expected = "windows" if os.name == "nt" else "posix"
        assert detect_host_kind() == expected

    def test_command_is_one_argument(self):
        executor = CommandExecutor(host_kind="windows")
        assert executor.build_argv("dir /b C:\\") == ["cmd", "/c", "dir /b C:\\"]

    def test_injected_wrapper(self):
        executor = CommandExecutor(host_kind="posix", shell_wrapper=lambda kind: ["sh", "-c"])
        assert executor.build_argv("echo hi") == ["sh", "-c", "echo hi"]


class TestNormalizeOutput:
    def test_crlf(self):
        assert normalize_output(b"a\r\nb\r\n") == "a\nb"

    def test_bare_cr(self):
        assert normalize_output(b"a\rb") == "a\nb"

    def test_trims(self):
        assert normalize_output(b"\n  hello \n\n") == "hello"

    def test_invalid_utf8_replaced(self):
        assert normalize_output(b"ok \xff") == "ok \ufffd"


@needs_bash
class TestCommandExecutor:
    @pytest.mark.asyncio
    async def test_echo(self):
        result = await CommandExecutor().run("echo hello", 5)
        assert result.output == "hello"
        assert result.ended_at >= result.started_at

    @pytest.mark.asyncio
    async def test_default_timeout_used(self):
        result = await CommandExecutor(timeout=5).run("echo default")
        assert result.output == "default"

    @pytest.mark.asyncio
    async def test_stderr_merged(self):
        result = await CommandExecutor().run("echo out; echo err 1>&2", 5)
        assert "out" in result.output
        assert "err" in result.output

    @pytest.mark.asyncio
    async def test_nonzero_exit_still_returns_output(self):
        result = await CommandExecutor().run("echo failing; exit 3", 5)
        assert result.output == "failing"

    @pytest.mark.asyncio
    async def test_multiline_output(self):
        result = await CommandExecutor().run("printf 'a\\r\\nb\\n'", 5)
        assert result.output == "a\nb"

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        spawned = []
        real_spawn = asyncio.create_subprocess_exec

        async def spawn(*args, **kwargs):
            proc = await real_spawn(*args, **kwargs)
            spawned.append(proc)
            return proc

        with patch("shelltask.services.executor.asyncio.create_subprocess_exec", side_effect=spawn):
            with pytest.raises(ExecutionTimeout) as exc_info:
                await CommandExecutor().run("sleep 10", 1)

        assert exc_info.value.timeout == 1
        assert len(spawned) == 1
        assert spawned[0].returncode is not None
        with pytest.raises(ProcessLookupError):
            os.kill(spawned[0].pid, 0)

    @pytest.mark.asyncio
    async def test_timeout_kills_child_processes(self, tmp_path):
        marker = tmp_path / "marker"
        with pytest.raises(ExecutionTimeout):
            await CommandExecutor().run(f"sleep 0.5 && touch {marker} & sleep 10", 0.2)
        await asyncio.sleep(1)
        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_concurrent_runs_do_not_mix_output(self):
        executor = CommandExecutor()
        first, second = await asyncio.gather(
            executor.run("for i in 1 2 3; do echo first; sleep 0.1; done", 5),
            executor.run("for i in 1 2 3; do echo second; sleep 0.1; done", 5),
        )
        assert first.output.split("\n") == ["first"] * 3
        assert second.output.split("\n") == ["second"] * 3


class TestExecutionFailure:
    @pytest.mark.asyncio
    async def test_missing_shell(self):
        executor = CommandExecutor(host_kind="posix", shell_wrapper=lambda kind: ["/nonexistent/shell", "-c"])
        with pytest.raises(ExecutionFailure):
            await executor.run("echo hi", 5)

    @pytest.mark.asyncio
    async def test_spawn_oserror(self):
        with patch(
            "shelltask.services.executor.asyncio.create_subprocess_exec",
            side_effect=PermissionError("denied"),
        ):
            with pytest.raises(ExecutionFailure) as exc_info:
                await CommandExecutor(host_kind="posix").run("echo hi", 5)
        assert "denied" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, PermissionError)

    @pytest.mark.asyncio
    async def test_read_error(self):
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(side_effect=BrokenPipeError("pipe closed"))
        mock_proc.returncode = 0

        with patch("shelltask.services.executor.asyncio.create_subprocess_exec", return_value=mock_proc):
            with pytest.raises(ExecutionFailure):
                await CommandExecutor(host_kind="posix").run("echo hi", 5)
        mock_proc.wait.assert_awaited()

    def test_failure_distinct_from_timeout(self):
        assert not issubclass(ExecutionFailure, ExecutionTimeout)
        assert not issubclass(ExecutionTimeout, ExecutionFailure)

    @pytest.mark.asyncio
    async def test_success_with_mock_process(self):
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(return_value=(b"file1.txt\r\nfile2.txt\r\n", None))
        mock_proc.returncode = 0

        with patch(
            "shelltask.services.executor.asyncio.create_subprocess_exec", return_value=mock_proc
        ) as spawn:
            result = await CommandExecutor(host_kind="windows").run("dir", 5)

        assert result.output == "file1.txt\nfile2.txt"
        assert spawn.call_args.args == ("cmd", "/c", "dir")
        assert spawn.call_args.kwargs["start_new_session"] is False


class TestCheckShell:
    def test_missing_shell_reported(self):
        from shelltask.utils.system import check_shell

        with patch("shelltask.utils.system.shutil.which", return_value=None):
            found, info = check_shell("windows")
        assert not found
        assert "cmd" in info

    def test_found_shell_path(self):
        from shelltask.utils.system import check_shell

        with patch("shelltask.utils.system.shutil.which", return_value="/usr/bin/bash"):
            assert check_shell("posix") == (True, "/usr/bin/bash")
