"""Error kinds raised by the validation and execution layers."""

from __future__ import annotations


class ShellTaskError(Exception):
    """Base class for all shelltask errors."""


class ValidationRejected(ShellTaskError):
    """The command failed the safety gate. Never retried."""

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"Command rejected as unsafe: {reason}")


class ExecutionTimeout(ShellTaskError):
    """The process outlived its wall-clock budget and was killed."""

    def __init__(self, command: str, timeout: float) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout}s")


class ExecutionFailure(ShellTaskError):
    """The process could not be spawned or its output could not be read."""

    def __init__(self, command: str, message: str) -> None:
        self.command = command
        super().__init__(f"Command execution failed: {message}")


class TaskNotFound(ShellTaskError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")
