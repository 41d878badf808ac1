"""Data models for shelltask."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class ExecutionResult:
    """One completed run of a command: its execution window and merged output."""

    started_at: datetime
    ended_at: datetime
    output: str

    @property
    def duration_ms(self) -> int:
        return int((self.ended_at - self.started_at).total_seconds() * 1000)


# Executions are stored on tasks under this name.
TaskExecution = ExecutionResult


@dataclass
class Task:
    """A named shell command and its append-only execution history."""

    id: str = ""
    name: str = ""
    owner: str = ""
    command: str = ""
    executions: list[ExecutionResult] = field(default_factory=list)
