"""Output formatting helpers for the CLI."""

from __future__ import annotations

from shelltask.storage.models import ExecutionResult, Task


def format_duration(ms: int) -> str:
    """Format milliseconds to human-readable duration."""
    if ms < 1000:
        return f"{ms}ms"
    elif ms < 60000:
        return f"{ms / 1000:.1f}s"
    else:
        minutes = ms // 60000
        seconds = (ms % 60000) // 1000
        return f"{minutes}m {seconds}s"


def format_timestamp(value: str) -> str:
    """Trim an ISO timestamp to second precision for display."""
    return value.replace("T", " ")[:19]


def format_execution(result: ExecutionResult, command: str) -> str:
    """Format a finished command run."""
    output = result.output or "(no output)"
    started = format_timestamp(result.started_at.isoformat())
    elapsed = format_duration(result.duration_ms)
    return f"$ {command}\n[{started} | {elapsed}]\n\n{output}"


def format_task(task: Task) -> str:
    lines = [
        f"id:      {task.id}",
        f"name:    {task.name}",
        f"owner:   {task.owner or '-'}",
        f"command: {task.command}",
        f"runs:    {len(task.executions)}",
    ]
    if task.executions:
        last = task.executions[-1]
        lines.append(f"last:    {format_timestamp(last.ended_at.isoformat())} ({format_duration(last.duration_ms)})")
    return "\n".join(lines)
