"""CLI entry point using typer."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shelltask import __version__
from shelltask.config import (
    CONFIG_FILE,
    AppConfig,
    ExecutorConfig,
    PolicyConfig,
    load_config,
    save_config,
)
from shelltask.exceptions import ExecutionFailure, ExecutionTimeout, TaskNotFound, ValidationRejected
from shelltask.services.executor import detect_host_kind
from shelltask.services.tasks import TaskService
from shelltask.services.validator import CommandValidator
from shelltask.storage.database import close_db, get_recent_executions, init_db
from shelltask.storage.models import Task
from shelltask.utils.formatting import format_execution, format_task, format_timestamp
from shelltask.utils.system import check_shell

EXIT_REJECTED = 1
EXIT_TIMEOUT = 2
EXIT_FAILURE = 3

app = typer.Typer(
    name="shelltask",
    help="Store named shell tasks and run them behind a command-safety gate.",
    add_completion=False,
)
console = Console()


def _setup_logging(config: AppConfig) -> None:
    log_path = Path(config.logging.file).expanduser().resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(str(log_path)),
            logging.StreamHandler(),
        ],
        force=True,
    )


def _call(
    config: AppConfig,
    fn: Callable[[TaskService], Awaitable[Any]],
    use_db: bool = True,
) -> Any:
    """Run a service call, mapping each error kind to its exit code."""

    async def _main() -> Any:
        if not use_db:
            return await fn(TaskService(config))
        await init_db(config.storage.db_path)
        try:
            return await fn(TaskService(config))
        finally:
            await close_db()

    try:
        return asyncio.run(_main())
    except ValidationRejected as e:
        console.print(f"[red]Rejected:[/red] {escape(e.reason)}", highlight=False)
        raise typer.Exit(EXIT_REJECTED)
    except TaskNotFound as e:
        console.print(f"[red]Not found:[/red] {escape(e.task_id)}", highlight=False)
        raise typer.Exit(EXIT_REJECTED)
    except ExecutionTimeout as e:
        console.print(f"[yellow]Timed out after {e.timeout}s; the process was killed.[/yellow]")
        raise typer.Exit(EXIT_TIMEOUT)
    except ExecutionFailure as e:
        console.print(f"[red]{escape(str(e))}[/red]", highlight=False)
        raise typer.Exit(EXIT_FAILURE)


def _load() -> AppConfig:
    config = load_config()
    _setup_logging(config)
    return config


@app.command()
def init() -> None:
    """Write a configuration file with the default policy."""
    console.print(f"\n[bold]shelltask v{__version__}[/bold]")
    console.print("Setup\n")

    if CONFIG_FILE.exists() and not typer.confirm(f"  {CONFIG_FILE} exists. Overwrite?", default=False):
        raise typer.Exit(0)

    policy = PolicyConfig()
    console.print("[bold]Step 1:[/bold] Allowed commands")
    console.print("  Only commands whose first word is in this list can run.")
    allowed = typer.prompt("  Allowed commands", default=", ".join(policy.allowed_commands))
    policy.allowed_commands = [c.strip() for c in allowed.split(",") if c.strip()]

    console.print("\n[bold]Step 2:[/bold] Execution timeout")
    timeout = typer.prompt("  Timeout (seconds)", default=ExecutorConfig().timeout, type=int)
    if timeout <= 0:
        console.print("[red]Timeout must be positive.[/red]")
        raise typer.Exit(1)

    config = AppConfig(policy=policy, executor=ExecutorConfig(timeout=timeout))
    save_config(config)
    console.print(f"\n[green]Configuration saved to {CONFIG_FILE}[/green]")


@app.command()
def check(command: str = typer.Argument(..., help="Command line to check")) -> None:
    """Check a command against the safety policy without running it."""
    config = _load()
    safe, reason = CommandValidator(config.policy).check(command)
    if safe:
        console.print("[green]safe[/green]")
    else:
        console.print(f"[red]rejected:[/red] {escape(reason)}", highlight=False)
        raise typer.Exit(EXIT_REJECTED)


@app.command("exec")
def exec_command(
    command: str = typer.Argument(..., help="Command line to run"),
    timeout: int = typer.Option(None, "--timeout", "-t", help="Timeout in seconds"),
) -> None:
    """Validate and run a command directly."""
    if timeout is not None and timeout <= 0:
        console.print("[red]Timeout must be positive.[/red]")
        raise typer.Exit(1)

    config = _load()
    result = _call(config, lambda svc: svc.execute_command(command, timeout), use_db=False)
    console.print(format_execution(result, command), markup=False, highlight=False)


@app.command()
def add(
    name: str = typer.Argument(..., help="Task name"),
    command: str = typer.Argument(..., help="Command line"),
    owner: str = typer.Option("", "--owner", "-o", help="Task owner"),
    task_id: str = typer.Option("", "--id", help="Update the task with this id"),
) -> None:
    """Create or update a task."""
    config = _load()
    task = Task(id=task_id, name=name, owner=owner, command=command)
    saved = _call(config, lambda svc: svc.save_task(task))
    console.print(f"[green]Saved[/green] {saved.id}")


@app.command("list")
def list_command() -> None:
    """List all tasks."""
    config = _load()
    tasks = _call(config, lambda svc: svc.list_tasks())
    if not tasks:
        console.print("[dim]No tasks.[/dim]")
        return

    table = Table(title="Tasks")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Owner")
    table.add_column("Command", style="green")
    table.add_column("Runs", justify="right")
    for task in tasks:
        table.add_row(task.id, escape(task.name), escape(task.owner), escape(task.command), str(len(task.executions)))
    console.print(table)


@app.command()
def show(task_id: str = typer.Argument(..., help="Task id")) -> None:
    """Show one task."""
    config = _load()
    task = _call(config, lambda svc: svc.get_task(task_id))
    console.print(format_task(task), markup=False, highlight=False)


@app.command()
def search(name: str = typer.Argument(..., help="Part of a task name")) -> None:
    """Find tasks by name."""
    config = _load()
    tasks = _call(config, lambda svc: svc.search_tasks(name))
    for task in tasks:
        console.print(f"{task.id}  {task.name}  $ {task.command}", markup=False, highlight=False)


@app.command()
def delete(task_id: str = typer.Argument(..., help="Task id")) -> None:
    """Delete a task and its history."""
    config = _load()
    _call(config, lambda svc: svc.delete_task(task_id))
    console.print(f"[green]Deleted[/green] {escape(task_id)}")


@app.command()
def run(task_id: str = typer.Argument(..., help="Task id")) -> None:
    """Execute a stored task and record the run."""
    config = _load()
    task, result = _call(config, lambda svc: svc.run_task(task_id))
    console.print(format_execution(result, task.command), markup=False, highlight=False)


@app.command()
def history(limit: int = typer.Option(10, "--limit", "-n", help="Number of runs")) -> None:
    """Show recent task executions."""
    config = _load()
    rows = _call(config, lambda svc: get_recent_executions(limit))
    if not rows:
        console.print("[dim]No executions yet.[/dim]")
        return

    table = Table(title="Recent executions")
    table.add_column("Started", style="cyan")
    table.add_column("Task")
    table.add_column("Command", style="green")
    table.add_column("Output")
    for row in rows:
        first_line = (row["output"] or "").split("\n", 1)[0]
        table.add_row(format_timestamp(row["started_at"]), escape(row["name"]), escape(row["command"]), escape(first_line))
    console.print(table)


@app.command()
def config(
    key: str = typer.Argument(None, help="Config key (e.g., executor.timeout)"),
    value: str = typer.Argument(None, help="New value"),
) -> None:
    """View or modify configuration."""
    if not CONFIG_FILE.exists():
        console.print("[red]Not configured. Run 'shelltask init'.[/red]")
        raise typer.Exit(1)

    cfg = load_config()

    if key is None:
        table = Table(title="Configuration")
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("policy.unsafe_pattern", escape(cfg.policy.unsafe_pattern))
        table.add_row("policy.subshell_pattern", escape(cfg.policy.subshell_pattern))
        table.add_row("policy.dangerous_words", ", ".join(cfg.policy.dangerous_words))
        table.add_row("policy.allowed_commands", ", ".join(cfg.policy.allowed_commands))
        table.add_row("executor.timeout", str(cfg.executor.timeout))
        table.add_row("storage.db_path", cfg.storage.db_path)
        table.add_row("logging.level", cfg.logging.level)
        table.add_row("logging.file", cfg.logging.file)

        console.print(table)
        return

    if value is None:
        console.print("[red]Usage: shelltask config <key> <value>[/red]")
        raise typer.Exit(1)

    parts = key.split(".")
    if len(parts) != 2:
        console.print("[red]Key format: section.key (e.g., executor.timeout)[/red]")
        raise typer.Exit(1)

    section, attr = parts
    section_map = {"policy": cfg.policy, "executor": cfg.executor, "storage": cfg.storage, "logging": cfg.logging}

    if section not in section_map:
        console.print(f"[red]Unknown section: {section}[/red]")
        raise typer.Exit(1)

    obj = section_map[section]
    if not hasattr(obj, attr):
        console.print(f"[red]Unknown key: {key}[/red]")
        raise typer.Exit(1)

    current = getattr(obj, attr)
    try:
        if isinstance(current, int):
            typed_value: Any = int(value)
        elif isinstance(current, list):
            typed_value = [v.strip() for v in value.split(",") if v.strip()]
        else:
            typed_value = value
    except ValueError:
        console.print(f"[red]Invalid value type for {key}[/red]")
        raise typer.Exit(1)

    if key == "executor.timeout" and typed_value <= 0:
        console.print("[red]Timeout must be positive.[/red]")
        raise typer.Exit(1)

    setattr(obj, attr, typed_value)
    if section == "policy":
        try:
            CommandValidator(cfg.policy)
        except ValueError as e:
            console.print(f"[red]{e}[/red]", markup=False)
            raise typer.Exit(1)

    save_config(cfg)
    console.print(f"{key} = {typed_value}", markup=False)


@app.command()
def logs(lines: int = typer.Option(50, "--lines", "-n", help="Number of lines")) -> None:
    """View the log file."""
    log_path = Path(load_config().logging.file).expanduser().resolve()
    if not log_path.exists():
        console.print("[dim]No log file found.[/dim]")
        return

    content = log_path.read_text()
    for line in content.strip().split("\n")[-lines:]:
        console.print(line, markup=False, highlight=False)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"shelltask v{__version__}")

    host_kind = detect_host_kind()
    found, info = check_shell(host_kind)
    if found:
        console.print(f"Shell: {info}")
    else:
        console.print(f"Shell: [yellow]{info}[/yellow]")

    console.print(f"Python: {sys.version.split()[0]}")
    console.print(f"Config: {CONFIG_FILE}")


if __name__ == "__main__":
    app()
