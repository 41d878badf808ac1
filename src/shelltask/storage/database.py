"""SQLite persistence for tasks and their execution history."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import aiosqlite

from shelltask.storage.models import ExecutionResult, Task

logger = logging.getLogger(__name__)

_db: aiosqlite.Connection | None = None


async def init_db(db_path: str) -> None:
    """Initialize database and create tables."""
    global _db
    resolved = Path(db_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)

    _db = await aiosqlite.connect(str(resolved))
    _db.row_factory = aiosqlite.Row
    await _db.execute("PRAGMA journal_mode = WAL")
    await _db.execute("PRAGMA foreign_keys = ON")

    await _db.execute("""
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL DEFAULT '',
            owner TEXT NOT NULL DEFAULT '',
            command TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    await _db.execute("""
        CREATE TABLE IF NOT EXISTS task_executions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            started_at TEXT NOT NULL,
            ended_at TEXT NOT NULL,
            output TEXT DEFAULT ''
        )
    """)
    await _db.execute("CREATE INDEX IF NOT EXISTS idx_executions_task_id ON task_executions(task_id)")
    await _db.commit()
    logger.info("Database initialized: %s", resolved)


async def get_db() -> aiosqlite.Connection:
    """Get the database connection."""
    if _db is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _db


async def close_db() -> None:
    """Close the database connection."""
    global _db
    if _db is not None:
        await _db.close()
        _db = None
        logger.info("Database closed")


async def _load_executions(db: aiosqlite.Connection, task_id: str) -> list[ExecutionResult]:
    cursor = await db.execute(
        "SELECT started_at, ended_at, output FROM task_executions WHERE task_id = ? ORDER BY id",
        (task_id,),
    )
    rows = await cursor.fetchall()
    return [
        ExecutionResult(
            started_at=datetime.fromisoformat(row["started_at"]),
            ended_at=datetime.fromisoformat(row["ended_at"]),
            output=row["output"],
        )
        for row in rows
    ]


async def _to_task(db: aiosqlite.Connection, row: aiosqlite.Row) -> Task:
    return Task(
        id=row["id"],
        name=row["name"],
        owner=row["owner"],
        command=row["command"],
        executions=await _load_executions(db, row["id"]),
    )


async def get_task(task_id: str) -> Task | None:
    """Load a task with its execution history, or None if absent."""
    db = await get_db()
    cursor = await db.execute("SELECT id, name, owner, command FROM tasks WHERE id = ?", (task_id,))
    row = await cursor.fetchone()
    if row is None:
        return None
    return await _to_task(db, row)


async def save_task(task: Task) -> Task:
    """Insert or update a task's name, owner and command.

    Executions carried by a task that is not stored yet are inserted with it.
    Stored history is never rewritten; later runs are recorded with
    append_execution().
    """
    db = await get_db()
    cursor = await db.execute("SELECT 1 FROM tasks WHERE id = ?", (task.id,))
    is_new = await cursor.fetchone() is None
    await db.execute(
        """INSERT INTO tasks (id, name, owner, command) VALUES (?, ?, ?, ?)
           ON CONFLICT(id) DO UPDATE SET name = excluded.name, owner = excluded.owner,
                                         command = excluded.command""",
        (task.id, task.name, task.owner, task.command),
    )
    if is_new:
        await db.executemany(
            "INSERT INTO task_executions (task_id, started_at, ended_at, output) VALUES (?, ?, ?, ?)",
            [(task.id, e.started_at.isoformat(), e.ended_at.isoformat(), e.output) for e in task.executions],
        )
    await db.commit()
    return task


async def append_execution(task_id: str, result: ExecutionResult) -> None:
    """Record one finished run in a task's history."""
    db = await get_db()
    await db.execute(
        "INSERT INTO task_executions (task_id, started_at, ended_at, output) VALUES (?, ?, ?, ?)",
        (task_id, result.started_at.isoformat(), result.ended_at.isoformat(), result.output),
    )
    await db.commit()


async def list_tasks() -> list[Task]:
    db = await get_db()
    cursor = await db.execute("SELECT id, name, owner, command FROM tasks ORDER BY created_at, id")
    rows = await cursor.fetchall()
    return [await _to_task(db, row) for row in rows]


async def delete_task(task_id: str) -> bool:
    """Delete a task and its history. Returns False if it did not exist."""
    db = await get_db()
    cursor = await db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
    await db.commit()
    return cursor.rowcount > 0


async def find_tasks_by_name(query: str) -> list[Task]:
    """Case-insensitive substring search on task names."""
    db = await get_db()
    cursor = await db.execute(
        "SELECT id, name, owner, command FROM tasks WHERE instr(lower(name), lower(?)) > 0 ORDER BY name",
        (query,),
    )
    rows = await cursor.fetchall()
    return [await _to_task(db, row) for row in rows]


async def get_recent_executions(limit: int = 10) -> list[dict]:
    """Get the most recent executions across all tasks."""
    db = await get_db()
    cursor = await db.execute(
        """SELECT e.task_id, t.name, t.command, e.started_at, e.ended_at, e.output
           FROM task_executions e JOIN tasks t ON t.id = e.task_id
           ORDER BY e.id DESC LIMIT ?""",
        (limit,),
    )
    rows = await cursor.fetchall()
    return [dict(row) for row in rows]
