"""Task service: CRUD over stored tasks and the execute-by-id flow."""

from __future__ import annotations

import logging
import uuid

from shelltask.config import AppConfig
from shelltask.exceptions import TaskNotFound, ValidationRejected
from shelltask.services.executor import CommandExecutor
from shelltask.services.validator import CommandValidator
from shelltask.storage import database
from shelltask.storage.models import ExecutionResult, Task

logger = logging.getLogger(__name__)


class TaskService:
    """Store tasks and execute their commands through the safety gate."""

    def __init__(
        self,
        config: AppConfig,
        validator: CommandValidator | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.config = config
        self.validator = validator or CommandValidator(config.policy)
        self.executor = executor or CommandExecutor(timeout=config.executor.timeout)

    def _require_safe(self, command: str) -> None:
        safe, reason = self.validator.check(command)
        if not safe:
            raise ValidationRejected(command, reason)

    async def get_task(self, task_id: str) -> Task:
        task = await database.get_task(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    async def list_tasks(self) -> list[Task]:
        return await database.list_tasks()

    async def save_task(self, task: Task) -> Task:
        """Create or update a task.

        An existing task keeps its execution history; only name, owner and
        command are replaced.
        """
        self._require_safe(task.command)
        task.command = task.command.strip()

        if not task.id or not task.id.strip():
            task.id = str(uuid.uuid4())
        else:
            existing = await database.get_task(task.id)
            if existing is not None:
                existing.name = task.name
                existing.owner = task.owner
                existing.command = task.command
                task = existing

        saved = await database.save_task(task)
        logger.info("Saved task %s (%s)", saved.id, saved.name)
        return saved

    async def delete_task(self, task_id: str) -> None:
        if not await database.delete_task(task_id):
            raise TaskNotFound(task_id)
        logger.info("Deleted task %s", task_id)

    async def search_tasks(self, name: str) -> list[Task]:
        results = await database.find_tasks_by_name(name)
        if not results:
            raise TaskNotFound(name)
        return results

    async def execute_command(self, command: str, timeout: float | None = None) -> ExecutionResult:
        """Validate and run a command that is not attached to a stored task."""
        self._require_safe(command)
        return await self.executor.run(command.strip(), timeout)

    async def execute_task(self, task_id: str) -> ExecutionResult:
        """Run a stored task's command and append the result to its history."""
        _, result = await self.run_task(task_id)
        return result

    async def run_task(self, task_id: str) -> tuple[Task, ExecutionResult]:
        """Like execute_task, but also hand back the task that was run.

        The stored command is validated again under the current policy, so a
        task saved under looser rules is refused here.
        """
        task = await self.get_task(task_id)
        self._require_safe(task.command)

        result = await self.executor.run(task.command, self.config.executor.timeout)
        await database.append_execution(task.id, result)
        task.executions.append(result)
        logger.info("Executed task %s in %dms", task.id, result.duration_ms)
        return task, result
