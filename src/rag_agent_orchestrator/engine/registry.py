"""Explicit registry of tasks available to pipelines and workflow plans."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator

from rag_agent_orchestrator.core.errors import ConfigurationError, TaskNotFoundError

from .task import Task

logger = logging.getLogger(__name__)


class TaskRegistry:
    """Name -> task lookup populated through explicit registration.

    Plans are validated against the registry before execution so an unknown
    task name never surfaces halfway through a run.
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: dict[str, Task] = {}
        for task in tasks:
            self.register(task)

    def register(self, task: Task) -> None:
        """Register a task.

        Raises:
            ConfigurationError: If the name is empty or already taken.
        """
        if not task.name or not task.name.strip():
            raise ConfigurationError(f"Task {task!r} has no name")
        if task.name in self._tasks:
            raise ConfigurationError(f"Duplicate task name: {task.name!r}")
        self._tasks[task.name] = task
        logger.debug("Registered task", extra={"task_name": task.name})

    def resolve(self, name: str) -> Task:
        """Return the task registered under ``name``.

        Raises:
            TaskNotFoundError: If no task is registered under ``name``.
        """
        try:
            return self._tasks[name]
        except KeyError:
            raise TaskNotFoundError(name, self._tasks) from None

    def names(self) -> list[str]:
        return sorted(self._tasks)

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    def describe(self) -> list[dict[str, object]]:
        return [
            {
                "name": task.name,
                "description": task.description,
                "requiresApproval": task.requires_approval,
            }
            for task in sorted(self._tasks.values(), key=lambda t: t.name)
        ]

    def describe_as_json(self) -> str:
        """Tool catalogue handed to the workflow planner."""
        return json.dumps(self.describe(), indent=2, ensure_ascii=False)
