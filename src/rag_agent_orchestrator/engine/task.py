from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Protocol, runtime_checkable

from .context import ExecutionContext


class TaskStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


@dataclass(frozen=True, slots=True)
class TaskResult:
    """Outcome of a single task execution.

    ``details`` is exactly what gets merged into the context seen by
    downstream tasks.
    """

    task_name: str
    status: TaskStatus
    summary: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is TaskStatus.SUCCESS

    @classmethod
    def success(
        cls, task_name: str, summary: str = "", details: Mapping[str, Any] | None = None
    ) -> TaskResult:
        return cls(
            task_name=task_name,
            status=TaskStatus.SUCCESS,
            summary=summary,
            details=dict(details or {}),
        )

    @classmethod
    def failure(cls, task_name: str, summary: str) -> TaskResult:
        return cls(task_name=task_name, status=TaskStatus.FAILURE, summary=summary)

    def to_json(self) -> dict[str, object]:
        return {
            "taskName": self.task_name,
            "status": self.status.value,
            "summary": self.summary,
            "details": self.details,
        }


@runtime_checkable
class Task(Protocol):
    """A unit of work: a precondition check plus an asynchronous execution.

    ``requires_approval`` marks tasks whose effects are externally
    irreversible. The executors do not enforce approval; they only expose
    the flag to callers.
    """

    name: str
    description: str
    requires_approval: bool

    def can_handle(self, context: ExecutionContext) -> bool: ...

    async def execute(self, context: ExecutionContext) -> TaskResult: ...


async def execute_task(
    task: Task, context: ExecutionContext, timeout: float | None = None
) -> TaskResult:
    """Run ``task.execute`` bounded by ``timeout`` seconds (None = unbounded)."""
    if timeout is None:
        return await task.execute(context)
    return await asyncio.wait_for(task.execute(context), timeout)


class BaseTask:
    """Convenience base for tasks that are always applicable."""

    name: str = ""
    description: str = ""
    requires_approval: bool = False

    def can_handle(self, context: ExecutionContext) -> bool:
        return True

    async def execute(self, context: ExecutionContext) -> TaskResult:
        raise NotImplementedError
