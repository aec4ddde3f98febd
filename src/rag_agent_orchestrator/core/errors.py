"""Error taxonomy shared by the executors and the answer chain.

A task whose ``can_handle`` returns false is skipped; that is not an error
and has no exception type.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rag_agent_orchestrator.engine.task import TaskResult


class OrchestratorError(Exception):
    """Base class for all errors raised by the engine."""


class ConfigurationError(OrchestratorError):
    """A pipeline, plan or chain is wired incorrectly.

    Always raised before any task of the affected run executes.
    """


class TaskNotFoundError(ConfigurationError):
    def __init__(self, task_name: str, available: Iterable[str] = ()) -> None:
        self.task_name = task_name
        self.available = sorted(available)
        super().__init__(f"Task not found: {task_name!r} (available: {self.available})")


class InvalidWorkflowPlanError(ConfigurationError):
    """The workflow plan does not match the plan schema."""


class CyclicWorkflowError(InvalidWorkflowPlanError):
    def __init__(self, node_ids: Iterable[str]) -> None:
        self.node_ids = sorted(node_ids)
        super().__init__(f"Workflow plan contains a cycle through nodes: {self.node_ids}")


class TaskFailure(OrchestratorError):
    """A task or step failed; carries the identity of the failing unit."""

    def __init__(self, task_name: str, message: str) -> None:
        self.task_name = task_name
        self.message = message
        super().__init__(f"{task_name}: {message}")


class PipelineExecutionError(TaskFailure):
    """A stage failed; later stages were not started."""

    def __init__(
        self,
        task_name: str,
        message: str,
        *,
        pipeline_name: str = "",
        stage_index: int = 0,
        completed: list[TaskResult] | None = None,
    ) -> None:
        self.pipeline_name = pipeline_name
        self.stage_index = stage_index
        self.completed: list[TaskResult] = list(completed or [])
        super().__init__(task_name, message)


class DependencyFailedError(TaskFailure):
    """A workflow node was not run because one of its dependencies failed."""

    def __init__(self, node_id: str, dependency_id: str) -> None:
        self.node_id = node_id
        self.dependency_id = dependency_id
        super().__init__(node_id, f"dependency {dependency_id!r} failed")


class WorkflowExecutionError(TaskFailure):
    """One or more workflow nodes failed.

    ``failed`` maps node id to the exception that failed it; ``results``
    holds every node that completed successfully.
    """

    def __init__(
        self,
        node_id: str,
        message: str,
        *,
        failed: Mapping[str, BaseException],
        results: Mapping[str, TaskResult],
    ) -> None:
        self.failed = dict(failed)
        self.results = dict(results)
        super().__init__(node_id, message)


class StepFailure(TaskFailure):
    """A step of the answer chain failed fatally."""


class SecurityRejection(OrchestratorError):
    """The prompt guard rejected the query. No answer is produced."""

    def __init__(self, message: str, query: str) -> None:
        self.query = query
        super().__init__(message)


class MalformedStructuredOutput(OrchestratorError):
    """An AI collaborator returned structured data that could not be parsed."""

    def __init__(self, message: str, raw: str = "") -> None:
        self.raw = raw
        super().__init__(message)
