"""Execution of dynamically planned workflows (DAGs of named task nodes).

Plans arrive as JSON (usually written by the LLM planner) in the form::

    [{"id": "a", "agentName": "fetch", "dependencies": [], "arguments": {}}, ...]

A plan is validated as a whole before any node runs: schema, duplicate ids,
missing dependency ids, unknown task names and cycles are all
configuration errors.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from rag_agent_orchestrator.core.errors import (
    CyclicWorkflowError,
    DependencyFailedError,
    InvalidWorkflowPlanError,
    TaskFailure,
    WorkflowExecutionError,
)

from .context import ExecutionContext
from .registry import TaskRegistry
from .task import TaskResult, execute_task

logger = logging.getLogger(__name__)


class WorkflowNode(BaseModel):
    """A node of a workflow plan."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    task_name: str = Field(alias="agentName", min_length=1)
    dependencies: list[str] = Field(default_factory=list)
    arguments: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


_PLAN_ADAPTER: TypeAdapter[list[WorkflowNode]] = TypeAdapter(list[WorkflowNode])


def parse_workflow_plan(raw: str | bytes | list[Any]) -> list[WorkflowNode]:
    """Parse a plan from JSON text or already-decoded JSON.

    Raises:
        InvalidWorkflowPlanError: If the payload does not match the plan schema.
    """
    try:
        if isinstance(raw, (str, bytes)):
            return _PLAN_ADAPTER.validate_json(raw)
        return _PLAN_ADAPTER.validate_python(raw)
    except ValidationError as e:
        raise InvalidWorkflowPlanError(f"Invalid workflow plan: {e}") from e


def validate_workflow(
    nodes: Sequence[WorkflowNode], registry: TaskRegistry | None = None
) -> list[str]:
    """Validate graph structure and return node ids in topological order.

    Ties are broken by plan order, so the result is deterministic.

    Raises:
        ConfigurationError: On duplicate ids, missing dependencies or unknown tasks.
        CyclicWorkflowError: If the dependency edges contain a cycle.
    """
    index: dict[str, WorkflowNode] = {}
    for node in nodes:
        if node.id in index:
            raise InvalidWorkflowPlanError(f"Duplicate workflow node id: {node.id!r}")
        index[node.id] = node

    for node in nodes:
        for dep in node.dependencies:
            if dep not in index:
                raise InvalidWorkflowPlanError(
                    f"Node {node.id!r} depends on unknown node {dep!r}"
                )
        if registry is not None:
            registry.resolve(node.task_name)

    position = {node.id: i for i, node in enumerate(nodes)}
    indegree = {node.id: len(set(node.dependencies)) for node in nodes}
    dependents: dict[str, list[str]] = {node.id: [] for node in nodes}
    for node in nodes:
        for dep in set(node.dependencies):
            dependents[dep].append(node.id)

    ready = deque(node.id for node in nodes if indegree[node.id] == 0)
    order: list[str] = []
    while ready:
        node_id = ready.popleft()
        order.append(node_id)
        released = []
        for child in dependents[node_id]:
            indegree[child] -= 1
            if indegree[child] == 0:
                released.append(child)
        ready.extend(sorted(released, key=position.__getitem__))

    if len(order) != len(nodes):
        raise CyclicWorkflowError(node_id for node_id, deg in indegree.items() if deg > 0)
    return order


class _WorkflowRun:
    """State of a single workflow execution.

    ``_memo`` is the only structure written concurrently; every read-modify-write
    of it happens under ``_lock``.
    """

    def __init__(
        self,
        nodes: Sequence[WorkflowNode],
        initial_context: ExecutionContext,
        registry: TaskRegistry,
        task_timeout: float | None,
    ) -> None:
        self._nodes = {node.id: node for node in nodes}
        self._initial_context = initial_context
        self._registry = registry
        self._task_timeout = task_timeout
        self._memo: dict[str, asyncio.Task[TaskResult]] = {}
        self._lock = asyncio.Lock()

    @property
    def futures(self) -> dict[str, asyncio.Task[TaskResult]]:
        return dict(self._memo)

    async def ensure(self, node_id: str) -> asyncio.Task[TaskResult]:
        """Return the (possibly already running) future for ``node_id``."""
        async with self._lock:
            future = self._memo.get(node_id)
            if future is None:
                future = asyncio.create_task(
                    self._execute(self._nodes[node_id]), name=f"workflow-node-{node_id}"
                )
                self._memo[node_id] = future
            return future

    def cancel_all(self) -> None:
        for future in self._memo.values():
            future.cancel()

    async def _execute(self, node: WorkflowNode) -> TaskResult:
        dependency_futures = [await self.ensure(dep) for dep in node.dependencies]
        if dependency_futures:
            await asyncio.wait(dependency_futures)

        for dep_id, future in zip(node.dependencies, dependency_futures):
            if future.cancelled() or future.exception() is not None:
                raise DependencyFailedError(node.id, dep_id)

        context = self._initial_context.merged(
            *(future.result().details for future in dependency_futures),
            node.arguments,
        )
        task = self._registry.resolve(node.task_name)
        logger.info(
            "Dependencies satisfied; executing workflow node",
            extra={"node_id": node.id, "task_name": node.task_name},
        )
        result = await execute_task(task, context, self._task_timeout)
        if not result.ok:
            raise TaskFailure(node.id, result.summary or "task reported failure")
        return result


class DagWorkflowExecutor:
    """Execute workflow plans against a task registry.

    Every node is invoked at most once per run regardless of fan-in. Nodes
    with no path between them run concurrently. A failed node fails all of
    its transitive dependents; independent branches run to completion.
    """

    def __init__(self, registry: TaskRegistry, *, task_timeout: float | None = None) -> None:
        self.registry = registry
        self.task_timeout = task_timeout

    async def run(
        self,
        nodes: Sequence[WorkflowNode],
        initial_context: ExecutionContext,
    ) -> dict[str, TaskResult]:
        """Execute the plan and return results keyed by node id.

        Raises:
            ConfigurationError: If the plan is invalid. No node has run.
            WorkflowExecutionError: If any node failed, after every
                independent branch has finished.
        """
        if not nodes:
            return {}

        order = validate_workflow(nodes, self.registry)
        logger.info("Executing workflow", extra={"nodes": len(nodes), "order": order})

        run = _WorkflowRun(nodes, initial_context, self.registry, self.task_timeout)
        try:
            futures = [await run.ensure(node_id) for node_id in order]
            await asyncio.wait(futures)
        except asyncio.CancelledError:
            run.cancel_all()
            raise

        results: dict[str, TaskResult] = {}
        failed: dict[str, BaseException] = {}
        for node_id in order:
            future = run.futures[node_id]
            if future.cancelled():
                failed[node_id] = asyncio.CancelledError(f"workflow node {node_id!r} was cancelled")
                continue
            exc = future.exception()
            if exc is None:
                results[node_id] = future.result()
            else:
                failed[node_id] = exc

        if failed:
            root_id, root = next(
                (
                    (node_id, exc)
                    for node_id, exc in failed.items()
                    if not isinstance(exc, DependencyFailedError)
                ),
                next(iter(failed.items())),
            )
            logger.error(
                "Workflow failed",
                extra={"node_id": root_id, "failed": sorted(failed), "succeeded": sorted(results)},
            )
            if isinstance(root, TaskFailure):
                message = root.message
            else:
                message = str(root) or type(root).__name__
            raise WorkflowExecutionError(
                root_id, message, failed=failed, results=results
            ) from root

        return results
