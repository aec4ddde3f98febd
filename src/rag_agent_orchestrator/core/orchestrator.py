"""Main orchestrator implementation."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from rag_agent_orchestrator.core.config import OrchestratorConfig
from rag_agent_orchestrator.core.errors import ConfigurationError
from rag_agent_orchestrator.core.logging import log_context
from rag_agent_orchestrator.engine.context import ExecutionContext
from rag_agent_orchestrator.engine.planner import WorkflowPlanner
from rag_agent_orchestrator.engine.registry import TaskRegistry
from rag_agent_orchestrator.engine.staged import PipelineOrchestrator, StagedPipelineExecutor
from rag_agent_orchestrator.engine.task import TaskResult
from rag_agent_orchestrator.engine.workflow import DagWorkflowExecutor, WorkflowNode
from rag_agent_orchestrator.llm.factory import LazyLLMProvider
from rag_agent_orchestrator.llm.provider import LLMProvider
from rag_agent_orchestrator.rag.chain import OrderedStepChain
from rag_agent_orchestrator.rag.models import ChatMessage, FlowContext, RagAnswer
from rag_agent_orchestrator.tasks.prompt_task import TaskCatalog, load_task_catalog

logger = logging.getLogger(__name__)


class Orchestrator:
    """Entry point wiring the LLM provider, task registry and executors.

    The orchestrator owns one registry shared by declared pipelines, the DAG
    executor and the workflow planner. The answer chain is optional because
    it needs an application-supplied retrieval strategy.
    """

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        llm: LLMProvider | None = None,
        catalog: TaskCatalog | None = None,
        rag_chain: OrderedStepChain | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Configuration object. If None, loads from environment.
            llm: LLM provider. Defaults to the configured provider, created
                on first use.
            catalog: Tasks and pipelines to serve.
            rag_chain: Answer chain for :meth:`answer`.
        """
        self.config = config or OrchestratorConfig()
        self.llm: LLMProvider = llm or LazyLLMProvider(self.config.llm)

        catalog = catalog or TaskCatalog(registry=TaskRegistry())
        timeout = self.config.engine.task_timeout_seconds
        self.registry = catalog.registry
        self.pipelines = PipelineOrchestrator(
            catalog.pipelines, StagedPipelineExecutor(task_timeout=timeout)
        )
        self.workflows = DagWorkflowExecutor(self.registry, task_timeout=timeout)
        self.planner = WorkflowPlanner(self.llm, self.registry)
        self.rag_chain = rag_chain

        logger.info(
            "Orchestrator initialized",
            extra={
                "tasks": len(self.registry),
                "pipelines": self.pipelines.available_pipelines(),
                "rag_chain": rag_chain is not None,
            },
        )

    @classmethod
    def from_catalog_file(
        cls,
        path: Path | str,
        config: OrchestratorConfig | None = None,
        **kwargs: Any,
    ) -> Orchestrator:
        config = config or OrchestratorConfig()
        llm = kwargs.pop("llm", None) or LazyLLMProvider(config.llm)
        return cls(config, llm=llm, catalog=load_task_catalog(path, llm), **kwargs)

    async def run_pipeline(
        self, name: str, payload: Mapping[str, Any] | None = None
    ) -> list[TaskResult]:
        with log_context(pipeline=name):
            return await self.pipelines.invoke(name, ExecutionContext(payload))

    async def run_workflow(
        self, nodes: Sequence[WorkflowNode], payload: Mapping[str, Any] | None = None
    ) -> dict[str, TaskResult]:
        return await self.workflows.run(nodes, ExecutionContext(payload))

    async def plan_and_run(
        self, goal: str, payload: Mapping[str, Any] | None = None
    ) -> tuple[list[WorkflowNode], dict[str, TaskResult]]:
        """Plan a workflow for ``goal`` and execute it with ``payload`` as context."""
        nodes = await self.planner.create_workflow(goal, payload or {})
        return nodes, await self.run_workflow(nodes, payload)

    async def answer(
        self,
        query: str,
        *,
        history: Sequence[ChatMessage] = (),
        top_k: int | None = None,
        similarity_threshold: float | None = None,
        session_id: str | None = None,
    ) -> RagAnswer:
        """Answer ``query`` with the answer chain.

        Raises:
            ConfigurationError: If no answer chain is configured.
            SecurityRejection: If the guard rejects the query.
            StepFailure: If a fatal step fails.
        """
        if self.rag_chain is None:
            raise ConfigurationError("No answer chain is configured")

        rag = self.config.rag
        options: dict[str, Any] = {}
        if session_id:
            options["session_id"] = session_id
        context = FlowContext(
            original_query=query,
            history=tuple(history),
            top_k=top_k if top_k is not None else rag.top_k,
            similarity_threshold=(
                similarity_threshold if similarity_threshold is not None else rag.similarity_threshold
            ),
            **options,
        )
        with log_context(session_id=context.session_id):
            return await self.rag_chain.run(context)
