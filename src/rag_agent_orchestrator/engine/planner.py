"""LLM-backed planner turning a goal into a workflow plan."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from rag_agent_orchestrator.core.errors import InvalidWorkflowPlanError
from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability
from rag_agent_orchestrator.llm.structured import extract_json_block

from .registry import TaskRegistry
from .workflow import WorkflowNode, parse_workflow_plan, validate_workflow

logger = logging.getLogger(__name__)

PLANNER_PROMPT = """You are a workflow planner. Build a plan that reaches the goal using only the tools listed below.

Return a JSON array. Each element is a node:
  {{"id": "<unique id>", "agentName": "<tool name>", "dependencies": ["<node id>", ...], "arguments": {{...}}}}

Rules:
- Use only tool names from the list.
- A node may depend only on ids defined in the same plan.
- Nodes without a path between them run in parallel; do not add dependencies that are not needed.
- Do not create cycles.
- Return JSON only, without commentary.

Available tools:
{tools}

Goal:
{goal}

Context:
{context}
"""


class WorkflowPlanner:
    """Ask the LLM for a workflow plan over the registry's tools."""

    def __init__(self, llm: LLMProvider, registry: TaskRegistry) -> None:
        self.llm = llm
        self.registry = registry

    def render_prompt(self, goal: str, context: Mapping[str, Any]) -> str:
        return PLANNER_PROMPT.format(
            tools=self.registry.describe_as_json(),
            goal=goal,
            context=json.dumps(dict(context), ensure_ascii=False, default=str),
        )

    async def create_workflow(
        self, goal: str, context: Mapping[str, Any] | None = None
    ) -> list[WorkflowNode]:
        """Plan a workflow for ``goal``.

        Args:
            goal: What the workflow should achieve.
            context: Facts made available to the planner.

        Returns:
            Plan nodes, validated against the registry.

        Raises:
            InvalidWorkflowPlanError: If the response holds no parseable plan.
            ConfigurationError: If the plan references unknown tasks or nodes,
                or is cyclic.
        """
        logger.info("Requesting workflow plan", extra={"goal": goal})
        response = await self.llm.generate(
            self.render_prompt(goal, context or {}),
            capability=ModelCapability.BALANCED,
        )

        block = extract_json_block(response)
        if not block:
            raise InvalidWorkflowPlanError("Planner returned no JSON workflow")
        nodes = parse_workflow_plan(block)
        validate_workflow(nodes, self.registry)

        logger.info("Workflow plan created", extra={"goal": goal, "nodes": len(nodes)})
        return nodes
