"""Configurable LLM-backed tasks and the JSON catalog that declares them.

A catalog file looks like::

    {
      "tasks": [
        {"name": "summarize", "description": "...", "template": "Summarize: {text}",
         "requires": ["text"], "outputKey": "summary"}
      ],
      "pipelines": [
        {"name": "review", "stages": [["summarize", "classify"], ["report"]]}
      ]
    }

A bare JSON list is read as the ``tasks`` section alone.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rag_agent_orchestrator.core.errors import ConfigurationError
from rag_agent_orchestrator.engine.context import ExecutionContext
from rag_agent_orchestrator.engine.registry import TaskRegistry
from rag_agent_orchestrator.engine.staged import StagedPipeline
from rag_agent_orchestrator.engine.task import TaskResult
from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability
from rag_agent_orchestrator.llm.structured import extract_json_block

logger = logging.getLogger(__name__)


class PromptTaskDefinition(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: str = Field(min_length=1)
    description: str = ""
    template: str = Field(min_length=1)
    requires: list[str] = Field(default_factory=list)
    output_key: str = Field(default="result", alias="outputKey")
    capability: ModelCapability = ModelCapability.BALANCED
    json_output: bool = Field(default=False, alias="jsonOutput")
    requires_approval: bool = Field(default=False, alias="requiresApproval")


class PipelineDefinition(BaseModel):
    name: str = Field(min_length=1)
    stages: list[list[str]]


class CatalogFile(BaseModel):
    tasks: list[PromptTaskDefinition] = Field(default_factory=list)
    pipelines: list[PipelineDefinition] = Field(default_factory=list)


class PromptTask:
    """Render a template from the context, ask the LLM, store the reply.

    The task only runs when every key in ``requires`` is present in the
    context. Its result details hold the reply under ``output_key``; with
    ``json_output`` the reply is decoded first.
    """

    def __init__(self, definition: PromptTaskDefinition, llm: LLMProvider) -> None:
        self.definition = definition
        self.llm = llm
        self.name = definition.name
        self.description = definition.description
        self.requires_approval = definition.requires_approval

    def can_handle(self, context: ExecutionContext) -> bool:
        return all(key in context for key in self.definition.requires)

    def render(self, context: ExecutionContext) -> str:
        return self.definition.template.format_map(context.payload)

    async def execute(self, context: ExecutionContext) -> TaskResult:
        try:
            prompt = self.render(context)
        except (KeyError, IndexError, ValueError) as e:
            return TaskResult.failure(self.name, f"Cannot render prompt template: {e!r}")

        response = await self.llm.generate(
            prompt,
            capability=self.definition.capability,
            json_mode=self.definition.json_output,
        )

        output: Any = response.strip()
        if self.definition.json_output:
            block = extract_json_block(response)
            if not block:
                return TaskResult.failure(self.name, "LLM response contained no JSON")
            output = json.loads(block)

        logger.debug("Prompt task completed", extra={"task_name": self.name})
        return TaskResult.success(
            self.name,
            f"{self.name} produced {self.definition.output_key}",
            {self.definition.output_key: output},
        )


@dataclass
class TaskCatalog:
    registry: TaskRegistry
    pipelines: list[StagedPipeline] = field(default_factory=list)


def parse_task_catalog(raw: Any, llm: LLMProvider) -> TaskCatalog:
    """Build a catalog from decoded JSON.

    Raises:
        ConfigurationError: On schema violations, duplicate task names or
            pipelines referring to unknown tasks.
    """
    if isinstance(raw, list):
        raw = {"tasks": raw}
    try:
        catalog = CatalogFile.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid task catalog: {e}") from e

    registry = TaskRegistry(PromptTask(definition, llm) for definition in catalog.tasks)
    pipelines = [
        StagedPipeline.of(
            pipeline.name,
            ([registry.resolve(name) for name in stage] for stage in pipeline.stages),
        )
        for pipeline in catalog.pipelines
    ]
    logger.info(
        "Task catalog loaded",
        extra={"tasks": registry.names(), "pipelines": [p.name for p in pipelines]},
    )
    return TaskCatalog(registry=registry, pipelines=pipelines)


def load_task_catalog(path: Path | str, llm: LLMProvider) -> TaskCatalog:
    """Read a catalog file. See :func:`parse_task_catalog`."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Task catalog not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Task catalog is not valid JSON: {path}: {e}") from e
    return parse_task_catalog(raw, llm)
