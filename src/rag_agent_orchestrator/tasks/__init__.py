"""Ready-made task implementations."""

from rag_agent_orchestrator.tasks.prompt_task import (
    PromptTask,
    PromptTaskDefinition,
    TaskCatalog,
    load_task_catalog,
    parse_task_catalog,
)

__all__ = [
    "PromptTask",
    "PromptTaskDefinition",
    "TaskCatalog",
    "load_task_catalog",
    "parse_task_catalog",
]
