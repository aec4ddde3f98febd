"""Test configuration and fixtures."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from rag_agent_orchestrator.core.config import (
    EngineConfig,
    LLMConfig,
    OrchestratorConfig,
    RagConfig,
)
from rag_agent_orchestrator.engine.context import ExecutionContext
from rag_agent_orchestrator.engine.task import BaseTask, TaskResult
from rag_agent_orchestrator.llm.provider import LLMProvider


class ScriptedLLM(LLMProvider):
    """LLM double returning queued responses in order, then ``default``."""

    def __init__(self, *responses: str, default: str = "") -> None:
        self.responses = list(responses)
        self.default = default
        self.calls: list[dict[str, Any]] = []

    @property
    def prompts(self) -> list[str]:
        return [call["messages"][-1]["content"] for call in self.calls]

    async def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        self.calls.append({"messages": messages, **kwargs})
        if self.responses:
            return self.responses.pop(0)
        return self.default

    def count_tokens(self, text: str) -> int:
        return len(text.split())


class RecordingTask(BaseTask):
    """Task double that records its lifecycle into a shared event log."""

    def __init__(
        self,
        name: str,
        events: list[tuple[str, str]],
        *,
        details: dict[str, Any] | None = None,
        delay: float = 0.0,
        fail: bool = False,
        raises: Exception | None = None,
        applicable: bool = True,
        requires_approval: bool = False,
    ) -> None:
        self.name = name
        self.description = f"{name} task"
        self.requires_approval = requires_approval
        self.events = events
        self.details = details or {}
        self.delay = delay
        self.fail = fail
        self.raises = raises
        self.applicable = applicable
        self.calls = 0
        self.seen: list[ExecutionContext] = []

    def can_handle(self, context: ExecutionContext) -> bool:
        return self.applicable

    async def execute(self, context: ExecutionContext) -> TaskResult:
        self.calls += 1
        self.seen.append(context)
        self.events.append(("start", self.name))
        await asyncio.sleep(self.delay)
        self.events.append(("end", self.name))
        if self.raises is not None:
            raise self.raises
        if self.fail:
            return TaskResult.failure(self.name, f"{self.name} failed")
        return TaskResult.success(self.name, f"{self.name} done", self.details)


@pytest.fixture
def events() -> list[tuple[str, str]]:
    """Shared lifecycle log for recording tasks."""
    return []


@pytest.fixture
def make_task(events: list[tuple[str, str]]):
    """Factory for recording tasks bound to the shared event log."""

    def factory(name: str, **kwargs: Any) -> RecordingTask:
        return RecordingTask(name, events, **kwargs)

    return factory


@pytest.fixture
def scripted_llm():
    """The scripted LLM class; instantiate with the responses a test needs."""
    return ScriptedLLM


@pytest.fixture
def llm_config() -> LLMConfig:
    """Provide a test LLM configuration."""
    return LLMConfig(
        provider="openai",
        openai_api_key="test-key",
        fast_model="gpt-test-fast",
        balanced_model="gpt-test-balanced",
    )


@pytest.fixture
def orchestrator_config(llm_config: LLMConfig) -> OrchestratorConfig:
    """Provide a test orchestrator configuration."""
    return OrchestratorConfig(
        log_level="DEBUG",
        debug=True,
        llm=llm_config,
        engine=EngineConfig(task_timeout_seconds=5.0),
        rag=RagConfig(top_k=3, similarity_threshold=0.4),
    )
