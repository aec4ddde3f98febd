"""Core package initialization."""

from rag_agent_orchestrator.core.config import (
    EngineConfig,
    LLMConfig,
    OrchestratorConfig,
    RagConfig,
)

__all__ = [
    "EngineConfig",
    "LLMConfig",
    "OrchestratorConfig",
    "RagConfig",
]
