"""LLM package initialization."""

from rag_agent_orchestrator.llm.factory import LazyLLMProvider, LLMFactory
from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability
from rag_agent_orchestrator.llm.structured import extract_json_block, parse_structured

__all__ = [
    "LLMFactory",
    "LazyLLMProvider",
    "LLMProvider",
    "ModelCapability",
    "extract_json_block",
    "parse_structured",
]
