"""Factory for creating LLM providers."""

import logging
from typing import Any

from rag_agent_orchestrator.core.config import LLMConfig
from rag_agent_orchestrator.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class LLMFactory:
    """Factory for creating LLM provider instances."""

    @staticmethod
    def create(config: LLMConfig) -> LLMProvider:
        """Create an LLM provider based on configuration.

        Args:
            config: LLM configuration specifying the provider.

        Returns:
            Configured LLM provider instance.

        Raises:
            ValueError: If provider type is not supported.
        """
        logger.info(f"Creating LLM provider: {config.provider}")

        if config.provider == "openai":
            from rag_agent_orchestrator.llm.openai_provider import OpenAIProvider

            return OpenAIProvider(config)
        elif config.provider == "llama":
            from rag_agent_orchestrator.llm.llama_provider import LLaMAProvider

            return LLaMAProvider(config)
        else:
            raise ValueError(f"Unsupported LLM provider: {config.provider}")


class LazyLLMProvider(LLMProvider):
    """Create the configured provider on first use.

    Commands that only inspect catalogs or plans never need credentials.
    """

    def __init__(self, config: LLMConfig) -> None:
        self.config = config
        self._provider: LLMProvider | None = None

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = LLMFactory.create(self.config)
        return self._provider

    async def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        return await self.provider.chat(messages, **kwargs)

    def count_tokens(self, text: str) -> int:
        return self.provider.count_tokens(text)
