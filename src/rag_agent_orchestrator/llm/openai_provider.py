"""OpenAI LLM provider implementation."""

import logging
from typing import Any

from openai import AsyncOpenAI

from rag_agent_orchestrator.core.config import LLMConfig
from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation."""

    def __init__(self, config: LLMConfig) -> None:
        """Initialize the OpenAI provider.

        Args:
            config: LLM configuration.

        Raises:
            ValueError: If API key is not provided.
        """
        if not config.openai_api_key:
            raise ValueError("OpenAI API key is required")

        self.config = config
        self.client = AsyncOpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout=config.request_timeout_seconds,
        )
        self.temperature = config.temperature

        logger.info(
            f"OpenAI provider initialized with models: "
            f"fast={config.fast_model}, balanced={config.balanced_model}"
        )

    def model_for(self, capability: ModelCapability) -> str:
        if capability is ModelCapability.BALANCED:
            return self.config.balanced_model
        return self.config.fast_model

    async def chat(
        self,
        messages: list[dict[str, str]],
        *,
        capability: ModelCapability = ModelCapability.BALANCED,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        **kwargs: Any,
    ) -> str:
        """Generate chat completion using OpenAI API.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            capability: Model class to route the call to.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.
            json_mode: Request ``response_format={"type": "json_object"}``.
            **kwargs: Additional OpenAI-specific parameters.

        Returns:
            Generated chat response.
        """
        temp = temperature if temperature is not None else self.temperature
        model = self.model_for(capability)
        if json_mode:
            kwargs.setdefault("response_format", {"type": "json_object"})

        logger.debug(f"Generating chat completion with {len(messages)} messages on {model}")

        response = await self.client.chat.completions.create(
            model=model,
            messages=messages,  # type: ignore
            max_tokens=max_tokens,
            temperature=temp,
            **kwargs,
        )

        content = response.choices[0].message.content or ""
        logger.debug(f"Generated {len(content)} characters")

        return content

    def count_tokens(self, text: str) -> int:
        """Count tokens using a simple approximation.

        Args:
            text: Text to count tokens for.

        Returns:
            Estimated number of tokens.

        Note:
            This is a rough approximation. For accurate counts,
            use tiktoken library with the specific model's encoding.
        """
        # Rough approximation: 1 token ≈ 4 characters
        return len(text) // 4
