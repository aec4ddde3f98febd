"""Abstract base class for LLM providers."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class ModelCapability(str, Enum):
    """Which class of model a call needs.

    Guard, judge and rewrite calls use the fast models; planning, generation
    and validation use the balanced one.
    """

    FASTEST = "fastest"
    FAST_RELIABLE = "fast_reliable"
    BALANCED = "balanced"


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    This interface allows pluggable LLM backends (OpenAI, LLaMA, etc.).
    All calls are asynchronous.
    """

    async def generate(
        self,
        prompt: str,
        *,
        capability: ModelCapability = ModelCapability.BALANCED,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        **kwargs: Any,
    ) -> str:
        """Generate text completion from a prompt.

        Args:
            prompt: The input prompt.
            capability: Model class to route the call to.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.
            json_mode: Ask the backend for a JSON object response.
            **kwargs: Additional provider-specific parameters.

        Returns:
            Generated text completion.
        """
        return await self.chat(
            [{"role": "user", "content": prompt}],
            capability=capability,
            max_tokens=max_tokens,
            temperature=temperature,
            json_mode=json_mode,
            **kwargs,
        )

    @abstractmethod
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
        """Generate chat completion from messages.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            capability: Model class to route the call to.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.
            json_mode: Ask the backend for a JSON object response.
            **kwargs: Additional provider-specific parameters.

        Returns:
            Generated chat response.
        """
        pass

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Count the number of tokens in text.

        Args:
            text: Text to count tokens for.

        Returns:
            Number of tokens.
        """
        pass
