"""Local LLaMA LLM provider implementation."""

import asyncio
import logging
import threading
from typing import Any

from rag_agent_orchestrator.core.config import LLMConfig
from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability

logger = logging.getLogger(__name__)


class LLaMAProvider(LLMProvider):
    """Local LLaMA model provider implementation.

    Requires llama-cpp-python to be installed:
        pip install llama-cpp-python

    Inference is blocking, so every call runs in a worker thread and the event
    loop stays free. A single local model serves every capability.
    """

    def __init__(self, config: LLMConfig) -> None:
        """Initialize the LLaMA provider.

        Args:
            config: LLM configuration.

        Raises:
            ValueError: If model path is not provided.
            ImportError: If llama-cpp-python is not installed.
        """
        if not config.llama_model_path:
            raise ValueError("LLaMA model path is required")

        try:
            from llama_cpp import Llama
        except ImportError as e:
            raise ImportError(
                "llama-cpp-python is required for LLaMA provider. "
                "Install it with: pip install llama-cpp-python"
            ) from e

        self.config = config

        logger.info(f"Loading LLaMA model from: {config.llama_model_path}")

        self.llm = Llama(
            model_path=str(config.llama_model_path),
            n_ctx=config.llama_n_ctx,
            n_threads=config.llama_n_threads,
            verbose=False,
        )
        # llama.cpp contexts are not safe for concurrent use. Taken in the
        # worker thread, so it does not bind to any event loop.
        self._lock = threading.Lock()

        logger.info("LLaMA model loaded successfully")

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
        """Generate chat completion using local LLaMA model.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            capability: Ignored; one local model serves every capability.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.
            json_mode: Constrain output to a JSON object.
            **kwargs: Additional llama-cpp-specific parameters.

        Returns:
            Generated chat response.
        """
        logger.debug(f"Generating chat completion with {len(messages)} messages")

        if json_mode:
            kwargs.setdefault("response_format", {"type": "json_object"})

        result = await asyncio.wait_for(
            asyncio.to_thread(
                self._complete,
                messages=messages,
                max_tokens=max_tokens or 512,
                temperature=temperature if temperature is not None else self.config.temperature,
                **kwargs,
            ),
            self.config.request_timeout_seconds,
        )

        content = result["choices"][0]["message"]["content"] or ""
        logger.debug(f"Generated {len(content)} characters")

        return content

    def _complete(self, **params: Any) -> dict[str, Any]:
        with self._lock:
            return self.llm.create_chat_completion(**params)

    def count_tokens(self, text: str) -> int:
        """Count tokens using LLaMA tokenizer.

        Args:
            text: Text to count tokens for.

        Returns:
            Number of tokens.
        """
        tokens = self.llm.tokenize(text.encode("utf-8"))
        return len(tokens)
