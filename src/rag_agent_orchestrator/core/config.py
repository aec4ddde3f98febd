"""Core configuration for the orchestrator."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from rag_agent_orchestrator.core.logging import configure_logging


class LLMConfig(BaseSettings):
    """Configuration for LLM providers."""

    provider: Literal["openai", "llama"] = Field(
        default="openai",
        description="LLM provider to use",
    )

    # OpenAI settings
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override for OpenAI-compatible endpoints",
    )
    fast_model: str = Field(
        default="gpt-4o-mini",
        description="Model used for guard, judge and rewrite calls",
    )
    balanced_model: str = Field(
        default="gpt-4o",
        description="Model used for planning, generation and validation",
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Default sampling temperature",
    )
    request_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound for a single LLM request",
    )

    # LLaMA settings
    llama_model_path: Path | None = Field(
        default=None,
        description="Path to LLaMA model file",
    )
    llama_n_ctx: int = Field(
        default=4096,
        gt=0,
        description="Context window size for LLaMA",
    )
    llama_n_threads: int | None = Field(
        default=None,
        description="Number of threads for LLaMA (None = auto)",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_LLM_",
        env_file=".env",
        extra="ignore",
    )


class EngineConfig(BaseSettings):
    """Configuration for the staged and DAG executors."""

    task_timeout_seconds: float | None = Field(
        default=None,
        description="Upper bound for a single task execution (None = unbounded)",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_ENGINE_",
        env_file=".env",
        extra="ignore",
    )


class RagConfig(BaseSettings):
    """Configuration for the answer chain."""

    top_k: int = Field(
        default=5,
        gt=0,
        description="Number of documents requested from retrieval",
    )
    similarity_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Minimum similarity for retrieved documents",
    )
    context_expansion_enabled: bool = Field(
        default=False,
        description="Replace child chunks with their parent documents",
    )
    compression_enabled: bool = Field(
        default=False,
        description="Enable the contextual compression step",
    )
    validation_enabled: bool = Field(
        default=False,
        description="Enable the response validation step",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_RAG_",
        env_file=".env",
        extra="ignore",
    )


class OrchestratorConfig(BaseSettings):
    """Main configuration for the orchestrator."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    json_logs: bool = Field(
        default=False,
        description="Emit structured JSON log lines instead of plain text",
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM configuration",
    )
    engine: EngineConfig = Field(
        default_factory=EngineConfig,
        description="Executor configuration",
    )
    rag: RagConfig = Field(
        default_factory=RagConfig,
        description="Answer chain configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        if self.json_logs:
            configure_logging(self.log_level)
        else:
            level = getattr(logging, self.log_level.upper(), logging.INFO)
            logging.basicConfig(
                level=level,
                format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )

        if self.debug:
            logging.getLogger("rag_agent_orchestrator").setLevel(logging.DEBUG)
