"""Context compression and prompt assembly."""

from __future__ import annotations

import logging

from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability

from .. import prompts
from ..chain import BaseStep
from ..models import FlowContext

logger = logging.getLogger(__name__)


class ContextualCompressionStep(BaseStep):
    """Condense the documents to the parts relevant to the question."""

    name = "contextual_compression"
    priority = 35

    def __init__(self, llm: LLMProvider) -> None:
        self.llm = llm

    async def process(self, context: FlowContext) -> FlowContext:
        documents = context.context_documents
        if not documents:
            return context
        compressed = await self.llm.generate(
            prompts.CONTEXT_COMPRESSION.format(
                question=context.original_query,
                documents=prompts.format_documents(documents),
            ),
            capability=ModelCapability.FAST_RELIABLE,
        )
        compressed = compressed.strip()
        if not compressed:
            logger.warning("Compression returned nothing; keeping full documents")
            return context
        return context.with_compressed_context(compressed)


class AugmentationStep(BaseStep):
    name = "augmentation"
    priority = 38

    async def process(self, context: FlowContext) -> FlowContext:
        structured_context = context.compressed_context or prompts.format_documents(
            context.context_documents
        )
        prompt = prompts.RAG_ANSWER.format(
            history=prompts.format_history(context.history),
            context=structured_context,
            question=context.original_query,
        )
        return context.with_prompt(prompt)
