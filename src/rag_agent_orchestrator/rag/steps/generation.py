"""The answer-producing step."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability
from rag_agent_orchestrator.llm.structured import parse_structured

from .. import prompts
from ..chain import BaseStep
from ..models import FlowContext, RagAnswer

logger = logging.getLogger(__name__)


class ChainOfThoughtResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    thought: str = ""
    final_answer: str = Field(alias="finalAnswer")


class GenerationStep(BaseStep):
    """Generate the answer from the assembled prompt.

    With no context documents a fixed answer is returned without calling the
    LLM. Any failure here is fatal to the chain.
    """

    name = "generation"
    priority = 40
    terminal_on_failure = True
    produces_answer = True

    def __init__(self, llm: LLMProvider) -> None:
        self.llm = llm

    async def process(self, context: FlowContext) -> FlowContext:
        if not context.context_documents:
            logger.info("No context documents; returning fallback answer")
            return context.with_final_answer(RagAnswer(answer=prompts.NO_CONTEXT_ANSWER))

        if not context.prompt:
            raise ValueError("no prompt was assembled before generation")

        response = await self.llm.generate(
            context.prompt, capability=ModelCapability.BALANCED, json_mode=True
        )
        parsed = parse_structured(response, ChainOfThoughtResponse)
        answer = parsed.final_answer.strip()
        logger.info(
            "Answer generated",
            extra={"session_id": context.session_id, "answer_chars": len(answer)},
        )
        return context.with_final_answer(RagAnswer(answer=answer))
