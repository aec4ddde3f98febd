"""Prompt-injection guard; always the first step of the chain."""

from __future__ import annotations

import logging

from rag_agent_orchestrator.core.errors import MalformedStructuredOutput, SecurityRejection
from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability
from rag_agent_orchestrator.llm.structured import parse_structured

from .. import prompts
from ..chain import BaseStep
from ..models import FlowContext, SecurityVerdict

logger = logging.getLogger(__name__)

DENY_LIST: frozenset[str] = frozenset(
    {
        "ignore previous",
        "ignore all",
        "system prompt",
        "act as",
        "забудь предыдущие",
        "игнорируй все",
        "ты теперь",
        "твои инструкции",
    }
)

QUESTION_PREFIXES: tuple[str, ...] = (
    "what",
    "where",
    "when",
    "who",
    "how",
    "why",
    "tell me",
    "describe",
    "explain",
    "что",
    "где",
    "когда",
    "кто",
    "как",
    "почему",
    "сколько",
    "какой",
    "расскажи",
    "опиши",
)


def is_denied(query: str) -> bool:
    lowered = query.lower()
    return any(phrase in lowered for phrase in DENY_LIST)


def is_plain_question(query: str) -> bool:
    """Blank input, a trailing question mark or a leading question word."""
    lowered = query.strip().lower()
    if not lowered or lowered.endswith("?"):
        return True
    return lowered.startswith(QUESTION_PREFIXES)


class PromptGuardStep(BaseStep):
    """Screen the query in three tiers: deny list, allow list, AI judge.

    The deny list is checked first, so a question that contains a denied
    phrase is still rejected. Judge output that cannot be parsed lets the
    query through.
    """

    name = "prompt_guard"
    priority = 1
    terminal_on_failure = True

    def __init__(self, llm: LLMProvider) -> None:
        self.llm = llm

    async def process(self, context: FlowContext) -> FlowContext:
        query = context.original_query

        if is_denied(query):
            logger.warning("Deny-listed phrase in query", extra={"session_id": context.session_id})
            raise SecurityRejection("Potentially malicious instruction detected.", query)

        if is_plain_question(query):
            logger.debug("Query passed the question heuristic", extra={"session_id": context.session_id})
            return context

        response = await self.llm.generate(
            prompts.PROMPT_GUARD.format(query=query),
            capability=ModelCapability.FASTEST,
            json_mode=True,
        )
        try:
            verdict = parse_structured(response, SecurityVerdict)
        except MalformedStructuredOutput:
            logger.error(
                "Guard judge returned malformed output; allowing query",
                extra={"session_id": context.session_id},
            )
            return context

        if not verdict.is_safe:
            logger.warning(
                "Query rejected by guard judge",
                extra={"session_id": context.session_id, "reasoning": str(verdict.reasoning)},
            )
            raise SecurityRejection("Potentially malicious instruction detected. Query rejected.", query)

        return context
