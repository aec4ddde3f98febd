"""Steps that run after the answer exists.

They attach citations, a trust score and a validation report to the answer
and leave its text untouched.
"""

from __future__ import annotations

import logging
import re

from rag_agent_orchestrator.core.errors import MalformedStructuredOutput
from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability
from rag_agent_orchestrator.llm.structured import parse_structured

from .. import prompts
from ..chain import BaseStep
from ..models import FlowContext, SourceCitation, TrustScoreReport, ValidationReport
from ..trust import TrustScoringEngine

logger = logging.getLogger(__name__)

CITATION_PATTERN = re.compile(r"\[([\w\-.:]+)]")


class CitationExtractionStep(BaseStep):
    """Resolve ``[chunk-id]`` markers in the answer to source citations."""

    name = "citation_extraction"
    priority = 50

    async def process(self, context: FlowContext) -> FlowContext:
        answer = context.final_answer
        if answer is None or not answer.answer:
            return context

        by_chunk_id = {}
        for document in context.context_documents:
            by_chunk_id.setdefault(document.chunk_id, document)

        citations: list[SourceCitation] = []
        seen: set[str] = set()
        for match in CITATION_PATTERN.finditer(answer.answer):
            chunk_id = match.group(1)
            if chunk_id in seen or chunk_id not in by_chunk_id:
                continue
            seen.add(chunk_id)
            citations.append(SourceCitation.from_document(by_chunk_id[chunk_id]))

        logger.debug("Citations extracted", extra={"citations": len(citations)})
        return context.with_final_answer(answer.model_copy(update={"source_citations": citations}))


class TrustScoringStep(BaseStep):
    """Attach a trust report; unparseable judge output yields a zero report."""

    name = "trust_scoring"
    priority = 60

    def __init__(self, engine: TrustScoringEngine) -> None:
        self.engine = engine

    async def process(self, context: FlowContext) -> FlowContext:
        answer = context.final_answer
        if answer is None:
            return context

        try:
            report = await self.engine.score(
                answer.answer, context.context_documents, context.original_query
            )
        except MalformedStructuredOutput:
            logger.error(
                "Trust scorer returned malformed output; using zero score",
                extra={"session_id": context.session_id},
            )
            report = TrustScoreReport.zero("Trust score could not be computed.")

        return context.with_final_answer(answer.model_copy(update={"trust_score_report": report}))


class ResponseValidationStep(BaseStep):
    """Check the answer for statements the context does not support."""

    name = "response_validation"
    priority = 70

    def __init__(self, llm: LLMProvider) -> None:
        self.llm = llm

    async def process(self, context: FlowContext) -> FlowContext:
        answer = context.final_answer
        documents = context.context_documents
        if answer is None or not answer.answer.strip() or not documents:
            return context

        response = await self.llm.generate(
            prompts.RESPONSE_VALIDATOR.format(
                context=prompts.format_documents(documents),
                question=context.original_query,
                answer=answer.answer,
            ),
            capability=ModelCapability.BALANCED,
            json_mode=True,
        )
        report = parse_structured(response, ValidationReport)
        if not report.is_valid:
            logger.warning(
                "Answer failed validation",
                extra={"session_id": context.session_id, "findings": report.findings},
            )
        return context.with_final_answer(answer.model_copy(update={"validation_report": report}))
