"""Retrieval with bounded self-correction.

retrieve -> judge sufficiency -> rewrite and retry, at most ``MAX_ATTEMPTS``
retrievals per call. The loop is fail-open: it never raises because a
correction was inconclusive and never discards documents it already has.
"""

from __future__ import annotations

import logging

from rag_agent_orchestrator.core.errors import MalformedStructuredOutput

from .collaborators import RetrievalJudge, RetrievalStrategy
from .models import Document, ProcessedQueries, RetrievalVerdict

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class ReflectiveRetryLoop:
    def __init__(self, strategy: RetrievalStrategy, judge: RetrievalJudge) -> None:
        self.strategy = strategy
        self.judge = judge

    async def retrieve(
        self,
        queries: ProcessedQueries | None,
        original_query: str,
        top_k: int,
        threshold: float,
        attempt: int = 1,
    ) -> list[Document]:
        """Retrieve documents, rewriting the query once if the judge finds them insufficient.

        The judge always evaluates against ``original_query``; only the
        retrieval queries are rewritten.
        """
        documents = await self.strategy.retrieve(queries, original_query, top_k, threshold)
        if not documents:
            logger.info("Retrieval returned no documents", extra={"attempt": attempt})
            return documents

        if attempt >= MAX_ATTEMPTS:
            logger.warning(
                "Self-correction attempt limit reached; returning last retrieval",
                extra={"query": original_query, "attempt": attempt},
            )
            return documents

        verdict = await self._judge(original_query, documents)
        if verdict.is_sufficient:
            logger.info(
                "Retrieved documents judged sufficient",
                extra={"attempt": attempt, "documents": len(documents)},
            )
            return documents

        logger.warning(
            "Retrieved documents judged insufficient; rewriting query",
            extra={"attempt": attempt, "reasoning": verdict.reasoning},
        )
        rewritten = await self.judge.rewrite(original_query, verdict.reasoning)
        if not rewritten or not rewritten.strip():
            logger.warning("Query rewrite was empty; keeping current documents")
            return documents

        return await self.retrieve(
            ProcessedQueries(rewritten.strip()),
            original_query,
            top_k,
            threshold,
            attempt + 1,
        )

    async def _judge(self, query: str, documents: list[Document]) -> RetrievalVerdict:
        try:
            return await self.judge.judge(query, documents)
        except MalformedStructuredOutput as e:
            logger.error(
                "Retrieval judge returned malformed output; treating as sufficient",
                extra={"raw": e.raw[:500]},
            )
            return RetrievalVerdict(is_sufficient=True, reasoning="Judge output could not be parsed.")
