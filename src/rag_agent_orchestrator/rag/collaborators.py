"""Collaborators of the answer chain and their LLM-backed implementations.

Retrieval and reranking are supplied by the embedding application; the
query processor and retrieval judge have default implementations on top of
an ``LLMProvider``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability
from rag_agent_orchestrator.llm.structured import extract_json_block, parse_structured

from . import prompts
from .models import ChatMessage, Document, ProcessedQueries, RetrievalVerdict

logger = logging.getLogger(__name__)


class RetrievalStrategy(Protocol):
    async def retrieve(
        self,
        queries: ProcessedQueries | None,
        original_query: str,
        top_k: int,
        threshold: float,
    ) -> list[Document]: ...


class QueryProcessor(Protocol):
    async def process(self, query: str, history: Sequence[ChatMessage]) -> ProcessedQueries: ...


class Reranker(Protocol):
    async def rerank(self, documents: Sequence[Document], query: str) -> list[Document]: ...


class RetrievalJudge(Protocol):
    async def judge(self, query: str, documents: Sequence[Document]) -> RetrievalVerdict:
        """Raises ``MalformedStructuredOutput`` if the verdict cannot be parsed."""
        ...

    async def rewrite(self, query: str, missing_info: str) -> str: ...


class LLMRetrievalJudge:
    def __init__(self, llm: LLMProvider) -> None:
        self.llm = llm

    async def judge(self, query: str, documents: Sequence[Document]) -> RetrievalVerdict:
        response = await self.llm.generate(
            prompts.RETRIEVAL_JUDGE.format(
                query=query, documents=prompts.format_documents(documents)
            ),
            capability=ModelCapability.FAST_RELIABLE,
            json_mode=True,
        )
        return parse_structured(response, RetrievalVerdict)

    async def rewrite(self, query: str, missing_info: str) -> str:
        response = await self.llm.generate(
            prompts.QUERY_REWRITE.format(original_query=query, missing_info=missing_info),
            capability=ModelCapability.FASTEST,
        )
        return response.strip().strip('"').strip()


_QUERY_LIST: TypeAdapter[list[str]] = TypeAdapter(list[str])


class LLMQueryProcessor:
    """Expand a query into alternative phrasings.

    A response that cannot be parsed leaves the query unexpanded.
    """

    def __init__(self, llm: LLMProvider, max_expansions: int = 3) -> None:
        self.llm = llm
        self.max_expansions = max_expansions

    async def process(self, query: str, history: Sequence[ChatMessage]) -> ProcessedQueries:
        if self.max_expansions <= 0 or not query.strip():
            return ProcessedQueries(query)

        response = await self.llm.generate(
            prompts.QUERY_EXPANSION.format(
                count=self.max_expansions,
                history=prompts.format_history(history),
                query=query,
            ),
            capability=ModelCapability.FASTEST,
        )
        block = extract_json_block(response)
        try:
            candidates = _QUERY_LIST.validate_json(block) if block else []
        except ValidationError:
            logger.warning("Query expansion returned malformed output", extra={"query": query})
            candidates = []

        expansions: list[str] = []
        for candidate in candidates:
            candidate = candidate.strip()
            if candidate and candidate != query and candidate not in expansions:
                expansions.append(candidate)
        logger.debug("Query processed", extra={"query": query, "expansions": expansions})
        return ProcessedQueries(query, tuple(expansions[: self.max_expansions]))
