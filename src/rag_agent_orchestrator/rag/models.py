"""Data carried through the answer chain.

``FlowContext`` is rebuilt after every step; no step mutates the instance it
received. Verdicts and reports are pydantic models because they are parsed
from LLM output and serialised in API responses.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


@dataclass(frozen=True, slots=True)
class Document:
    """A retrieved chunk of text with its metadata.

    Well-known metadata keys: ``chunkId``, ``source``, ``last_modified``
    (ISO-8601) and ``rerankedSimilarity``.
    """

    id: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def chunk_id(self) -> str:
        return str(self.metadata.get("chunkId") or self.id)

    @property
    def source(self) -> str:
        return str(self.metadata.get("source") or "")


@dataclass(frozen=True, slots=True)
class ProcessedQueries:
    primary_query: str
    expansion_queries: tuple[str, ...] = ()

    def all(self) -> list[str]:
        return [self.primary_query, *self.expansion_queries]


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: str
    content: str


class _Report(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )


class RetrievalVerdict(_Report):
    is_sufficient: bool
    reasoning: str = ""


class SecurityVerdict(_Report):
    is_safe: bool
    reasoning: Any = None


class ConfidenceVerdict(_Report):
    confidence_score: int
    justification: str = ""

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"confidence score is not a number: {value!r}") from None
        return max(0, min(100, int(round(number))))


class TrustScoreReport(_Report):
    final_score: int = Field(ge=0, le=100)
    confidence_score: int = 0
    recency_score: int = 0
    authority_score: int = 0
    justification: str = ""

    @classmethod
    def zero(cls, justification: str) -> TrustScoreReport:
        return cls(final_score=0, justification=justification)


class ValidationReport(_Report):
    is_valid: bool
    findings: list[str] = Field(default_factory=list)


class SourceCitation(_Report):
    source_name: str
    text_snippet: str
    chunk_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    similarity_score: float | None = None

    @classmethod
    def from_document(cls, document: Document) -> SourceCitation:
        similarity = document.metadata.get("rerankedSimilarity")
        return cls(
            source_name=document.source,
            text_snippet=document.text,
            chunk_id=document.chunk_id,
            metadata=dict(document.metadata),
            similarity_score=float(similarity) if similarity is not None else None,
        )


class RagAnswer(_Report):
    """The produced answer plus the metadata enrichment steps attach to it."""

    answer: str
    source_citations: list[SourceCitation] = Field(default_factory=list)
    trust_score_report: TrustScoreReport | None = None
    validation_report: ValidationReport | None = None


@dataclass(frozen=True, slots=True)
class FlowContext:
    """Accumulating state of one answer-chain run."""

    original_query: str
    history: tuple[ChatMessage, ...] = ()
    top_k: int = 5
    similarity_threshold: float = 0.5
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    processed_queries: ProcessedQueries | None = None
    retrieved_documents: tuple[Document, ...] = ()
    reranked_documents: tuple[Document, ...] | None = None
    compressed_context: str | None = None
    prompt: str | None = None
    final_answer: RagAnswer | None = None

    @property
    def context_documents(self) -> tuple[Document, ...]:
        """Documents the answer is grounded on: reranked if reranking ran."""
        if self.reranked_documents is not None:
            return self.reranked_documents
        return self.retrieved_documents

    def with_processed_queries(self, queries: ProcessedQueries) -> FlowContext:
        return replace(self, processed_queries=queries)

    def with_retrieved_documents(self, documents: list[Document] | tuple[Document, ...]) -> FlowContext:
        return replace(self, retrieved_documents=tuple(documents))

    def with_reranked_documents(self, documents: list[Document] | tuple[Document, ...]) -> FlowContext:
        return replace(self, reranked_documents=tuple(documents))

    def with_compressed_context(self, compressed: str) -> FlowContext:
        return replace(self, compressed_context=compressed)

    def with_prompt(self, prompt: str) -> FlowContext:
        return replace(self, prompt=prompt)

    def with_final_answer(self, answer: RagAnswer) -> FlowContext:
        return replace(self, final_answer=answer)
