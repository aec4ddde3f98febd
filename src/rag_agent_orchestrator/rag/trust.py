"""Trust scoring of produced answers.

The final score combines one AI-judged signal with two deterministic ones::

    final = round_half_up(0.6 * confidence + 0.2 * recency + 0.2 * authority)

Recency and authority are derived from document metadata alone and averaged
across all documents; confidence comes from an LLM rating its own answer
against the supplied context.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime

from rag_agent_orchestrator.llm.provider import LLMProvider, ModelCapability
from rag_agent_orchestrator.llm.structured import parse_structured

from . import prompts
from .models import ConfidenceVerdict, Document, TrustScoreReport

logger = logging.getLogger(__name__)

CONFIDENCE_WEIGHT = 6
RECENCY_WEIGHT = 2
AUTHORITY_WEIGHT = 2

AUTHORITY_TABLE: Mapping[str, int] = {
    "Confluence-Policy": 100,
    "Confluence": 80,
    "JIRA": 60,
    "test_case": 50,
}
DEFAULT_AUTHORITY = 70
UNKNOWN_RECENCY = 60

# (maximum age in days, score), checked in order.
RECENCY_BUCKETS: tuple[tuple[int, int], ...] = ((7, 100), (30, 90), (180, 70), (365, 50))
STALE_RECENCY = 20


def combine_scores(confidence: int, recency: int, authority: int) -> int:
    """Weighted combination, rounded half up and clamped to [0, 100]."""
    weighted = (
        CONFIDENCE_WEIGHT * confidence + RECENCY_WEIGHT * recency + AUTHORITY_WEIGHT * authority
    )
    return max(0, min(100, (weighted + 5) // 10))


def _parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class SourceAnalyzer:
    """Deterministic document-quality signals."""

    def __init__(
        self,
        authority_table: Mapping[str, int] = AUTHORITY_TABLE,
        default_authority: int = DEFAULT_AUTHORITY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        # Longest prefix first so "Confluence-Policy" wins over "Confluence".
        self._authority = sorted(authority_table.items(), key=lambda item: len(item[0]), reverse=True)
        self._default_authority = default_authority
        self._clock = clock or (lambda: datetime.now(UTC))

    def recency_score(self, document: Document) -> int:
        modified = _parse_timestamp(document.metadata.get("last_modified"))
        if modified is None:
            return UNKNOWN_RECENCY
        age_days = (self._clock() - modified).days
        for max_days, score in RECENCY_BUCKETS:
            if age_days <= max_days:
                return score
        return STALE_RECENCY

    def authority_score(self, document: Document) -> int:
        source = document.source
        for prefix, score in self._authority:
            if source.startswith(prefix):
                return score
        return self._default_authority

    def analyze_recency(self, documents: Sequence[Document]) -> int:
        if not documents:
            return 0
        return sum(self.recency_score(doc) for doc in documents) // len(documents)

    def analyze_authority(self, documents: Sequence[Document]) -> int:
        if not documents:
            return 0
        return sum(self.authority_score(doc) for doc in documents) // len(documents)


class TrustScoringEngine:
    def __init__(self, llm: LLMProvider, analyzer: SourceAnalyzer | None = None) -> None:
        self.llm = llm
        self.analyzer = analyzer or SourceAnalyzer()

    async def score(
        self, answer: str, documents: Sequence[Document], query: str
    ) -> TrustScoreReport:
        """Score ``answer`` against the documents it was generated from.

        Args:
            answer: The produced answer text.
            documents: Documents the answer is grounded on.
            query: The user's original question.

        Returns:
            The full report. With no documents the score is 0 and the judge
            is not consulted.

        Raises:
            MalformedStructuredOutput: If the confidence judge's response
                cannot be parsed.
        """
        if not documents:
            return TrustScoreReport.zero("No documents to assess.")

        recency = self.analyzer.analyze_recency(documents)
        authority = self.analyzer.analyze_authority(documents)

        context = "\n\n".join(
            f'<doc source="{doc.source}">\n{doc.text}\n</doc>' for doc in documents
        )
        response = await self.llm.generate(
            prompts.TRUST_SCORER.format(context=context, question=query, answer=answer),
            capability=ModelCapability.FAST_RELIABLE,
            json_mode=True,
        )
        verdict = parse_structured(response, ConfidenceVerdict)

        report = TrustScoreReport(
            final_score=combine_scores(verdict.confidence_score, recency, authority),
            confidence_score=verdict.confidence_score,
            recency_score=recency,
            authority_score=authority,
            justification=verdict.justification,
        )
        logger.info(
            "Trust score computed",
            extra={
                "query": query,
                "final_score": report.final_score,
                "confidence": report.confidence_score,
                "recency": recency,
                "authority": authority,
            },
        )
        return report
