"""Retrieval-augmented answer chain."""

from __future__ import annotations

from rag_agent_orchestrator.core.config import RagConfig
from rag_agent_orchestrator.llm.provider import LLMProvider
from rag_agent_orchestrator.rag.chain import BaseStep, OrderedStepChain, PipelineStep
from rag_agent_orchestrator.rag.collaborators import (
    LLMQueryProcessor,
    LLMRetrievalJudge,
    QueryProcessor,
    Reranker,
    RetrievalJudge,
    RetrievalStrategy,
)
from rag_agent_orchestrator.rag.models import (
    ChatMessage,
    Document,
    FlowContext,
    ProcessedQueries,
    RagAnswer,
    TrustScoreReport,
)
from rag_agent_orchestrator.rag.reflective import MAX_ATTEMPTS, ReflectiveRetryLoop
from rag_agent_orchestrator.rag.steps import (
    AugmentationStep,
    CitationExtractionStep,
    ContextExpansionStep,
    ContextualCompressionStep,
    GenerationStep,
    PromptGuardStep,
    QueryProcessingStep,
    RerankingStep,
    ResponseValidationStep,
    RetrievalStep,
    TrustScoringStep,
)
from rag_agent_orchestrator.rag.trust import SourceAnalyzer, TrustScoringEngine, combine_scores


def build_rag_chain(
    llm: LLMProvider,
    retrieval: RetrievalStrategy,
    config: RagConfig | None = None,
    *,
    reranker: Reranker | None = None,
    query_processor: QueryProcessor | None = None,
    judge: RetrievalJudge | None = None,
) -> OrderedStepChain:
    """Assemble the standard answer chain.

    Reranking is present only with a ``reranker``; context expansion,
    compression and validation follow the feature flags in ``config``.
    """
    config = config or RagConfig()
    steps: list[PipelineStep] = [
        PromptGuardStep(llm),
        QueryProcessingStep(query_processor or LLMQueryProcessor(llm)),
        RetrievalStep(ReflectiveRetryLoop(retrieval, judge or LLMRetrievalJudge(llm))),
        AugmentationStep(),
        GenerationStep(llm),
        CitationExtractionStep(),
        TrustScoringStep(TrustScoringEngine(llm)),
    ]
    if reranker is not None:
        steps.append(RerankingStep(reranker))
    if config.context_expansion_enabled:
        steps.append(ContextExpansionStep())
    if config.compression_enabled:
        steps.append(ContextualCompressionStep(llm))
    if config.validation_enabled:
        steps.append(ResponseValidationStep(llm))
    return OrderedStepChain(steps)


__all__ = [
    "MAX_ATTEMPTS",
    "BaseStep",
    "ChatMessage",
    "Document",
    "FlowContext",
    "OrderedStepChain",
    "PipelineStep",
    "ProcessedQueries",
    "RagAnswer",
    "ReflectiveRetryLoop",
    "SourceAnalyzer",
    "TrustScoreReport",
    "TrustScoringEngine",
    "build_rag_chain",
    "combine_scores",
]
