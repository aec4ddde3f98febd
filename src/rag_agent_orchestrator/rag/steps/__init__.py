"""Concrete steps of the answer chain, by priority.

===========================  ========
step                         priority
===========================  ========
prompt_guard                 1
query_processing             10
retrieval                    20
reranking                    25
context_expansion            28
contextual_compression       35
augmentation                 38
generation                   40
citation_extraction          50
trust_scoring                60
response_validation          70
===========================  ========
"""

from rag_agent_orchestrator.rag.steps.augmentation import AugmentationStep, ContextualCompressionStep
from rag_agent_orchestrator.rag.steps.enrichment import (
    CitationExtractionStep,
    ResponseValidationStep,
    TrustScoringStep,
)
from rag_agent_orchestrator.rag.steps.generation import GenerationStep
from rag_agent_orchestrator.rag.steps.guard import PromptGuardStep
from rag_agent_orchestrator.rag.steps.retrieval import (
    ContextExpansionStep,
    QueryProcessingStep,
    RerankingStep,
    RetrievalStep,
)

__all__ = [
    "AugmentationStep",
    "CitationExtractionStep",
    "ContextExpansionStep",
    "ContextualCompressionStep",
    "GenerationStep",
    "PromptGuardStep",
    "QueryProcessingStep",
    "RerankingStep",
    "ResponseValidationStep",
    "RetrievalStep",
    "TrustScoringStep",
]
