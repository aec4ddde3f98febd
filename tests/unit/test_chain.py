from __future__ import annotations

import asyncio
import json

import pytest

from rag_agent_orchestrator.core.config import RagConfig
from rag_agent_orchestrator.core.errors import ConfigurationError, SecurityRejection, StepFailure
from rag_agent_orchestrator.rag import build_rag_chain
from rag_agent_orchestrator.rag.chain import BaseStep, OrderedStepChain
from rag_agent_orchestrator.rag.collaborators import LLMQueryProcessor
from rag_agent_orchestrator.rag.models import Document, FlowContext, ProcessedQueries, RagAnswer
from rag_agent_orchestrator.rag.prompts import NO_CONTEXT_ANSWER
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
from rag_agent_orchestrator.rag.trust import TrustScoringEngine


class Step(BaseStep):
    """Configurable step appending its name to a shared trace."""

    def __init__(self, name, priority, trace, *, produces=False, terminal=False, action=None):
        self.name = name
        self.priority = priority
        self.produces_answer = produces
        self.terminal_on_failure = terminal
        self.trace = trace
        self.action = action

    async def process(self, context: FlowContext) -> FlowContext:
        self.trace.append(self.name)
        if self.action is not None:
            return self.action(context)
        if self.produces_answer:
            return context.with_final_answer(RagAnswer(answer="forty-two"))
        return context


def _raise(exc: Exception):
    def action(context: FlowContext) -> FlowContext:
        raise exc

    return action


class StaticRetrieval:
    def __init__(self, documents: list[Document]) -> None:
        self.documents = documents
        self.calls = 0

    async def retrieve(self, queries, original_query, top_k, threshold) -> list[Document]:
        self.calls += 1
        return list(self.documents)


class ReversingReranker:
    async def rerank(self, documents, query) -> list[Document]:
        return list(reversed(documents))


def test_steps_run_in_priority_order_regardless_of_registration(scripted_llm) -> None:
    trace: list[str] = []
    chain = OrderedStepChain(
        [
            Step("post", 50, trace),
            Step("answer", 40, trace, produces=True),
            Step("guard", 1, trace),
            Step("retrieve", 20, trace),
        ]
    )

    answer = asyncio.run(chain.run(FlowContext("q")))

    assert trace == ["guard", "retrieve", "answer", "post"]
    assert [step.name for step in chain.steps] == trace
    assert answer.answer == "forty-two"


def test_assembly_rejects_duplicate_priorities_and_producer_count() -> None:
    trace: list[str] = []

    with pytest.raises(ConfigurationError, match="share priority 10"):
        OrderedStepChain([Step("a", 10, trace), Step("b", 10, trace), Step("c", 40, trace, produces=True)])
    with pytest.raises(ConfigurationError, match="Exactly one"):
        OrderedStepChain([Step("a", 10, trace)])
    with pytest.raises(ConfigurationError, match="Exactly one"):
        OrderedStepChain([Step("a", 10, trace, produces=True), Step("b", 20, trace, produces=True)])


def test_security_rejection_propagates_unchanged() -> None:
    trace: list[str] = []
    rejection = SecurityRejection("nope", "q")
    chain = OrderedStepChain(
        [Step("guard", 1, trace, action=_raise(rejection)), Step("answer", 40, trace, produces=True)]
    )

    with pytest.raises(SecurityRejection) as exc_info:
        asyncio.run(chain.run(FlowContext("q")))

    assert exc_info.value is rejection
    assert trace == ["guard"]


def test_pre_answer_failure_is_fatal_even_when_not_terminal() -> None:
    trace: list[str] = []
    chain = OrderedStepChain(
        [
            Step("retrieve", 20, trace, action=_raise(RuntimeError("index offline"))),
            Step("answer", 40, trace, produces=True),
        ]
    )

    with pytest.raises(StepFailure) as exc_info:
        asyncio.run(chain.run(FlowContext("q")))

    assert exc_info.value.task_name == "retrieve"
    assert exc_info.value.message == "index offline"
    assert trace == ["retrieve"]


def test_non_terminal_enrichment_failure_degrades() -> None:
    trace: list[str] = []
    chain = OrderedStepChain(
        [
            Step("answer", 40, trace, produces=True),
            Step("flaky", 50, trace, action=_raise(RuntimeError("scorer down"))),
            Step("last", 60, trace),
        ]
    )

    answer = asyncio.run(chain.run(FlowContext("q")))

    assert answer.answer == "forty-two"
    assert trace == ["answer", "flaky", "last"]


def test_terminal_enrichment_failure_aborts() -> None:
    trace: list[str] = []
    chain = OrderedStepChain(
        [
            Step("answer", 40, trace, produces=True),
            Step("strict", 50, trace, terminal=True, action=_raise(RuntimeError("audit failed"))),
        ]
    )

    with pytest.raises(StepFailure, match="strict"):
        asyncio.run(chain.run(FlowContext("q")))


def test_enrichment_changing_answer_text_is_rejected() -> None:
    trace: list[str] = []

    def rewrite(context: FlowContext) -> FlowContext:
        return context.with_final_answer(RagAnswer(answer="something else"))

    chain = OrderedStepChain(
        [Step("answer", 40, trace, produces=True), Step("meddler", 50, trace, action=rewrite)]
    )

    with pytest.raises(StepFailure) as exc_info:
        asyncio.run(chain.run(FlowContext("q")))

    assert exc_info.value.task_name == "meddler"


def test_answer_step_without_answer_is_a_failure() -> None:
    trace: list[str] = []
    chain = OrderedStepChain([Step("answer", 40, trace, produces=True, action=lambda ctx: ctx)])

    with pytest.raises(StepFailure, match="no answer"):
        asyncio.run(chain.run(FlowContext("q")))


def test_chain_ending_without_an_answer_fails() -> None:
    trace: list[str] = []
    answer = Step("answer", 40, trace, produces=True, action=lambda ctx: ctx)
    chain = OrderedStepChain([Step("prep", 10, trace), answer])
    answer.produces_answer = False

    with pytest.raises(StepFailure, match="without an answer") as exc_info:
        asyncio.run(chain.run(FlowContext("q")))

    assert exc_info.value.task_name == "answer"
    assert trace == ["prep", "answer"]


def test_generation_without_documents_returns_fallback_without_llm(scripted_llm) -> None:
    llm = scripted_llm()

    context = asyncio.run(GenerationStep(llm).process(FlowContext("q", prompt="unused")))

    assert context.final_answer == RagAnswer(answer=NO_CONTEXT_ANSWER)
    assert llm.calls == []


def test_citations_keep_answer_text_and_dedupe() -> None:
    documents = (
        Document("doc-1", "VPN is at vpn.example.org", {"source": "Confluence/IT", "rerankedSimilarity": 0.91}),
        Document("doc-2", "Unrelated", {"source": "JIRA"}),
    )
    text = "Use vpn.example.org [doc-1]. Again [doc-1] and [unknown]."
    context = FlowContext("q", retrieved_documents=documents).with_final_answer(RagAnswer(answer=text))

    result = asyncio.run(CitationExtractionStep().process(context))

    assert result.final_answer.answer == text
    citations = result.final_answer.source_citations
    assert [c.chunk_id for c in citations] == ["doc-1"]
    assert citations[0].source_name == "Confluence/IT"
    assert citations[0].similarity_score == 0.91


def test_trust_step_uses_zero_report_on_malformed_output(scripted_llm) -> None:
    documents = (Document("d", "text", {"source": "JIRA"}),)
    context = FlowContext("q", retrieved_documents=documents).with_final_answer(RagAnswer(answer="a"))

    result = asyncio.run(TrustScoringStep(TrustScoringEngine(scripted_llm("???"))).process(context))

    assert result.final_answer.trust_score_report.final_score == 0
    assert result.final_answer.answer == "a"


def test_query_processor_dedupes_and_tolerates_garbage(scripted_llm) -> None:
    llm = scripted_llm('["vpn address", "VPN host", "vpn address", "what is the vpn"]', "nonsense")
    processor = LLMQueryProcessor(llm, max_expansions=2)

    first = asyncio.run(processor.process("what is the vpn", ()))
    second = asyncio.run(processor.process("what is the vpn", ()))

    assert first == ProcessedQueries("what is the vpn", ("vpn address", "VPN host"))
    assert second == ProcessedQueries("what is the vpn")


def test_build_rag_chain_respects_feature_flags(scripted_llm) -> None:
    llm = scripted_llm()
    retrieval = StaticRetrieval([])

    minimal = build_rag_chain(llm, retrieval)
    full = build_rag_chain(
        llm,
        retrieval,
        RagConfig(
            context_expansion_enabled=True, compression_enabled=True, validation_enabled=True
        ),
        reranker=ReversingReranker(),
    )

    assert [type(s) for s in minimal.steps] == [
        PromptGuardStep,
        QueryProcessingStep,
        RetrievalStep,
        AugmentationStep,
        GenerationStep,
        CitationExtractionStep,
        TrustScoringStep,
    ]
    full_types = {type(s) for s in full.steps}
    assert {
        RerankingStep,
        ContextExpansionStep,
        ContextualCompressionStep,
        ResponseValidationStep,
    } <= full_types
    assert [s.priority for s in full.steps] == sorted(s.priority for s in full.steps)


def test_full_chain_answers_with_citations_and_trust(scripted_llm) -> None:
    documents = [
        Document("doc-1", "The VPN lives at vpn.example.org", {"source": "Confluence/IT"}),
        Document("doc-2", "Office hours are 9-5", {"source": "JIRA-55"}),
    ]
    retrieval = StaticRetrieval(documents)
    llm = scripted_llm(
        json.dumps(["vpn hostname"]),
        '{"isSufficient": true, "reasoning": "covered"}',
        json.dumps({"thought": "doc-1 has it", "finalAnswer": "Connect to vpn.example.org [doc-1]."}),
        '{"confidenceScore": 90, "justification": "directly stated"}',
    )
    chain = build_rag_chain(llm, retrieval, reranker=ReversingReranker())

    answer = asyncio.run(chain.run(FlowContext("What is the VPN address?")))

    assert answer.answer == "Connect to vpn.example.org [doc-1]."
    assert [c.chunk_id for c in answer.source_citations] == ["doc-1"]
    assert answer.trust_score_report.confidence_score == 90
    assert answer.validation_report is None
    assert retrieval.calls == 1
    # Reranked order is what the generation prompt sees.
    generation_prompt = llm.prompts[2]
    assert generation_prompt.index('id="doc-2"') < generation_prompt.index('id="doc-1"')


def test_full_chain_without_documents_returns_fallback(scripted_llm) -> None:
    llm = scripted_llm("[]")
    chain = build_rag_chain(llm, StaticRetrieval([]))

    answer = asyncio.run(chain.run(FlowContext("Where is the handbook?")))

    assert answer.answer == NO_CONTEXT_ANSWER
    assert answer.source_citations == []
    assert answer.trust_score_report.final_score == 0
    assert len(llm.calls) == 1


def _child(doc_id: str, parent: str | None = None, **metadata) -> Document:
    if parent is not None:
        metadata.update(parentChunkId=parent, parentChunkText=f"full text of {parent}")
    return Document(doc_id, f"chunk {doc_id}", {"source": "Confluence/IT", **metadata})


def test_context_expansion_swaps_children_for_first_seen_parents() -> None:
    reranked = (
        _child("c1", "p1", rerankedSimilarity=0.9),
        _child("loose"),
        _child("c2", "p2"),
        _child("c3", "p1", rerankedSimilarity=0.5),
    )
    context = FlowContext("q", retrieved_documents=(_child("r"),)).with_reranked_documents(reranked)

    result = asyncio.run(ContextExpansionStep().process(context))

    expanded = result.context_documents
    assert [d.id for d in expanded] == ["p1", "loose", "p2"]
    assert expanded[0].text == "full text of p1"
    assert expanded[0].chunk_id == "p1"
    assert expanded[0].metadata == {
        "source": "Confluence/IT",
        "rerankedSimilarity": 0.9,
        "chunkId": "p1",
    }
    assert expanded[1] is reranked[1]
    assert [d.id for d in result.retrieved_documents] == ["r"]


def test_context_expansion_passes_through_without_parent_metadata() -> None:
    only_text = Document("half", "text", {"parentChunkId": "p"})
    context = FlowContext("q", retrieved_documents=(_child("a"), only_text))

    assert asyncio.run(ContextExpansionStep().process(context)) is context
    empty = FlowContext("q")
    assert asyncio.run(ContextExpansionStep().process(empty)) is empty
