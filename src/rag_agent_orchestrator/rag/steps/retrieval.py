"""Pre-answer steps that find the documents the answer is grounded on."""

from __future__ import annotations

import logging

from ..chain import BaseStep
from ..collaborators import QueryProcessor, Reranker
from ..models import Document, FlowContext
from ..reflective import ReflectiveRetryLoop

logger = logging.getLogger(__name__)


class QueryProcessingStep(BaseStep):
    name = "query_processing"
    priority = 10

    def __init__(self, processor: QueryProcessor) -> None:
        self.processor = processor

    async def process(self, context: FlowContext) -> FlowContext:
        queries = await self.processor.process(context.original_query, context.history)
        return context.with_processed_queries(queries)


class RetrievalStep(BaseStep):
    """Hybrid retrieval wrapped in the reflective retry loop."""

    name = "retrieval"
    priority = 20

    def __init__(self, loop: ReflectiveRetryLoop) -> None:
        self.loop = loop

    async def process(self, context: FlowContext) -> FlowContext:
        documents = await self.loop.retrieve(
            context.processed_queries,
            context.original_query,
            context.top_k,
            context.similarity_threshold,
        )
        logger.info(
            "Documents retrieved",
            extra={"session_id": context.session_id, "documents": len(documents)},
        )
        return context.with_retrieved_documents(documents)


class RerankingStep(BaseStep):
    name = "reranking"
    priority = 25

    def __init__(self, reranker: Reranker) -> None:
        self.reranker = reranker

    async def process(self, context: FlowContext) -> FlowContext:
        if not context.retrieved_documents:
            return context.with_reranked_documents(())
        reranked = await self.reranker.rerank(context.retrieved_documents, context.original_query)
        return context.with_reranked_documents(reranked)


PARENT_ID_KEY = "parentChunkId"
PARENT_TEXT_KEY = "parentChunkText"


class ContextExpansionStep(BaseStep):
    """Replace child chunks with the parent documents they were cut from.

    A chunk carrying both ``parentChunkId`` and ``parentChunkText`` is swapped
    for its parent at the position of the first child of that parent; later
    siblings are dropped. Chunks without parent metadata stay as they are.
    """

    name = "context_expansion"
    priority = 28

    async def process(self, context: FlowContext) -> FlowContext:
        documents = context.context_documents
        if not any(_has_parent(doc) for doc in documents):
            return context

        expanded: list[Document] = []
        seen_parents: set[str] = set()
        for doc in documents:
            if not _has_parent(doc):
                expanded.append(doc)
                continue
            parent_id = str(doc.metadata[PARENT_ID_KEY])
            if parent_id in seen_parents:
                continue
            seen_parents.add(parent_id)
            expanded.append(_parent_of(doc, parent_id))

        logger.info(
            "Context expanded to parent documents",
            extra={
                "session_id": context.session_id,
                "documents": len(documents),
                "parents": len(seen_parents),
            },
        )
        return context.with_reranked_documents(expanded)


def _has_parent(doc: Document) -> bool:
    return PARENT_ID_KEY in doc.metadata and PARENT_TEXT_KEY in doc.metadata


def _parent_of(child: Document, parent_id: str) -> Document:
    metadata = {
        key: value
        for key, value in child.metadata.items()
        if key not in (PARENT_ID_KEY, PARENT_TEXT_KEY)
    }
    metadata["chunkId"] = parent_id
    return Document(id=parent_id, text=str(child.metadata[PARENT_TEXT_KEY]), metadata=metadata)
