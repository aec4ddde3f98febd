#!/usr/bin/env python3
"""Programmatic usage example.

This demonstrates using the orchestrator components directly:

* load settings from `.env`
* run a declared two-stage pipeline from a task catalog
* answer a question with the retrieval-augmented chain over an in-memory corpus

Requires ORCHESTRATOR_LLM_OPENAI_API_KEY (or a local LLaMA model) to be configured.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Sequence

from rag_agent_orchestrator.core.config import OrchestratorConfig
from rag_agent_orchestrator.core.errors import PipelineExecutionError, SecurityRejection
from rag_agent_orchestrator.core.logging import configure_logging
from rag_agent_orchestrator.core.orchestrator import Orchestrator
from rag_agent_orchestrator.llm.factory import LazyLLMProvider
from rag_agent_orchestrator.rag import Document, ProcessedQueries, build_rag_chain
from rag_agent_orchestrator.tasks.prompt_task import parse_task_catalog

CATALOG = {
    "tasks": [
        {
            "name": "summarize",
            "template": "Summarize in one sentence:\n{text}",
            "requires": ["text"],
            "outputKey": "summary",
        },
        {
            "name": "keywords",
            "template": "Return a JSON array of up to five keywords for:\n{text}",
            "requires": ["text"],
            "outputKey": "keywords",
            "jsonOutput": True,
        },
        {
            "name": "headline",
            "template": "Write a headline for this summary: {summary}",
            "requires": ["summary"],
            "outputKey": "headline",
        },
    ],
    "pipelines": [{"name": "digest", "stages": [["summarize", "keywords"], ["headline"]]}],
}

CORPUS = [
    Document(
        "vpn-1",
        "The corporate VPN endpoint is vpn.example.org. Use the SSO login.",
        {"source": "Confluence/IT", "last_modified": "2026-01-10T09:00:00Z"},
    ),
    Document(
        "vpn-2",
        "VPN access requires an approved hardware token since 2025.",
        {"source": "Confluence-Policy/Security", "last_modified": "2025-11-02T12:00:00Z"},
    ),
    Document("office-1", "The office opens at 9 am.", {"source": "JIRA-311"}),
]


class KeywordRetrieval:
    """Toy retrieval strategy: rank documents by shared words."""

    def __init__(self, documents: Sequence[Document]) -> None:
        self.documents = list(documents)

    async def retrieve(
        self,
        queries: ProcessedQueries | None,
        original_query: str,
        top_k: int,
        threshold: float,
    ) -> list[Document]:
        terms = {
            word.strip("?.,!").lower()
            for query in (queries.all() if queries else [original_query])
            for word in query.split()
        }
        scored = []
        for doc in self.documents:
            words = {word.strip("?.,!").lower() for word in doc.text.split()}
            score = len(terms & words) / max(len(terms), 1)
            if score >= threshold:
                scored.append((score, doc))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [doc for _, doc in scored[:top_k]]


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a pipeline and ask a question (example).")
    parser.add_argument(
        "--text",
        default="Retrieval-augmented generation grounds LLM answers in retrieved documents.",
        help="Input text for the digest pipeline",
    )
    parser.add_argument("--question", default="What is the VPN address?", help="Question to answer")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace, config: OrchestratorConfig) -> None:
    llm = LazyLLMProvider(config.llm)
    orchestrator = Orchestrator(
        config,
        llm=llm,
        catalog=parse_task_catalog(CATALOG, llm),
        rag_chain=build_rag_chain(llm, KeywordRetrieval(CORPUS), config.rag),
    )

    results = await orchestrator.run_pipeline("digest", {"text": args.text})
    print(json.dumps([result.to_json() for result in results], indent=2, ensure_ascii=False))

    answer = await orchestrator.answer(args.question, similarity_threshold=0.1)
    print(json.dumps(answer.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    config = OrchestratorConfig()
    configure_logging(config.log_level)

    try:
        asyncio.run(_run(args, config))
    except PipelineExecutionError as exc:
        print(f"Pipeline failed at {exc.task_name}: {exc.message}")
        return 1
    except SecurityRejection as exc:
        print(f"Question rejected: {exc}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
