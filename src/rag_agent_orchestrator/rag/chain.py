"""Linear, priority-ordered answer chain.

Steps run strictly one after another as a left fold over ``FlowContext``.
Exactly one step produces the answer. Steps before it (and the producer
itself) are fatal on failure; steps after it only enrich the answer with
metadata and never change its text.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable

from rag_agent_orchestrator.core.errors import (
    ConfigurationError,
    SecurityRejection,
    StepFailure,
)

from .models import FlowContext, RagAnswer

logger = logging.getLogger(__name__)


@runtime_checkable
class PipelineStep(Protocol):
    name: str
    priority: int
    terminal_on_failure: bool
    produces_answer: bool

    async def process(self, context: FlowContext) -> FlowContext: ...


class BaseStep:
    """Defaults for chain steps."""

    name: str = ""
    priority: int = 0
    terminal_on_failure: bool = False
    produces_answer: bool = False

    async def process(self, context: FlowContext) -> FlowContext:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"


class OrderedStepChain:
    """Run steps in ascending priority order.

    Raises at assembly:
        ConfigurationError: On duplicate priorities or unless exactly one
            step produces the answer.
    """

    def __init__(self, steps: Iterable[PipelineStep]) -> None:
        ordered = sorted(steps, key=lambda step: step.priority)

        seen: dict[int, str] = {}
        for step in ordered:
            if step.priority in seen:
                raise ConfigurationError(
                    f"Steps {seen[step.priority]!r} and {step.name!r} share priority {step.priority}"
                )
            seen[step.priority] = step.name

        producers = [step.name for step in ordered if step.produces_answer]
        if len(producers) != 1:
            raise ConfigurationError(
                f"Exactly one answer-producing step is required, found {producers}"
            )

        self._steps: tuple[PipelineStep, ...] = tuple(ordered)
        logger.info(
            "Answer chain assembled",
            extra={"steps": [f"{step.priority}:{step.name}" for step in self._steps]},
        )

    @property
    def steps(self) -> Sequence[PipelineStep]:
        return self._steps

    async def run(self, context: FlowContext) -> RagAnswer:
        """Run every step and return the final answer.

        Raises:
            SecurityRejection: If a step rejects the query. No later step runs.
            StepFailure: If a pre-answer step, the answer step, or a terminal
                enrichment step fails, or an enrichment step changes the
                answer text.
        """
        answer_text: str | None = None

        for step in self._steps:
            enriching = answer_text is not None
            logger.debug(
                "Running step",
                extra={"step": step.name, "priority": step.priority, "session_id": context.session_id},
            )
            try:
                updated = await step.process(context)
            except SecurityRejection:
                logger.warning(
                    "Query rejected; aborting chain",
                    extra={"step": step.name, "session_id": context.session_id},
                )
                raise
            except Exception as e:
                if enriching and not step.terminal_on_failure:
                    logger.warning(
                        "Enrichment step failed; continuing without it",
                        extra={"step": step.name, "error": str(e)},
                        exc_info=True,
                    )
                    continue
                logger.error("Step failed; aborting chain", extra={"step": step.name})
                raise StepFailure(step.name, str(e) or type(e).__name__) from e

            if step.produces_answer:
                if updated.final_answer is None:
                    raise StepFailure(step.name, "answer step produced no answer")
                answer_text = updated.final_answer.answer
            elif enriching:
                if updated.final_answer is None or updated.final_answer.answer != answer_text:
                    raise StepFailure(step.name, "enrichment step changed the answer text")

            context = updated

        if context.final_answer is None:
            raise StepFailure(self._steps[-1].name, "chain finished without an answer")
        return context.final_answer
