"""Staged execution: stages run in order, tasks inside a stage run concurrently.

A stage is a barrier. No task of stage N+1 starts before every task of
stage N has completed, and the details of all stage N results are merged
into the context that stage N+1 observes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from rag_agent_orchestrator.core.errors import ConfigurationError, PipelineExecutionError

from .context import ExecutionContext
from .task import Task, TaskResult, execute_task

logger = logging.getLogger(__name__)


class Pipeline(Protocol):
    """A named, statically declared list of stages."""

    name: str

    def stages(self) -> Sequence[Sequence[Task]]: ...

    def approval_required(self) -> list[str]: ...


@dataclass(frozen=True, slots=True)
class StagedPipeline:
    name: str
    groups: tuple[tuple[Task, ...], ...]

    @classmethod
    def of(cls, name: str, stages: Iterable[Iterable[Task]]) -> StagedPipeline:
        return cls(name=name, groups=tuple(tuple(stage) for stage in stages))

    def stages(self) -> Sequence[Sequence[Task]]:
        return self.groups

    def approval_required(self) -> list[str]:
        return _approval_required(self.stages())


@dataclass(frozen=True, slots=True)
class SequentialPipeline:
    """Degenerate pipeline with exactly one task per stage."""

    name: str
    tasks: tuple[Task, ...]

    @classmethod
    def of(cls, name: str, agents: Iterable[Task]) -> SequentialPipeline:
        return cls(name=name, tasks=tuple(agents))

    def agents(self) -> Sequence[Task]:
        return self.tasks

    def stages(self) -> Sequence[Sequence[Task]]:
        return [(task,) for task in self.tasks]

    def approval_required(self) -> list[str]:
        return _approval_required(self.stages())


def _approval_required(stages: Sequence[Sequence[Task]]) -> list[str]:
    return [task.name for stage in stages for task in stage if task.requires_approval]


class StagedPipelineExecutor:
    """Execute an ordered list of stages with fail-fast semantics."""

    def __init__(self, *, task_timeout: float | None = None) -> None:
        self.task_timeout = task_timeout

    async def run(
        self,
        stages: Sequence[Sequence[Task]],
        initial_context: ExecutionContext,
        *,
        pipeline_name: str = "",
    ) -> list[TaskResult]:
        """Run every stage and return all results in completion order of stages.

        Raises:
            PipelineExecutionError: If any task of a stage returns FAILURE or
                raises. Later stages are not started; ``completed`` holds the
                successful results gathered so far.
        """
        context = initial_context
        results: list[TaskResult] = []

        for index, stage in enumerate(stages):
            runnable: list[Task] = []
            skipped: list[str] = []
            for task in stage:
                if task.can_handle(context):
                    runnable.append(task)
                else:
                    skipped.append(task.name)
            if skipped:
                logger.debug(
                    "Skipping tasks whose preconditions are not met",
                    extra={"pipeline": pipeline_name, "stage": index, "tasks": skipped},
                )
            if not runnable:
                continue

            logger.info(
                "Running stage",
                extra={
                    "pipeline": pipeline_name,
                    "stage": index,
                    "tasks": [task.name for task in runnable],
                },
            )
            outcomes = await asyncio.gather(
                *(execute_task(task, context, self.task_timeout) for task in runnable),
                return_exceptions=True,
            )

            stage_results: list[TaskResult] = []
            failed_task: str | None = None
            failure_message = ""
            cause: BaseException | None = None
            for task, outcome in zip(runnable, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    if failed_task is None:
                        failed_task = task.name
                        failure_message = str(outcome) or type(outcome).__name__
                        cause = outcome
                elif not outcome.ok:
                    if failed_task is None:
                        failed_task = task.name
                        failure_message = outcome.summary or "task reported failure"
                else:
                    stage_results.append(outcome)

            if failed_task is not None:
                logger.error(
                    "Stage failed; aborting remaining stages",
                    extra={"pipeline": pipeline_name, "stage": index, "task_name": failed_task},
                )
                raise PipelineExecutionError(
                    failed_task,
                    failure_message,
                    pipeline_name=pipeline_name,
                    stage_index=index,
                    completed=results + stage_results,
                ) from cause

            results.extend(stage_results)
            context = context.merged(*(result.details for result in stage_results))

        return results


class PipelineOrchestrator:
    """Registry of named pipelines executed with a shared staged executor."""

    def __init__(
        self,
        pipelines: Iterable[Pipeline],
        executor: StagedPipelineExecutor | None = None,
    ) -> None:
        self.executor = executor or StagedPipelineExecutor()
        self._pipelines: dict[str, Pipeline] = {}
        for pipeline in pipelines:
            if pipeline.name in self._pipelines:
                raise ConfigurationError(f"Duplicate pipeline name: {pipeline.name!r}")
            self._pipelines[pipeline.name] = pipeline
        logger.info(
            "Pipeline orchestrator initialized",
            extra={"pipelines": sorted(self._pipelines)},
        )

    def available_pipelines(self) -> list[str]:
        return sorted(self._pipelines)

    def get(self, name: str) -> Pipeline:
        try:
            return self._pipelines[name]
        except KeyError:
            raise ConfigurationError(
                f"Pipeline not found: {name!r} (available: {self.available_pipelines()})"
            ) from None

    async def invoke(self, name: str, initial_context: ExecutionContext) -> list[TaskResult]:
        pipeline = self.get(name)
        stages = pipeline.stages()
        logger.info("Starting pipeline", extra={"pipeline": name, "stages": len(stages)})
        return await self.executor.run(stages, initial_context, pipeline_name=name)
