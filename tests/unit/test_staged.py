from __future__ import annotations

import asyncio

import pytest

from rag_agent_orchestrator.core.errors import ConfigurationError, PipelineExecutionError
from rag_agent_orchestrator.engine.context import ExecutionContext
from rag_agent_orchestrator.engine.staged import (
    PipelineOrchestrator,
    SequentialPipeline,
    StagedPipeline,
    StagedPipelineExecutor,
)
from rag_agent_orchestrator.engine.task import TaskStatus


def test_stage_is_a_barrier(make_task, events) -> None:
    slow = make_task("slow", delay=0.05)
    fast = make_task("fast", delay=0.0)
    after = make_task("after")

    asyncio.run(StagedPipelineExecutor().run([[slow, fast], [after]], ExecutionContext()))

    start_after = events.index(("start", "after"))
    assert events.index(("end", "slow")) < start_after
    assert events.index(("end", "fast")) < start_after


def test_tasks_within_a_stage_run_concurrently(make_task, events) -> None:
    first = make_task("first", delay=0.05)
    second = make_task("second", delay=0.05)

    asyncio.run(StagedPipelineExecutor().run([[first, second]], ExecutionContext()))

    # Both start before either ends.
    assert events[:2] == [("start", "first"), ("start", "second")]


def test_stage_details_are_visible_to_every_task_of_the_next_stage(make_task) -> None:
    writer = make_task("writer", details={"x": 42})
    readers = [make_task("reader-a"), make_task("reader-b")]

    results = asyncio.run(
        StagedPipelineExecutor().run([[writer], readers], ExecutionContext({"seed": 1}))
    )

    for reader in readers:
        assert reader.seen[0]["x"] == 42
        assert reader.seen[0]["seed"] == 1
    assert [r.task_name for r in results] == ["writer", "reader-a", "reader-b"]
    assert all(r.status is TaskStatus.SUCCESS for r in results)


def test_siblings_observe_identical_snapshot(make_task) -> None:
    a = make_task("a", details={"k": "from-a"})
    b = make_task("b", details={"k": "from-b"})

    asyncio.run(StagedPipelineExecutor().run([[a, b]], ExecutionContext({"k": "initial"})))

    assert a.seen[0]["k"] == "initial"
    assert b.seen[0]["k"] == "initial"


def test_failure_in_stage_one_prevents_stage_two(make_task) -> None:
    ok = make_task("ok", details={"y": 1})
    broken = make_task("broken", fail=True)
    never = make_task("never")
    earlier = make_task("earlier")

    with pytest.raises(PipelineExecutionError) as exc_info:
        asyncio.run(
            StagedPipelineExecutor().run(
                [[earlier], [ok, broken], [never]],
                ExecutionContext(),
                pipeline_name="demo",
            )
        )

    error = exc_info.value
    assert never.calls == 0
    assert error.task_name == "broken"
    assert error.pipeline_name == "demo"
    assert error.stage_index == 1
    assert [r.task_name for r in error.completed] == ["earlier", "ok"]


def test_raised_exception_is_the_cause(make_task) -> None:
    boom = make_task("boom", raises=RuntimeError("kaput"))

    with pytest.raises(PipelineExecutionError) as exc_info:
        asyncio.run(StagedPipelineExecutor().run([[boom]], ExecutionContext()))

    assert exc_info.value.message == "kaput"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_first_failure_is_reported_in_stage_order(make_task) -> None:
    first = make_task("first", fail=True, delay=0.05)
    second = make_task("second", raises=ValueError("second"))

    with pytest.raises(PipelineExecutionError) as exc_info:
        asyncio.run(StagedPipelineExecutor().run([[first, second]], ExecutionContext()))

    assert exc_info.value.task_name == "first"


def test_inapplicable_tasks_are_skipped_not_failed(make_task) -> None:
    skipped = make_task("skipped", applicable=False)
    runs = make_task("runs")

    results = asyncio.run(StagedPipelineExecutor().run([[skipped, runs]], ExecutionContext()))

    assert skipped.calls == 0
    assert [r.task_name for r in results] == ["runs"]


def test_task_timeout_fails_the_stage(make_task) -> None:
    sleepy = make_task("sleepy", delay=1.0)

    with pytest.raises(PipelineExecutionError) as exc_info:
        asyncio.run(
            StagedPipelineExecutor(task_timeout=0.01).run([[sleepy]], ExecutionContext())
        )

    assert exc_info.value.task_name == "sleepy"


def test_sequential_pipeline_is_one_task_per_stage(make_task, events) -> None:
    pipeline = SequentialPipeline.of("seq", [make_task("a", delay=0.01), make_task("b")])

    asyncio.run(StagedPipelineExecutor().run(pipeline.stages(), ExecutionContext()))

    assert events == [("start", "a"), ("end", "a"), ("start", "b"), ("end", "b")]
    assert [t.name for t in pipeline.agents()] == ["a", "b"]


def test_orchestrator_invokes_pipeline_by_name(make_task) -> None:
    pipeline = StagedPipeline.of(
        "review",
        [[make_task("scan", details={"findings": 2})], [make_task("deploy", requires_approval=True)]],
    )
    orchestrator = PipelineOrchestrator([pipeline])

    results = asyncio.run(orchestrator.invoke("review", ExecutionContext()))

    assert orchestrator.available_pipelines() == ["review"]
    assert pipeline.approval_required() == ["deploy"]
    assert [r.task_name for r in results] == ["scan", "deploy"]


def test_orchestrator_rejects_unknown_and_duplicate_pipelines(make_task) -> None:
    pipeline = SequentialPipeline.of("p", [make_task("a")])

    with pytest.raises(ConfigurationError, match="Duplicate"):
        PipelineOrchestrator([pipeline, pipeline])

    with pytest.raises(ConfigurationError, match="not found"):
        PipelineOrchestrator([pipeline]).get("missing")
