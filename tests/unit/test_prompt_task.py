from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from rag_agent_orchestrator.core.errors import ConfigurationError, TaskNotFoundError
from rag_agent_orchestrator.engine.context import ExecutionContext
from rag_agent_orchestrator.engine.task import TaskStatus
from rag_agent_orchestrator.llm.provider import ModelCapability
from rag_agent_orchestrator.tasks.prompt_task import (
    PromptTask,
    PromptTaskDefinition,
    load_task_catalog,
    parse_task_catalog,
)

CATALOG = {
    "tasks": [
        {
            "name": "summarize",
            "description": "Summarize a text",
            "template": "Summarize: {text}",
            "requires": ["text"],
            "outputKey": "summary",
            "capability": "fast_reliable",
        },
        {
            "name": "classify",
            "template": "Classify: {text}",
            "outputKey": "labels",
            "jsonOutput": True,
        },
        {
            "name": "publish",
            "template": "Publish {summary}",
            "requiresApproval": True,
        },
    ],
    "pipelines": [{"name": "review", "stages": [["summarize", "classify"], ["publish"]]}],
}


def test_catalog_builds_registry_and_pipelines(scripted_llm) -> None:
    catalog = parse_task_catalog(CATALOG, scripted_llm())

    assert catalog.registry.names() == ["classify", "publish", "summarize"]
    review = catalog.pipelines[0]
    assert review.name == "review"
    assert [[task.name for task in stage] for stage in review.stages()] == [
        ["summarize", "classify"],
        ["publish"],
    ]
    assert review.approval_required() == ["publish"]


def test_bare_list_is_read_as_tasks(scripted_llm) -> None:
    catalog = parse_task_catalog(CATALOG["tasks"], scripted_llm())

    assert len(catalog.registry) == 3
    assert catalog.pipelines == []


def test_pipeline_with_unknown_task_is_rejected(scripted_llm) -> None:
    raw = {"tasks": CATALOG["tasks"], "pipelines": [{"name": "p", "stages": [["deploy"]]}]}

    with pytest.raises(TaskNotFoundError):
        parse_task_catalog(raw, scripted_llm())


@pytest.mark.parametrize(
    "raw",
    [
        {"tasks": [{"name": "x"}]},
        {"tasks": [{"name": "x", "template": "t", "unexpected": 1}]},
        {"tasks": [{"name": "x", "template": "t"}, {"name": "x", "template": "u"}]},
        "not a catalog",
    ],
)
def test_invalid_catalogs_are_configuration_errors(scripted_llm, raw) -> None:
    with pytest.raises(ConfigurationError):
        parse_task_catalog(raw, scripted_llm())


def test_load_catalog_from_file(tmp_path: Path, scripted_llm) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(CATALOG), encoding="utf-8")

    assert "summarize" in load_task_catalog(path, scripted_llm()).registry

    with pytest.raises(ConfigurationError, match="not found"):
        load_task_catalog(tmp_path / "missing.json", scripted_llm())

    path.write_text("{oops", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_task_catalog(path, scripted_llm())


def test_prompt_task_renders_context_and_stores_reply(scripted_llm) -> None:
    llm = scripted_llm("  A short summary.  ")
    task = PromptTask(PromptTaskDefinition.model_validate(CATALOG["tasks"][0]), llm)
    context = ExecutionContext({"text": "Long text"})

    result = asyncio.run(task.execute(context))

    assert task.can_handle(context)
    assert not task.can_handle(ExecutionContext())
    assert result.status is TaskStatus.SUCCESS
    assert result.details == {"summary": "A short summary."}
    assert llm.prompts == ["Summarize: Long text"]
    assert llm.calls[0]["capability"] is ModelCapability.FAST_RELIABLE


def test_json_output_is_decoded(scripted_llm) -> None:
    llm = scripted_llm('```json\n["billing", "urgent"]\n```', "no json at all")
    task = PromptTask(PromptTaskDefinition.model_validate(CATALOG["tasks"][1]), llm)
    context = ExecutionContext({"text": "Invoice overdue"})

    first = asyncio.run(task.execute(context))
    second = asyncio.run(task.execute(context))

    assert first.details == {"labels": ["billing", "urgent"]}
    assert llm.calls[0]["json_mode"] is True
    assert second.status is TaskStatus.FAILURE
    assert "no JSON" in second.summary


def test_missing_template_key_is_a_failure_result(scripted_llm) -> None:
    llm = scripted_llm()
    task = PromptTask(PromptTaskDefinition.model_validate(CATALOG["tasks"][2]), llm)

    result = asyncio.run(task.execute(ExecutionContext()))

    assert result.status is TaskStatus.FAILURE
    assert "summary" in result.summary
    assert llm.calls == []


@pytest.mark.parametrize("output_key", ["summary", "task_name", "details"])
def test_output_key_may_shadow_result_field_names(scripted_llm, output_key) -> None:
    definition = PromptTaskDefinition(name="t", template="Say {x}", outputKey=output_key)
    task = PromptTask(definition, scripted_llm("hello"))

    result = asyncio.run(task.execute(ExecutionContext({"x": "hi"})))

    assert result.status is TaskStatus.SUCCESS
    assert result.details == {output_key: "hello"}
    assert result.task_name == "t"
