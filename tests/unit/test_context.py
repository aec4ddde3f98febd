from __future__ import annotations

import pytest

from rag_agent_orchestrator.engine.context import ExecutionContext


def test_merged_returns_new_context_and_leaves_original_untouched() -> None:
    base = ExecutionContext({"a": 1})

    merged = base.merged({"b": 2})

    assert dict(base) == {"a": 1}
    assert dict(merged) == {"a": 1, "b": 2}
    assert merged is not base


def test_merged_applies_deltas_in_order_last_write_wins() -> None:
    context = ExecutionContext({"x": "initial"}).merged({"x": "first"}, {"x": "second", "y": 1})

    assert context["x"] == "second"
    assert context["y"] == 1


def test_context_cannot_be_mutated() -> None:
    context = ExecutionContext({"a": 1})

    with pytest.raises(TypeError):
        context["a"] = 2  # type: ignore[index]

    payload = context.payload
    payload["a"] = 99
    assert context["a"] == 1


def test_source_mapping_changes_do_not_leak_into_context() -> None:
    source = {"a": 1}
    context = ExecutionContext(source)

    source["a"] = 2

    assert context["a"] == 1
    assert ExecutionContext().get("missing", "default") == "default"
