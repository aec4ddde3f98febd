"""CLI entrypoint for the orchestrator.

Exit codes: 0 success, 1 unexpected error, 2 configuration error,
3 security rejection, 4 task failure.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from rag_agent_orchestrator import __version__
from rag_agent_orchestrator.core.config import OrchestratorConfig
from rag_agent_orchestrator.core.errors import (
    ConfigurationError,
    PipelineExecutionError,
    SecurityRejection,
    TaskFailure,
    WorkflowExecutionError,
)
from rag_agent_orchestrator.core.orchestrator import Orchestrator
from rag_agent_orchestrator.engine.workflow import parse_workflow_plan, validate_workflow

logger = logging.getLogger(__name__)


def _load_json_arg(value: str | None) -> Any:
    """Decode a JSON argument; ``@path`` reads the JSON from a file."""
    if value is None:
        return None
    try:
        if value.startswith("@"):
            return json.loads(Path(value[1:]).read_text(encoding="utf-8"))
        return json.loads(value)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Invalid JSON argument {value!r}: {e}") from e


def _load_context(value: str | None) -> dict[str, Any]:
    payload = _load_json_arg(value)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigurationError("--context must be a JSON object")
    return payload


def _dump(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rag-orchestrator",
        description="Run staged pipelines and planned workflows of LLM-backed tasks",
    )
    parser.add_argument(
        "--version", action="version", version=f"rag-agent-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_catalog(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--catalog",
            required=True,
            help="Path to the JSON task catalog",
        )

    def add_context(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--context",
            default=None,
            help="Initial context as a JSON object, or @file.json",
        )

    tasks = subparsers.add_parser("tasks", help="List the tasks and pipelines of a catalog")
    add_catalog(tasks)

    validate_plan = subparsers.add_parser(
        "validate-plan",
        help="Validate a workflow plan against a catalog without running it",
    )
    add_catalog(validate_plan)
    validate_plan.add_argument("--plan", required=True, help="Workflow plan JSON, or @file.json")

    plan = subparsers.add_parser("plan", help="Ask the LLM planner for a workflow plan")
    add_catalog(plan)
    plan.add_argument("--goal", required=True, help="What the workflow should achieve")
    add_context(plan)
    plan.add_argument(
        "--run",
        action="store_true",
        help="Execute the plan after printing it",
    )

    run_workflow = subparsers.add_parser("run-workflow", help="Execute a workflow plan")
    add_catalog(run_workflow)
    run_workflow.add_argument("--plan", required=True, help="Workflow plan JSON, or @file.json")
    add_context(run_workflow)

    run_pipeline = subparsers.add_parser("run-pipeline", help="Execute a declared pipeline")
    add_catalog(run_pipeline)
    run_pipeline.add_argument("--pipeline", required=True, help="Pipeline name")
    add_context(run_pipeline)

    return parser


async def _run(args: argparse.Namespace, config: OrchestratorConfig) -> int:
    # One event loop per invocation; the LLM client is bound to it.
    orchestrator = Orchestrator.from_catalog_file(args.catalog, config)

    if args.command == "tasks":
        _dump(
            {
                "tasks": orchestrator.registry.describe(),
                "pipelines": [
                    {
                        "name": name,
                        "approvalRequired": orchestrator.pipelines.get(name).approval_required(),
                    }
                    for name in orchestrator.pipelines.available_pipelines()
                ],
            }
        )
        return 0

    if args.command == "validate-plan":
        nodes = parse_workflow_plan(_load_json_arg(args.plan))
        order = validate_workflow(nodes, orchestrator.registry)
        _dump({"valid": True, "order": order})
        return 0

    if args.command == "plan":
        context = _load_context(args.context)
        nodes = await orchestrator.planner.create_workflow(args.goal, context)
        _dump([node.to_json() for node in nodes])
        if args.run:
            results = await orchestrator.run_workflow(nodes, context)
            _dump({node_id: result.to_json() for node_id, result in results.items()})
        return 0

    if args.command == "run-workflow":
        nodes = parse_workflow_plan(_load_json_arg(args.plan))
        results = await orchestrator.run_workflow(nodes, _load_context(args.context))
        _dump({node_id: result.to_json() for node_id, result in results.items()})
        return 0

    if args.command == "run-pipeline":
        results = await orchestrator.run_pipeline(args.pipeline, _load_context(args.context))
        _dump([result.to_json() for result in results])
        return 0

    logger.error("Unknown command", extra={"command": args.command})
    return 2


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = OrchestratorConfig()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    config.setup_logging()

    try:
        return asyncio.run(_run(args, config))

    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    except SecurityRejection as e:
        print(f"Rejected: {e}", file=sys.stderr)
        return 3

    except PipelineExecutionError as e:
        print(f"Pipeline failed at task {e.task_name!r}: {e.message}", file=sys.stderr)
        _dump([result.to_json() for result in e.completed])
        return 4

    except WorkflowExecutionError as e:
        print(
            f"Workflow failed at node {e.task_name!r}: {e.message} (failed: {sorted(e.failed)})",
            file=sys.stderr,
        )
        _dump({node_id: result.to_json() for node_id, result in e.results.items()})
        return 4

    except TaskFailure as e:
        print(f"Task failed: {e}", file=sys.stderr)
        return 4

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
