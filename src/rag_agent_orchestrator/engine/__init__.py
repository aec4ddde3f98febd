"""Task execution engine: staged pipelines and DAG workflows."""

from rag_agent_orchestrator.engine.context import ExecutionContext
from rag_agent_orchestrator.engine.planner import WorkflowPlanner
from rag_agent_orchestrator.engine.registry import TaskRegistry
from rag_agent_orchestrator.engine.single_flight import AlreadyRunning, SingleFlightGuard
from rag_agent_orchestrator.engine.staged import (
    PipelineOrchestrator,
    SequentialPipeline,
    StagedPipeline,
    StagedPipelineExecutor,
)
from rag_agent_orchestrator.engine.task import BaseTask, Task, TaskResult, TaskStatus
from rag_agent_orchestrator.engine.workflow import (
    DagWorkflowExecutor,
    WorkflowNode,
    parse_workflow_plan,
    validate_workflow,
)

__all__ = [
    "AlreadyRunning",
    "BaseTask",
    "DagWorkflowExecutor",
    "ExecutionContext",
    "PipelineOrchestrator",
    "SequentialPipeline",
    "SingleFlightGuard",
    "StagedPipeline",
    "StagedPipelineExecutor",
    "Task",
    "TaskRegistry",
    "TaskResult",
    "TaskStatus",
    "WorkflowNode",
    "WorkflowPlanner",
    "parse_workflow_plan",
    "validate_workflow",
]
