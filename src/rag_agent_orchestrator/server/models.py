"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from rag_agent_orchestrator.engine.workflow import WorkflowNode


class ApiTask(BaseModel):
    name: str
    description: str
    requires_approval: bool = Field(alias="requiresApproval")

    model_config = ConfigDict(populate_by_name=True)


class ApiPipeline(BaseModel):
    name: str
    stages: list[list[str]]
    approval_required: list[str] = Field(default_factory=list)


class RunRequest(BaseModel):
    context: dict[str, Any] = Field(default_factory=dict)


class PipelineRunResponse(BaseModel):
    pipeline: str
    results: list[dict[str, Any]]


class WorkflowPlanRequest(BaseModel):
    goal: str = Field(min_length=1)
    context: dict[str, Any] = Field(default_factory=dict)


class WorkflowRunRequest(BaseModel):
    plan: list[WorkflowNode]
    context: dict[str, Any] = Field(default_factory=dict)


class WorkflowRunResponse(BaseModel):
    plan: list[dict[str, Any]]
    results: dict[str, dict[str, Any]]


class ApiChatMessage(BaseModel):
    role: str
    content: str


class RagQueryRequest(BaseModel):
    query: str
    history: list[ApiChatMessage] = Field(default_factory=list)
    top_k: int | None = Field(default=None, gt=0)
    similarity_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    session_id: str | None = None


JobStatus = Literal["queued", "running", "succeeded", "failed"]


class PipelineJob(BaseModel):
    job_id: str
    pipeline: str
    status: JobStatus

    created_at: datetime
    updated_at: datetime

    results: list[dict[str, Any]] = Field(default_factory=list)
    failed_task: str | None = None
    error: str | None = None
