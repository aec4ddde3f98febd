"""FastAPI app factory.

Endpoints are thin wrappers over :class:`Orchestrator`. Engine errors map to
HTTP statuses: configuration 400 (404 for unknown names), security
rejection 403, task failure 502, single-flight conflict 409, missing answer
chain 503.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, cast

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rag_agent_orchestrator import __version__
from rag_agent_orchestrator.core.config import OrchestratorConfig
from rag_agent_orchestrator.core.errors import (
    ConfigurationError,
    PipelineExecutionError,
    SecurityRejection,
    TaskFailure,
    TaskNotFoundError,
    WorkflowExecutionError,
)
from rag_agent_orchestrator.core.orchestrator import Orchestrator
from rag_agent_orchestrator.engine.single_flight import AlreadyRunning, SingleFlightGuard
from rag_agent_orchestrator.rag.models import ChatMessage
from rag_agent_orchestrator.server.config import ServerSettings
from rag_agent_orchestrator.server.job_store import JobRecord, JobStore
from rag_agent_orchestrator.server.models import (
    ApiPipeline,
    ApiTask,
    JobStatus,
    PipelineJob,
    PipelineRunResponse,
    RagQueryRequest,
    RunRequest,
    WorkflowPlanRequest,
    WorkflowRunRequest,
    WorkflowRunResponse,
)
from rag_agent_orchestrator.server.pipeline_runner import start_pipeline_job

logger = logging.getLogger(__name__)


def _iso_to_dt(value: str) -> datetime:
    # Best-effort parsing; the store always writes ISO format.
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(tz=UTC)


def _to_pipeline_job(record: JobRecord) -> PipelineJob:
    return PipelineJob(
        job_id=record.job_id,
        pipeline=record.pipeline,
        status=cast(JobStatus, record.status),
        created_at=_iso_to_dt(record.created_at),
        updated_at=_iso_to_dt(record.updated_at),
        results=record.results,
        failed_task=record.failed_task,
        error=record.error,
    )


def _task_failure_body(exc: TaskFailure) -> dict[str, Any]:
    body: dict[str, Any] = {"detail": str(exc), "task": exc.task_name}
    if isinstance(exc, PipelineExecutionError):
        body["completed"] = [result.to_json() for result in exc.completed]
    elif isinstance(exc, WorkflowExecutionError):
        body["failed"] = sorted(exc.failed)
        body["results"] = {node_id: result.to_json() for node_id, result in exc.results.items()}
    return body


def create_app(
    orchestrator: Orchestrator | None = None,
    settings: ServerSettings | None = None,
) -> FastAPI:
    settings = settings or ServerSettings()
    if orchestrator is None:
        config = OrchestratorConfig()
        if settings.catalog_path is not None:
            orchestrator = Orchestrator.from_catalog_file(settings.catalog_path, config)
        else:
            orchestrator = Orchestrator(config)

    app = FastAPI(
        title="RAG Agent Orchestrator",
        version=__version__,
        description="REST API over staged pipelines, planned workflows and the answer chain.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    job_store = JobStore()
    guard = SingleFlightGuard()

    @app.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        status_code = 404 if isinstance(exc, TaskNotFoundError) else 400
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.exception_handler(SecurityRejection)
    async def security_rejection(request: Request, exc: SecurityRejection) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @app.exception_handler(TaskFailure)
    async def task_failure(request: Request, exc: TaskFailure) -> JSONResponse:
        return JSONResponse(status_code=502, content=_task_failure_body(exc))

    def require_pipeline(name: str) -> None:
        if name not in orchestrator.pipelines.available_pipelines():
            raise HTTPException(status_code=404, detail=f"Pipeline not found: {name}")

    @app.get("/api/v1/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/v1/tasks", response_model=list[ApiTask])
    def list_tasks() -> list[ApiTask]:
        return [ApiTask.model_validate(item) for item in orchestrator.registry.describe()]

    @app.get("/api/v1/pipelines", response_model=list[ApiPipeline])
    def list_pipelines() -> list[ApiPipeline]:
        pipelines = []
        for name in orchestrator.pipelines.available_pipelines():
            pipeline = orchestrator.pipelines.get(name)
            pipelines.append(
                ApiPipeline(
                    name=name,
                    stages=[[task.name for task in stage] for stage in pipeline.stages()],
                    approval_required=pipeline.approval_required(),
                )
            )
        return pipelines

    @app.post("/api/v1/pipelines/{name}/run", response_model=PipelineRunResponse)
    async def run_pipeline(name: str, req: RunRequest) -> PipelineRunResponse:
        require_pipeline(name)
        if guard.is_running(name):
            raise HTTPException(status_code=409, detail=f"A job for pipeline {name!r} is running")
        results = await orchestrator.run_pipeline(name, req.context)
        return PipelineRunResponse(pipeline=name, results=[r.to_json() for r in results])

    @app.post("/api/v1/pipelines/{name}/jobs", response_model=PipelineJob, status_code=202)
    async def start_job(name: str, req: RunRequest) -> PipelineJob:
        require_pipeline(name)
        try:
            job_id = start_pipeline_job(
                pipeline=name,
                context=req.context,
                orchestrator=orchestrator,
                job_store=job_store,
                guard=guard,
            )
        except AlreadyRunning as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        record = job_store.get(job_id)
        if record is None:
            raise HTTPException(status_code=500, detail="Job creation failed")
        return _to_pipeline_job(record)

    @app.get("/api/v1/jobs/{job_id}", response_model=PipelineJob)
    def get_job(job_id: str) -> PipelineJob:
        record = job_store.get(job_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return _to_pipeline_job(record)

    @app.post("/api/v1/workflows/plan")
    async def plan_workflow(req: WorkflowPlanRequest) -> list[dict[str, Any]]:
        nodes = await orchestrator.planner.create_workflow(req.goal, req.context)
        return [node.to_json() for node in nodes]

    @app.post("/api/v1/workflows/run", response_model=WorkflowRunResponse)
    async def run_workflow(req: WorkflowRunRequest) -> WorkflowRunResponse:
        results = await orchestrator.run_workflow(req.plan, req.context)
        return WorkflowRunResponse(
            plan=[node.to_json() for node in req.plan],
            results={node_id: result.to_json() for node_id, result in results.items()},
        )

    @app.post("/api/v1/rag/query")
    async def rag_query(req: RagQueryRequest) -> dict[str, Any]:
        if orchestrator.rag_chain is None:
            raise HTTPException(status_code=503, detail="No answer chain is configured")
        answer = await orchestrator.answer(
            req.query,
            history=[ChatMessage(role=m.role, content=m.content) for m in req.history],
            top_k=req.top_k,
            similarity_threshold=req.similarity_threshold,
            session_id=req.session_id,
        )
        return answer.model_dump(mode="json", by_alias=True)

    return app
