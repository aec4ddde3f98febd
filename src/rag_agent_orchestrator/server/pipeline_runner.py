"""Background runner for pipeline jobs.

Jobs run as tasks on the server's event loop, the same loop that owns the
LLM client. At most one job per pipeline name runs at a time: the key is
taken in the request handler, so a conflicting request fails immediately,
and released when the job task ends.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping
from typing import Any

from rag_agent_orchestrator.core.errors import PipelineExecutionError
from rag_agent_orchestrator.core.logging import log_context
from rag_agent_orchestrator.core.orchestrator import Orchestrator
from rag_agent_orchestrator.engine.single_flight import AlreadyRunning, SingleFlightGuard
from rag_agent_orchestrator.server.job_store import JobStore

logger = logging.getLogger(__name__)

# The loop only keeps weak references to tasks.
_background_jobs: set[asyncio.Task[None]] = set()


def start_pipeline_job(
    *,
    pipeline: str,
    context: Mapping[str, Any],
    orchestrator: Orchestrator,
    job_store: JobStore,
    guard: SingleFlightGuard,
) -> str:
    """Schedule ``pipeline`` on the running event loop and return the job id.

    Must be called from a coroutine on the server loop.

    Raises:
        AlreadyRunning: If a job for the same pipeline is still running.
    """
    if not guard.try_acquire(pipeline):
        raise AlreadyRunning(pipeline)

    job_id = uuid.uuid4().hex
    try:
        job_store.create(job_id=job_id, pipeline=pipeline)
        task = asyncio.get_running_loop().create_task(
            _run_job(
                job_id=job_id,
                pipeline=pipeline,
                context=dict(context),
                orchestrator=orchestrator,
                job_store=job_store,
                guard=guard,
            ),
            name=f"pipeline-{pipeline}-{job_id}",
        )
    except BaseException:
        guard.release(pipeline)
        raise
    _background_jobs.add(task)
    task.add_done_callback(_background_jobs.discard)
    return job_id


async def _run_job(
    *,
    job_id: str,
    pipeline: str,
    context: dict[str, Any],
    orchestrator: Orchestrator,
    job_store: JobStore,
    guard: SingleFlightGuard,
) -> None:
    with log_context(job_id=job_id, pipeline=pipeline):
        job_store.update(job_id, status="running")
        try:
            results = await orchestrator.run_pipeline(pipeline, context)
            job_store.update(
                job_id,
                status="succeeded",
                results=[result.to_json() for result in results],
            )

        except PipelineExecutionError as e:
            logger.warning("Pipeline job failed", extra={"task_name": e.task_name})
            job_store.update(
                job_id,
                status="failed",
                results=[result.to_json() for result in e.completed],
                failed_task=e.task_name,
                error=e.message,
            )

        except asyncio.CancelledError:
            job_store.update(job_id, status="failed", error="cancelled")
            raise

        except Exception as e:
            logger.exception("Pipeline job crashed")
            job_store.update(job_id, status="failed", error=str(e))

        finally:
            guard.release(pipeline)
