"""In-memory job tracking for server background tasks.

Jobs live only as long as the process. Execution history is not persisted.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class JobRecord(BaseModel):
    job_id: str
    pipeline: str
    status: str
    created_at: str
    updated_at: str

    results: list[dict[str, Any]] = Field(default_factory=list)
    failed_task: str | None = None
    error: str | None = None


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


class JobStore:
    def __init__(self) -> None:
        self._jobs: dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def get(self, job_id: str) -> JobRecord | None:
        with self._lock:
            return self._jobs.get(job_id)

    def create(self, *, job_id: str, pipeline: str) -> JobRecord:
        with self._lock:
            now = _utc_iso_now()
            record = JobRecord(
                job_id=job_id,
                pipeline=pipeline,
                status="queued",
                created_at=now,
                updated_at=now,
            )
            self._jobs[job_id] = record
            return record

    def update(self, job_id: str, **updates: object) -> JobRecord:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise KeyError(job_id)
            merged = job.model_copy(update={"updated_at": _utc_iso_now(), **updates})
            self._jobs[job_id] = merged
            return merged
