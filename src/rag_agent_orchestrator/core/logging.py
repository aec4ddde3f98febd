"""Structured logging for pipeline, workflow and answer-chain runs.

Every line is one JSON object on stderr. The identifiers that tie a line to
a run (pipeline, task, workflow node, chain step, session, background job)
are top-level fields, whether they come from ``extra={...}`` or from an
enclosing :func:`log_context` block. Any other ``extra`` field lands under
``extra``.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

CORRELATION_FIELDS: tuple[str, ...] = (
    "job_id",
    "pipeline",
    "task_name",
    "node_id",
    "step",
    "session_id",
)

# Attributes every LogRecord carries; anything else was passed via ``extra``.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

_run_fields: ContextVar[dict[str, Any]] = ContextVar("log_run_fields", default={})


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach correlation fields to every record logged inside the block.

    Fields set to None are ignored. Tasks started inside the block inherit
    the fields, so concurrent stage members and workflow nodes are tagged
    with the run that spawned them.
    """
    merged = {**_run_fields.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _run_fields.set(merged)
    try:
        yield
    finally:
        _run_fields.reset(token)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_run_fields.get())

        extra: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            if key in CORRELATION_FIELDS:
                payload[key] = value
            else:
                extra[key] = value
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str) -> None:
    """Send JSON lines to stderr; stdout carries command output."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    # The OpenAI SDK logs every request at INFO through httpx.
    for noisy in ("openai", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(max(root.level, logging.WARNING))
