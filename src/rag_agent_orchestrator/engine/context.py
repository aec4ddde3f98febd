"""Accumulating key/value context threaded through a run."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any


class ExecutionContext(Mapping[str, Any]):
    """Immutable mapping of payload keys to values.

    Each task produces a delta (``TaskResult.details``) that is merged into a
    *new* context for the next stage. A context handed to concurrently running
    tasks is never mutated.
    """

    __slots__ = ("_payload",)

    def __init__(self, payload: Mapping[str, Any] | None = None) -> None:
        self._payload: Mapping[str, Any] = MappingProxyType(dict(payload or {}))

    def __getitem__(self, key: str) -> Any:
        return self._payload[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._payload)

    def __len__(self) -> int:
        return len(self._payload)

    def __repr__(self) -> str:
        return f"ExecutionContext({dict(self._payload)!r})"

    @property
    def payload(self) -> dict[str, Any]:
        """A shallow copy of the payload."""
        return dict(self._payload)

    def merged(self, *deltas: Mapping[str, Any]) -> ExecutionContext:
        """Return a new context with ``deltas`` applied in order (last write wins)."""
        payload = dict(self._payload)
        for delta in deltas:
            payload.update(delta)
        return ExecutionContext(payload)
