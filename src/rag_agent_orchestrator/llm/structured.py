"""Extraction of JSON payloads from free-form LLM responses.

Models wrap JSON in markdown fences, prefix it with prose or append
commentary. ``extract_json_block`` finds the first candidate that parses:

1. the body of a ```` ```json ```` (or bare ```` ``` ````) fence,
2. every balanced ``{...}`` / ``[...]`` block, left to right,
3. the block starting at the first opening bracket.
"""

from __future__ import annotations

import json
import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from rag_agent_orchestrator.core.errors import MalformedStructuredOutput

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_CLOSERS = {"{": "}", "[": "]"}


def _is_json(candidate: str) -> bool:
    if not candidate or not candidate.strip():
        return False
    try:
        json.loads(candidate)
    except ValueError:
        return False
    return True


def _from_markdown(text: str) -> str:
    for fence in ("```json", "```"):
        start = text.find(fence)
        if start == -1:
            continue
        body_start = start + len(fence)
        end = text.find("```", body_start)
        if end == -1:
            continue
        body = text[body_start:end].strip()
        if fence == "```json" or body[:1] in _CLOSERS:
            return body
    return ""


def _balanced_from(text: str, start: int) -> str:
    if start < 0 or start >= len(text):
        return ""
    open_char = text[start]
    close_char = _CLOSERS[open_char]
    depth = 1
    for i in range(start + 1, len(text)):
        char = text[i]
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
        if depth == 0:
            return text[start : i + 1].strip()
    return ""


def _balanced_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    i = 0
    while i < len(text):
        if text[i] in _CLOSERS:
            block = _balanced_from(text, i)
            if block:
                blocks.append(block)
                i += len(block)
                continue
        i += 1
    return blocks


def _first_bracket(text: str) -> int:
    positions = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    return min(positions) if positions else -1


def extract_json_block(text: str | None) -> str:
    """Return the first valid JSON object or array found in ``text``.

    Args:
        text: Raw LLM response.

    Returns:
        The JSON text, or an empty string if nothing parses.
    """
    if not text or not text.strip():
        return ""

    fenced = _from_markdown(text)
    if _is_json(fenced):
        return fenced

    for block in _balanced_blocks(text):
        if _is_json(block):
            return block

    fallback = _balanced_from(text, _first_bracket(text))
    if _is_json(fallback):
        return fallback

    logger.warning("No valid JSON found in LLM response", extra={"response_head": text[:1000]})
    return ""


def parse_structured(text: str | None, model: type[ModelT]) -> ModelT:
    """Extract JSON from ``text`` and validate it against ``model``.

    Args:
        text: Raw LLM response.
        model: Pydantic model describing the expected payload.

    Returns:
        The validated model instance.

    Raises:
        MalformedStructuredOutput: If no JSON is found or validation fails.
    """
    raw = text or ""
    block = extract_json_block(raw)
    if not block:
        raise MalformedStructuredOutput(f"No JSON payload for {model.__name__}", raw=raw)
    try:
        return model.model_validate_json(block)
    except ValidationError as e:
        raise MalformedStructuredOutput(
            f"Response does not match {model.__name__}: {e.error_count()} error(s)", raw=raw
        ) from e
