"""Parse structured JSON out of free-form model text."""
from __future__ import annotations

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from deep_research.exceptions import MalformedOutputError

T = TypeVar("T", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?|```\s*\n?", re.IGNORECASE)


def extract_json_object(raw_text: str) -> dict[str, Any]:
    """Return the outermost ``{...}`` block of ``raw_text`` as a dict."""
    text = _FENCE_RE.sub("", raw_text or "").strip()
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise MalformedOutputError("No JSON object found in model output.", raw=raw_text)
    try:
        parsed = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise MalformedOutputError(f"Invalid JSON in model output: {exc}", raw=raw_text) from exc
    if not isinstance(parsed, dict):
        raise MalformedOutputError("Model output JSON is not an object.", raw=raw_text)
    return parsed


def parse_structured(raw_text: str, model: type[T]) -> T:
    """Validate the JSON object held in ``raw_text`` against ``model``.

    Raises:
        MalformedOutputError: when no object can be found or it fails validation.
    """
    payload = extract_json_object(raw_text)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise MalformedOutputError(
            f"Model output does not match {model.__name__}: {exc.error_count()} error(s)",
            raw=raw_text,
        ) from exc
