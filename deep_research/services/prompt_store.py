"""Prompt catalog for the planner, coverage judge and report writer."""
from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from string import Template
from typing import Any


PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


def _flatten(node: Any, prefix: str, out: dict[str, str]) -> None:
    if isinstance(node, dict):
        for name, child in node.items():
            _flatten(child, f"{prefix}.{name}" if prefix else str(name), out)
        return
    # Long prompts are stored as a list of lines.
    if isinstance(node, list) and all(isinstance(line, str) for line in node):
        out[prefix] = "\n".join(node)
        return
    if isinstance(node, str):
        out[prefix] = node
        return
    raise TypeError(f"Prompt entry must be a string or list of lines: {prefix}")


@lru_cache(maxsize=1)
def load_catalog() -> dict[str, str]:
    """Read the catalog once and index every prompt by its dotted key."""
    payload = json.loads(PROMPTS_PATH.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Prompt catalog must be a JSON object.")
    flat: dict[str, str] = {}
    _flatten(payload, "", flat)
    return flat


def render_prompt(key: str, **values: Any) -> str:
    catalog = load_catalog()
    if key not in catalog:
        raise KeyError(f"Prompt key not found: {key}")
    try:
        return Template(catalog[key]).substitute(**values)
    except KeyError as exc:
        missing = str(exc.args[0])
        raise KeyError(f"Missing template value '{missing}' for prompt '{key}'") from exc
