"""
Tolerant JSON extraction for model output.

Models in JSON mode still occasionally wrap the object in prose or code
fences, or double-escape it. extract_json() tries, in order:

1. strict json.loads of the whole text
2. the outermost {...} block found by regex
3. the block after stripping fences and unescaping quotes/newlines

parse_llm_json() then validates the result against a pydantic model.
Both stages fail with LLMResponseError so callers have one failure mode.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from core.exceptions import LLMResponseError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def _snippet(text: str, limit: int = 200) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= limit else flat[:limit] + "..."


def _try_loads(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except (TypeError, ValueError):
        return None


def _clean(text: str) -> str:
    cleaned = _FENCE_RE.sub("", text).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start : end + 1]
    cleaned = cleaned.replace('\\"', '"').replace("\\n", "\n")
    # Trailing commas before a closing bracket
    cleaned = re.sub(r",\s*([}\]])", r"\1", cleaned)
    return cleaned


def extract_json(text: str, *, purpose: str = "llm") -> Any:
    """Return the parsed JSON value in ``text`` or raise LLMResponseError."""
    if text is None or not str(text).strip():
        raise LLMResponseError(f"Empty model response ({purpose})", raw_text=text)

    parsed = _try_loads(text)
    if parsed is not None:
        return parsed

    match = _OBJECT_RE.search(text)
    if match:
        parsed = _try_loads(match.group(0))
        if parsed is not None:
            logger.info(f"Recovered JSON object from surrounding text ({purpose})")
            return parsed

    parsed = _try_loads(_clean(text))
    if parsed is not None:
        logger.info(f"Recovered JSON after cleanup ({purpose})")
        return parsed

    logger.error(
        f"Could not extract JSON from model response ({purpose})",
        extra={"extra_fields": {"purpose": purpose, "response_snippet": _snippet(text)}},
    )
    raise LLMResponseError(
        f"Model returned malformed JSON for {purpose}: {_snippet(text, 120)!r}",
        raw_text=text,
    )


def parse_llm_json(text: str, model: Type[M], *, purpose: str = "llm") -> M:
    """Extract JSON from ``text`` and validate it as ``model``."""
    data = extract_json(text, purpose=purpose)
    if not isinstance(data, dict):
        raise LLMResponseError(
            f"Model returned {type(data).__name__} instead of a JSON object for {purpose}",
            raw_text=text,
        )
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
        )
        raise LLMResponseError(
            f"Model response for {purpose} did not match the expected shape: {problems}",
            raw_text=text,
        ) from e
