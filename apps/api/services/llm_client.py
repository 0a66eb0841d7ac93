"""
Hosted LLM client.

Every coaching agent talks to the model the same way: a system
instruction, one user message with the task and its context, JSON-mode
output. LLMClient wraps the OpenAI chat completions API; tests swap it
for a scripted fake on app.state.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fastapi import Request
from openai import OpenAI

from core.config import settings
from core.exceptions import LLMUnavailableError

logger = logging.getLogger(__name__)

JSON_ONLY_DIRECTIVE = (
    "Respond ONLY with a single valid JSON object. "
    "No markdown fences, no commentary before or after the JSON."
)


@dataclass
class LLMRequest:
    """One chat-completion call."""

    system: str
    user: str
    model: str
    temperature: float = 0.3
    max_tokens: Optional[int] = None
    # Extra user messages appended after the main prompt (e.g. coach focus text)
    context_messages: List[str] = field(default_factory=list)
    # Short label for logs ("generate_pdp", "overlay_constraints", ...)
    purpose: str = "completion"

    def messages(self) -> List[Dict[str, str]]:
        msgs = [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]
        for extra in self.context_messages:
            msgs.append({"role": "user", "content": extra})
        return msgs


def json_prompt(instruction: str, context: Optional[Dict[str, Any]] = None, output_shape: Optional[str] = None) -> str:
    """
    Assemble a user prompt: the task, its data as labelled JSON sections,
    the expected output shape, and the JSON-only directive.
    """
    parts = [instruction.strip()]
    for label, value in (context or {}).items():
        if isinstance(value, str):
            rendered = value
        else:
            rendered = json.dumps(value, indent=2, default=str)
        parts.append(f"{label}:\n{rendered}")
    if output_shape:
        parts.append(f"Return a JSON object with this structure:\n{output_shape.strip()}")
    parts.append(JSON_ONLY_DIRECTIVE)
    return "\n\n".join(parts)


class LLMClient:
    """Thin wrapper over openai.OpenAI chat completions in JSON mode."""

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.timeout = timeout if timeout is not None else settings.OPENAI_TIMEOUT_S
        self._client: Optional[OpenAI] = None

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> OpenAI:
        if not self.api_key:
            raise LLMUnavailableError("OPENAI_API_KEY not configured")
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def complete(self, request: LLMRequest) -> str:
        """Run the request and return the raw message text."""
        client = self._get_client()
        kwargs: Dict[str, Any] = {
            "model": request.model,
            "messages": request.messages(),
            "temperature": request.temperature,
            "response_format": {"type": "json_object"},
        }
        if request.max_tokens:
            kwargs["max_tokens"] = request.max_tokens

        try:
            response = client.chat.completions.create(**kwargs)
        except Exception as e:
            logger.error(
                f"OpenAI request failed ({request.purpose}): {e}",
                extra={"extra_fields": {"purpose": request.purpose, "model": request.model}},
            )
            raise LLMUnavailableError(f"OpenAI request failed: {e}") from e

        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        logger.info(
            f"LLM completion ({request.purpose})",
            extra={
                "extra_fields": {
                    "purpose": request.purpose,
                    "model": request.model,
                    "response_chars": len(content),
                    "total_tokens": getattr(usage, "total_tokens", None),
                }
            },
        )
        if not content.strip():
            raise LLMUnavailableError(f"Empty response from model ({request.purpose})")
        return content


def get_llm_client(request: Request) -> LLMClient:
    """FastAPI dependency: the client installed on the application state."""
    return request.app.state.llm_client
