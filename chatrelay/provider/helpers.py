"""Message conversion and SSE parsing shared by providers."""

from __future__ import annotations

import json
from typing import Any

from chatrelay.core.types import ModelMessage, UIMessage

# Parts that only matter to the UI and never reach the model
_SKIPPED_PART_TYPES = {"reasoning", "step-start", "source-url", "source-document"}


# ---------------------------------------------------------------------------
# Content processing
# ---------------------------------------------------------------------------


def coerce_content(content: Any) -> str:
    """Coerce various content formats to a plain string."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
                continue
            if isinstance(part, dict):
                if part.get("type") in _SKIPPED_PART_TYPES:
                    continue
                if isinstance(part.get("text"), str):
                    parts.append(part["text"])
                    continue
                if isinstance(part.get("content"), str):
                    parts.append(part["content"])
                    continue
        return "\n".join(parts)
    if isinstance(content, dict):
        text = content.get("text")
        if isinstance(text, str):
            return text
    return str(content)


def convert_to_model_messages(messages: list[UIMessage]) -> list[ModelMessage]:
    """Convert UI messages to the provider wire shape, preserving order.

    ``parts`` take precedence over ``content`` when a message carries both.
    Reasoning parts from earlier assistant turns are dropped.
    """
    converted: list[ModelMessage] = []
    for m in messages:
        if m.parts is not None:
            content = coerce_content([p.model_dump() for p in m.parts])
        else:
            content = coerce_content(m.content)
        converted.append({"role": m.role, "content": content})
    return converted


# ---------------------------------------------------------------------------
# SSE parsing
# ---------------------------------------------------------------------------

DONE = object()


def parse_sse_line(line: str) -> dict[str, Any] | object | None:
    """Decode one line of an OpenAI-compatible SSE stream.

    Returns the JSON payload of a ``data:`` line, ``DONE`` for the
    ``[DONE]`` sentinel, and ``None`` for blank lines, comments and other
    fields. Raises ``ValueError`` on a ``data:`` line that is not JSON.
    """
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if not data:
        return None
    if data == "[DONE]":
        return DONE
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed SSE payload: {data[:200]!r}") from e
    if not isinstance(payload, dict):
        raise ValueError(f"Unexpected SSE payload type: {type(payload).__name__}")
    return payload


def delta_fields(payload: dict[str, Any]) -> tuple[str, str]:
    """Return ``(reasoning, text)`` carried by a chat completion chunk."""
    choices = payload.get("choices") or []
    if not choices:
        return "", ""
    delta = choices[0].get("delta") or {}
    reasoning = delta.get("reasoning_content") or delta.get("reasoning") or ""
    text = delta.get("content") or ""
    return str(reasoning), str(text)
