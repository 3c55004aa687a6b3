"""Shared request models and stream types for the chat relay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, TypedDict

from pydantic import BaseModel, ConfigDict, Field, model_validator

Role = Literal["system", "user", "assistant"]


# --- API Request Models ---


class MessagePart(BaseModel):
    """One structured part of a UI message (``text``, ``reasoning``, ``file``, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str
    text: str | None = None


class UIMessage(BaseModel):
    """A single conversation turn as sent by the chat UI.

    Older clients send ``content`` (a string or a list of content parts);
    UI-message clients send ``parts``. At least one of the two is required.
    """

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    role: Role
    content: Any = None
    parts: list[MessagePart] | None = None

    @model_validator(mode="after")
    def _require_content(self) -> UIMessage:
        if self.content is None and self.parts is None:
            raise ValueError("message must carry 'content' or 'parts'")
        return self


class ChatRequest(BaseModel):
    """Body of ``POST /api/chat``.

    Extra top-level keys sent by the UI (``id``, ``trigger``, ...) are accepted
    and ignored.
    """

    model_config = ConfigDict(extra="allow")

    messages: list[UIMessage] = Field(min_length=1)


class ModelMessage(TypedDict):
    """Message shape expected by the OpenAI-compatible provider."""

    role: Role
    content: str


# --- Stream types ---


@dataclass(frozen=True)
class ProviderDelta:
    """Incremental output from the provider, before reasoning extraction.

    ``reasoning`` deltas come from servers that split reasoning natively
    (``delta.reasoning_content``); ``text`` deltas may still carry inline tags.
    """

    kind: Literal["text", "reasoning"]
    text: str


@dataclass(frozen=True)
class StreamChunk:
    """Output of the reasoning-extraction transform, in emission order."""

    kind: Literal["answer", "reasoning"]
    text: str
