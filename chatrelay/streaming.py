"""UI message stream encoding.

Frames follow the chat UI's message stream protocol (v1): one JSON event per
SSE ``data:`` line, text and reasoning wrapped in ``*-start`` / ``*-delta`` /
``*-end`` triples, terminated by ``finish`` and ``[DONE]``.
"""

from __future__ import annotations

import json
import uuid

from chatrelay.core.types import StreamChunk

UI_MESSAGE_STREAM_HEADERS = {
    "cache-control": "no-cache",
    "connection": "keep-alive",
    "x-vercel-ai-ui-message-stream": "v1",
    "x-accel-buffering": "no",
}

DONE_FRAME = "data: [DONE]\n\n"


def sse_frame(event: dict[str, object]) -> str:
    return f"data: {json.dumps(event)}\n\n"


class UIMessageStreamEncoder:
    """Turns ``StreamChunk``s into protocol frames for one assistant message.

    Consecutive chunks of the same kind share a part id; a change of kind
    closes the open part and starts a new one.
    """

    def __init__(self, message_id: str | None = None) -> None:
        self.message_id = message_id or f"msg-{uuid.uuid4().hex[:16]}"
        self._open_kind: str | None = None
        self._open_id = ""
        self._next_part = 0

    def start(self) -> list[str]:
        return [
            sse_frame({"type": "start", "messageId": self.message_id}),
            sse_frame({"type": "start-step"}),
        ]

    def chunk(self, chunk: StreamChunk) -> list[str]:
        kind = "reasoning" if chunk.kind == "reasoning" else "text"
        frames: list[str] = []
        if kind != self._open_kind:
            frames.extend(self._close_part())
            self._open_kind = kind
            self._open_id = str(self._next_part)
            self._next_part += 1
            frames.append(sse_frame({"type": f"{kind}-start", "id": self._open_id}))
        frames.append(
            sse_frame({"type": f"{kind}-delta", "id": self._open_id, "delta": chunk.text}),
        )
        return frames

    def _close_part(self) -> list[str]:
        if self._open_kind is None:
            return []
        frame = sse_frame({"type": f"{self._open_kind}-end", "id": self._open_id})
        self._open_kind = None
        return [frame]

    def finish(self) -> list[str]:
        return [
            *self._close_part(),
            sse_frame({"type": "finish-step"}),
            sse_frame({"type": "finish"}),
            DONE_FRAME,
        ]

    def error(self, error_text: str) -> list[str]:
        """Frames for an abnormal end; no ``finish`` or ``[DONE]`` follows."""
        return [sse_frame({"type": "error", "errorText": error_text})]
