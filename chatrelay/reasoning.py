"""Incremental reasoning-tag extraction for streamed model output.

Models such as Qwen3 wrap their chain of thought in ``<think>...</think>``.
``ReasoningExtractor`` splits a token stream into ``reasoning`` and ``answer``
chunks without buffering the whole response: only a trailing fragment that
could still become a tag is held back until the next token decides it.
"""

from __future__ import annotations

from chatrelay.core.types import StreamChunk


def _partial_tag_start(text: str, tag: str) -> int | None:
    """Return the index where ``tag`` starts in ``text``.

    A full match wins. Otherwise, if ``text`` ends with a proper prefix of
    ``tag`` (e.g. ``"...</thi"``), return the start of that suffix. ``None``
    when neither is present.
    """
    idx = text.find(tag)
    if idx >= 0:
        return idx
    for size in range(min(len(tag) - 1, len(text)), 0, -1):
        if text.endswith(tag[:size]):
            return len(text) - size
    return None


class ReasoningExtractor:
    """Two-state (answer / reasoning) tag filter.

    Feed raw text deltas via ``feed()`` and emit the returned chunks; call
    ``flush()`` once the upstream stream has ended.

    Every reasoning segment after the first is prefixed with ``separator`` so
    that the concatenated reasoning reads as one block. Answer text passes
    through unchanged.
    """

    def __init__(
        self,
        tag_name: str = "think",
        separator: str = "\n\n",
        start_with_reasoning: bool = False,
    ) -> None:
        self._open_tag = f"<{tag_name}>"
        self._close_tag = f"</{tag_name}>"
        self._separator = separator
        self._in_reasoning = start_with_reasoning
        self._buf = ""
        self._segment_started = False
        self._reasoning_segments = 0

    def _publish(self, text: str, out: list[StreamChunk]) -> None:
        if not text:
            return
        if not self._in_reasoning:
            out.append(StreamChunk("answer", text))
            return
        if not self._segment_started:
            self._segment_started = True
            self._reasoning_segments += 1
            if self._reasoning_segments > 1:
                text = self._separator + text
        out.append(StreamChunk("reasoning", text))

    def _switch(self) -> None:
        self._in_reasoning = not self._in_reasoning
        self._segment_started = False

    def feed(self, token: str) -> list[StreamChunk]:
        """Feed a text delta and return the chunks it completes."""
        self._buf += token
        out: list[StreamChunk] = []

        while True:
            tag = self._close_tag if self._in_reasoning else self._open_tag
            start = _partial_tag_start(self._buf, tag)
            if start is None:
                self._publish(self._buf, out)
                self._buf = ""
                break

            self._publish(self._buf[:start], out)
            if start + len(tag) <= len(self._buf):
                self._buf = self._buf[start + len(tag):]
                self._switch()
                continue

            # Possible tag split across deltas; wait for more data
            self._buf = self._buf[start:]
            break

        return out

    def flush(self) -> list[StreamChunk]:
        """Emit any held-back fragment (call at end of stream)."""
        out: list[StreamChunk] = []
        self._publish(self._buf, out)
        self._buf = ""
        return out
