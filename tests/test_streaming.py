"""Tests for UI message stream framing."""

from __future__ import annotations

import json

from chatrelay.core.types import StreamChunk
from chatrelay.streaming import DONE_FRAME, UIMessageStreamEncoder, sse_frame


def _events(frames: list[str]) -> list[dict]:
    return [json.loads(f[len("data: "):]) for f in frames if f != DONE_FRAME]


def test_sse_frame_format():
    assert sse_frame({"type": "finish"}) == 'data: {"type": "finish"}\n\n'


def test_start_frames_carry_message_id():
    encoder = UIMessageStreamEncoder(message_id="msg-1")
    assert _events(encoder.start()) == [
        {"type": "start", "messageId": "msg-1"},
        {"type": "start-step"},
    ]


def test_generated_message_ids_are_unique():
    assert UIMessageStreamEncoder().message_id != UIMessageStreamEncoder().message_id


def test_parts_open_and_close_on_kind_change():
    encoder = UIMessageStreamEncoder(message_id="msg-1")
    frames: list[str] = []
    for chunk in [
        StreamChunk("reasoning", "let me "),
        StreamChunk("reasoning", "think"),
        StreamChunk("answer", "Hello"),
        StreamChunk("answer", "!"),
    ]:
        frames.extend(encoder.chunk(chunk))
    frames.extend(encoder.finish())

    assert _events(frames) == [
        {"type": "reasoning-start", "id": "0"},
        {"type": "reasoning-delta", "id": "0", "delta": "let me "},
        {"type": "reasoning-delta", "id": "0", "delta": "think"},
        {"type": "reasoning-end", "id": "0"},
        {"type": "text-start", "id": "1"},
        {"type": "text-delta", "id": "1", "delta": "Hello"},
        {"type": "text-delta", "id": "1", "delta": "!"},
        {"type": "text-end", "id": "1"},
        {"type": "finish-step"},
        {"type": "finish"},
    ]
    assert frames[-1] == DONE_FRAME


def test_finish_without_parts():
    encoder = UIMessageStreamEncoder()
    assert _events(encoder.finish()) == [{"type": "finish-step"}, {"type": "finish"}]


def test_error_has_no_finish():
    encoder = UIMessageStreamEncoder()
    encoder.chunk(StreamChunk("answer", "partial"))
    frames = encoder.error("upstream dropped")
    assert _events(frames) == [{"type": "error", "errorText": "upstream dropped"}]
    assert DONE_FRAME not in frames
