"""Shared test fixtures for chatrelay."""

from __future__ import annotations

import json

import httpx
import pytest

from chatrelay.core.config import RelayConfig, get_relay_config


class ChunkedStream(httpx.AsyncByteStream):
    """Response body that yields ``chunks`` and then optionally fails."""

    def __init__(self, chunks: list[bytes], fail_with: Exception | None = None) -> None:
        self._chunks = chunks
        self._fail_with = fail_with
        self.closed = False

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk
        if self._fail_with is not None:
            raise self._fail_with

    async def aclose(self) -> None:
        self.closed = True


class FakeUpstream:
    """OpenAI-compatible model server stand-in backed by ``httpx.MockTransport``.

    Records every request it receives; the response is configured per test
    with ``stream()``, ``fail()`` or ``raise_on_connect()``.
    """

    base_url = "http://upstream.test/v1"

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.last_stream: ChunkedStream | None = None
        self._handler = self._default_handler
        self.transport = httpx.MockTransport(self._dispatch)

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def _default_handler(self, request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected upstream call: {request.url}")

    @property
    def bodies(self) -> list[dict[str, object]]:
        return [json.loads(r.content) for r in self.requests]

    @staticmethod
    def content(text: str) -> dict[str, object]:
        return {
            "object": "chat.completion.chunk",
            "choices": [{"index": 0, "delta": {"content": text}, "finish_reason": None}],
        }

    @staticmethod
    def reasoning(text: str) -> dict[str, object]:
        return {
            "object": "chat.completion.chunk",
            "choices": [{"index": 0, "delta": {"reasoning_content": text}, "finish_reason": None}],
        }

    def stream(
        self,
        *events: dict[str, object],
        done: bool = True,
        fail_with: Exception | None = None,
    ) -> None:
        """Answer with one SSE frame per event (one body chunk each)."""
        chunks = [f"data: {json.dumps(e)}\n\n".encode() for e in events]
        if done:
            chunks.append(b"data: [DONE]\n\n")

        def handler(request: httpx.Request) -> httpx.Response:
            self.last_stream = ChunkedStream(chunks, fail_with=fail_with)
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                stream=self.last_stream,
            )

        self._handler = handler

    def fail(self, status_code: int, body: str = "upstream exploded") -> None:
        self._handler = lambda request: httpx.Response(status_code, text=body)

    def raise_on_connect(self, exc: Exception) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise exc

        self._handler = handler


@pytest.fixture()
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture()
def relay_config() -> RelayConfig:
    return RelayConfig(
        provider_name="test",
        base_url=FakeUpstream.base_url,
        model="Qwen/Qwen3-8B-FP8",
    )


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Isolate tests from CHATRELAY_* variables and the cached config."""
    for name in (
        "CHATRELAY_CONFIG_NAME",
        "CHATRELAY_BASE_URL",
        "CHATRELAY_MODEL",
        "CHATRELAY_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    get_relay_config.cache_clear()
    yield
    get_relay_config.cache_clear()
