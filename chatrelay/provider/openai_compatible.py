"""OpenAI-compatible streaming provider.

Posts ``/chat/completions`` with ``stream: true`` to the configured base URL
(a vLLM server in every shipped profile) and decodes the SSE response.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Any

import httpx

from chatrelay.core.config import RelayConfig
from chatrelay.core.types import ModelMessage, ProviderDelta

from .base import ProviderClient, UpstreamError, UpstreamUnavailable
from .helpers import DONE, delta_fields, parse_sse_line

logger = logging.getLogger(__name__)

_ERROR_BODY_LIMIT = 500


class OpenAICompatibleProvider(ProviderClient):
    """Streams chat completions from an OpenAI-compatible endpoint."""

    def __init__(
        self,
        cfg: RelayConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._cfg = cfg
        self.name = cfg.provider_name
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(cfg.read_timeout_s, connect=cfg.connect_timeout_s),
            transport=transport,
        )

    def _auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._cfg.api_key:
            headers["Authorization"] = f"Bearer {self._cfg.api_key}"
        return headers

    def _request_body(self, messages: list[ModelMessage]) -> dict[str, Any]:
        return {
            "model": self._cfg.model,
            "messages": messages,
            "stream": True,
            "stream_options": {"include_usage": True},
        }

    async def stream_chat(self, messages: list[ModelMessage]) -> AsyncGenerator[ProviderDelta, None]:
        url = self._cfg.chat_completions_url
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        headers.update(self._auth_headers())

        try:
            async with self._client.stream(
                "POST", url, json=self._request_body(messages), headers=headers,
            ) as resp:
                if resp.status_code >= 400:
                    detail = (await resp.aread()).decode("utf-8", errors="replace")
                    raise UpstreamError(
                        f"{self.name} returned HTTP {resp.status_code}: "
                        f"{detail[:_ERROR_BODY_LIMIT]}",
                        upstream_status=resp.status_code,
                    )

                async for line in resp.aiter_lines():
                    try:
                        payload = parse_sse_line(line)
                    except ValueError as e:
                        raise UpstreamError(str(e)) from e
                    if payload is None:
                        continue
                    if payload is DONE:
                        return
                    assert isinstance(payload, dict)

                    if payload.get("error"):
                        raise UpstreamError(f"{self.name} stream error: {payload['error']}")
                    if payload.get("usage"):
                        logger.debug("Upstream usage: %s", payload["usage"])

                    reasoning, text = delta_fields(payload)
                    if reasoning:
                        yield ProviderDelta("reasoning", reasoning)
                    if text:
                        yield ProviderDelta("text", text)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"{self.name} timed out: {e!r}", timed_out=True) from e
        except httpx.TransportError as e:
            raise UpstreamUnavailable(f"{self.name} unreachable: {e!r}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
