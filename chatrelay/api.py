"""chatrelay API: streaming chat relay in front of an OpenAI-compatible model.

Chat messages from the UI are converted to the provider's wire shape,
forwarded as one streaming completion, and re-emitted as a UI message stream
with ``<think>`` reasoning split from the visible answer. The endpoint config
is selected via Hydra config name (``modal`` or ``local``) at process startup.

Endpoints:
- POST /api/chat: Relay a conversation and stream the reply
- GET  /health: Health check
- GET  /: Service info

Example usage::

    curl -N -X POST http://localhost:8080/api/chat \\
        -H "Content-Type: application/json" \\
        -d '{"messages": [{"role": "user", "content": "Why is the sky blue?"}]}'
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

import httpx
import hydra
import modal
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from omegaconf import DictConfig, OmegaConf

from .core.config import RelayConfig, build_relay_config, get_relay_config
from .core.types import ChatRequest, ProviderDelta, StreamChunk
from .provider import get_provider
from .provider.base import ProviderClient, ProviderError
from .provider.helpers import convert_to_model_messages
from .reasoning import ReasoningExtractor
from .streaming import UI_MESSAGE_STREAM_HEADERS, UIMessageStreamEncoder

logger = logging.getLogger(__name__)

# Modal app for the API surface; the model server is a separate deployment.
app = modal.App("chatrelay")


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    provider = getattr(_app.state, "provider", None)
    if isinstance(provider, ProviderClient):
        await provider.aclose()


web_app = FastAPI(
    title="chatrelay",
    description="Streaming chat relay with reasoning extraction",
    version="0.1.0",
    lifespan=_lifespan,
)


def configure_web_app(
    cfg: RelayConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Inject the relay config and its provider client into the FastAPI app."""
    web_app.state.relay_config = cfg
    web_app.state.provider = get_provider(cfg, transport=transport)


def _relay_config(request: Request) -> RelayConfig:
    cfg = getattr(request.app.state, "relay_config", None)
    if isinstance(cfg, RelayConfig):
        return cfg
    raise TypeError("chatrelay web app was not configured; call configure_web_app()")


def _get_provider(request: Request) -> ProviderClient:
    """Retrieve the provider client from FastAPI app state."""
    return request.app.state.provider


def _error_response(error: ProviderError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"error": {"type": type(error).__name__, "message": str(error)}},
    )


# ---------------------------------------------------------------------------
# Streaming pipeline
# ---------------------------------------------------------------------------


def _encode_delta(
    delta: ProviderDelta,
    extractor: ReasoningExtractor,
    encoder: UIMessageStreamEncoder,
) -> list[str]:
    if delta.kind == "reasoning":
        # Held-back text arrived first and must not be overtaken
        chunks = [*extractor.flush(), StreamChunk("reasoning", delta.text)]
    else:
        chunks = extractor.feed(delta.text)
    return [frame for chunk in chunks for frame in encoder.chunk(chunk)]


async def _relay(
    deltas: AsyncGenerator[ProviderDelta, None],
    first: ProviderDelta | None,
    cfg: RelayConfig,
) -> AsyncIterator[str]:
    """Pipe provider deltas through the reasoning extractor into UI frames."""
    extractor = ReasoningExtractor(
        tag_name=cfg.tag_name,
        separator=cfg.separator,
        start_with_reasoning=cfg.start_with_reasoning,
    )
    encoder = UIMessageStreamEncoder()

    try:
        for frame in encoder.start():
            yield frame
        if first is not None:
            for frame in _encode_delta(first, extractor, encoder):
                yield frame
            async for delta in deltas:
                for frame in _encode_delta(delta, extractor, encoder):
                    yield frame
    except ProviderError as e:
        logger.warning("Upstream failed mid-stream: %s", e)
        for chunk in extractor.flush():
            for frame in encoder.chunk(chunk):
                yield frame
        for frame in encoder.error(str(e)):
            yield frame
        return
    except asyncio.CancelledError:
        logger.info("Client disconnected; aborting upstream stream")
        raise
    finally:
        await deltas.aclose()

    for chunk in extractor.flush():
        for frame in encoder.chunk(chunk):
            yield frame
    for frame in encoder.finish():
        yield frame


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@web_app.post("/api/chat", response_model=None)
async def chat(req: ChatRequest, request: Request) -> StreamingResponse | JSONResponse:
    """Relay a conversation to the model and stream the reply."""
    cfg = _relay_config(request)
    provider = _get_provider(request)

    messages = convert_to_model_messages(req.messages)
    logger.info("Relaying %d messages to %s (%s)", len(messages), provider.name, cfg.model)

    # Wait for the first delta so upstream failures become a plain error
    # response instead of a half-open stream.
    deltas = provider.stream_chat(messages)
    try:
        first: ProviderDelta | None = await deltas.__anext__()
    except StopAsyncIteration:
        first = None
    except ProviderError as e:
        logger.warning("Upstream failed before first token: %s", e)
        return _error_response(e)

    return StreamingResponse(
        _relay(deltas, first, cfg),
        media_type="text/event-stream",
        headers=UI_MESSAGE_STREAM_HEADERS,
    )


@web_app.get("/health")
async def health_check(request: Request) -> dict[str, object]:
    """Report the configured backend; does not probe the model server."""
    cfg = _relay_config(request)
    return {"status": "healthy", "provider": cfg.provider_name, "model": cfg.model}


@web_app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "chatrelay",
        "version": "0.1.0",
        "description": "Streaming chat relay with reasoning extraction",
        "docs": "/docs",
    }


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    level = os.environ.get("CHATRELAY_LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        logger.warning("Unknown CHATRELAY_LOG_LEVEL %r; using INFO", level)
        level = "INFO"
    logging.getLogger("chatrelay").setLevel(level)


# Mount FastAPI to Modal
@app.function(
    image=modal.Image.debian_slim(python_version="3.11")
    .pip_install(
        "fastapi>=0.110.0",
        "pydantic>=2.6.0",
        "httpx>=0.27.0",
        "hydra-core>=1.3.2",
        "omegaconf>=2.3.0",
        "uvicorn>=0.27.0",
    )
    .add_local_python_source("chatrelay"),
)
@modal.asgi_app()
def fastapi_app():
    """Modal ASGI app entry point."""
    _configure_logging()
    configure_web_app(get_relay_config())
    return web_app


@hydra.main(version_base=None, config_path="core/configs", config_name="modal")
def main(cfg: DictConfig) -> None:
    """Hydra entry point for running the relay locally with an explicit profile."""
    _configure_logging()
    container = OmegaConf.to_container(cfg, resolve=True)
    if not isinstance(container, dict):
        raise TypeError("Hydra did not produce a relay config mapping")
    configure_web_app(build_relay_config({str(k): v for k, v in container.items()}))
    host = os.environ.get("CHATRELAY_HOST", "0.0.0.0")
    port = int(os.environ.get("CHATRELAY_PORT", "8080"))
    uvicorn.run(web_app, host=host, port=port)


if __name__ == "__main__":
    main()
