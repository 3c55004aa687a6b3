"""Model provider abstraction.

Factory function to build the provider client for a relay config.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from chatrelay.core.config import RelayConfig

    from .base import ProviderClient


def get_provider(
    cfg: RelayConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderClient:
    """Return the streaming provider client for ``cfg``.

    Every supported profile speaks the OpenAI chat completions protocol;
    ``provider_name`` only labels the backend in logs and errors.
    """
    from .openai_compatible import OpenAICompatibleProvider

    return OpenAICompatibleProvider(cfg, transport=transport)
