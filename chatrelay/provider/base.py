"""Abstract model provider interface and provider errors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chatrelay.core.types import ModelMessage, ProviderDelta


class ProviderError(Exception):
    """Base class for failures talking to the inference endpoint."""

    status_code = 502


class UpstreamError(ProviderError):
    """The endpoint answered with an error status or an unreadable stream."""

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


class UpstreamUnavailable(ProviderError):
    """The endpoint could not be reached or stopped responding."""

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out
        if timed_out:
            self.status_code = 504


class ProviderClient(ABC):
    """Abstract base for streaming chat providers."""

    name: str = "provider"

    @abstractmethod
    def stream_chat(self, messages: list[ModelMessage]) -> AsyncGenerator[ProviderDelta, None]:
        """Issue one streaming completion and yield deltas in arrival order.

        Raises ``ProviderError`` subclasses, before the first delta or
        mid-stream.
        """

    async def aclose(self) -> None:
        """Release pooled connections."""
