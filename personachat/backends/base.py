"""
Base backend abstraction.
Every completion provider implements this interface so the chat pipeline
can treat them uniformly.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response from the AI model."


@dataclass
class BackendResponse:
    """Standardized response from any backend."""
    ok: bool
    status_code: int = 200
    data: dict = field(default_factory=dict)
    backend_name: str = ""
    latency_ms: float = 0.0
    error: str = ""

    @property
    def content(self) -> str:
        """Extract assistant content from response data."""
        choices = self.data.get("choices", [])
        if choices:
            return (choices[0].get("message") or {}).get("content") or ""
        return ""


class BaseBackend(abc.ABC):
    """
    Abstract base for completion providers.

    complete() never raises for provider failures; it reports them through
    BackendResponse.ok / error. stream() raises, because by the time it fails
    the caller has usually already started answering.
    """

    def __init__(self, name: str, model: str = "", timeout: float = 60, temperature: float = 0.7):
        self.name = name
        self.model = model
        self.timeout = timeout
        self.temperature = temperature

    @abc.abstractmethod
    async def complete(self, messages: list[dict]) -> BackendResponse:
        """Run a single chat completion over the full message list."""
        ...

    @abc.abstractmethod
    def stream(self, messages: list[dict]) -> AsyncIterator[str]:
        """
        Yield assistant text fragments in generation order.
        The iterator is finite and cannot be restarted; closing it early
        releases the upstream connection.
        """
        ...

    @abc.abstractmethod
    async def health_check(self) -> bool:
        """Check if this backend is reachable and responsive."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} model={self.model!r}>"
