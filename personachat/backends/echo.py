"""
Echo backend: offline stand-in for a real provider.
Answers with the last user message so the UI and pipeline can be exercised
without an API key.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from personachat.backends.base import BaseBackend, BackendResponse


class EchoBackend(BaseBackend):

    def __init__(self, name: str = "echo", model: str = "echo-v1", delay: float = 0.0, **_):
        super().__init__(name, model=model)
        self.delay = delay

    @staticmethod
    def _reply(messages: list[dict]) -> str:
        for msg in reversed(messages):
            if msg.get("role") == "user":
                return f"Echo: {msg.get('content', '')}"
        return "Echo: (no user message)"

    async def complete(self, messages: list[dict]) -> BackendResponse:
        if self.delay:
            await asyncio.sleep(self.delay)
        return BackendResponse(
            ok=True,
            data={"choices": [{"message": {"role": "assistant", "content": self._reply(messages)}}]},
            backend_name=self.name,
        )

    async def stream(self, messages: list[dict]) -> AsyncIterator[str]:
        words = self._reply(messages).split(" ")
        for i, word in enumerate(words):
            if self.delay:
                await asyncio.sleep(self.delay)
            yield word if i == len(words) - 1 else word + " "

    async def health_check(self) -> bool:
        return True
