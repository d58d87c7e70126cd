"""
OpenAI-compatible completion backend.

Talks to anything that implements /v1/chat/completions: the hosted OpenAI
API, OpenRouter, vLLM, llama.cpp server, Ollama, ...
"""

from __future__ import annotations

import json
import logging
import time
from typing import AsyncIterator

import httpx

from personachat.backends.base import BaseBackend, BackendResponse
from personachat.errors import UpstreamStreamingError

logger = logging.getLogger(__name__)


def parse_sse_delta(line: str) -> str:
    """
    Pull the content delta out of one upstream SSE line.
    Returns "" for keep-alives, [DONE], non-data lines and unparsable payloads.
    """
    if not line.startswith("data:"):
        return ""
    data_str = line[5:].strip()
    if not data_str or data_str == "[DONE]":
        return ""
    try:
        chunk = json.loads(data_str)
        return (
            chunk.get("choices", [{}])[0]
            .get("delta", {})
            .get("content")
            or ""
        )
    except (json.JSONDecodeError, IndexError, AttributeError):
        return ""


class OpenAICompatibleBackend(BaseBackend):
    """Backend for OpenAI-compatible endpoints."""

    def __init__(
        self,
        name: str,
        url: str,
        model: str = "gpt-4o-mini",
        api_key: str = "",
        timeout: float = 60,
        temperature: float = 0.7,
    ):
        super().__init__(name, model=model, timeout=timeout, temperature=temperature)
        self.url = url.rstrip("/")
        self.api_key = api_key

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _body(self, messages: list[dict], stream: bool) -> dict:
        body = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if stream:
            body["stream"] = True
        return body

    async def complete(self, messages: list[dict]) -> BackendResponse:
        """Non-streaming completion."""
        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.url}/v1/chat/completions",
                    json=self._body(messages, stream=False),
                    headers=self._headers(),
                )
                latency = (time.monotonic() - t0) * 1000

                if resp.status_code >= 400:
                    return BackendResponse(
                        ok=False,
                        status_code=resp.status_code,
                        backend_name=self.name,
                        latency_ms=latency,
                        error=f"HTTP {resp.status_code}: {resp.text[:200]}",
                    )

                return BackendResponse(
                    ok=True,
                    status_code=resp.status_code,
                    data=resp.json(),
                    backend_name=self.name,
                    latency_ms=latency,
                )
        except httpx.TimeoutException:
            latency = (time.monotonic() - t0) * 1000
            logger.warning(
                "Backend '%s' timed out after %.0fms", self.name, latency
            )
            return BackendResponse(
                ok=False,
                backend_name=self.name,
                latency_ms=latency,
                error=f"Timeout after {self.timeout}s",
            )
        except Exception as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Backend '%s' failed: %s", self.name, e)
            return BackendResponse(
                ok=False,
                backend_name=self.name,
                latency_ms=latency,
                error=str(e),
            )

    async def stream(self, messages: list[dict]) -> AsyncIterator[str]:
        """Streaming completion, yielding content fragments."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    "POST",
                    f"{self.url}/v1/chat/completions",
                    json=self._body(messages, stream=True),
                    headers=self._headers(),
                ) as resp:
                    resp.raise_for_status()
                    async for line in resp.aiter_lines():
                        delta = parse_sse_delta(line)
                        if delta:
                            yield delta
        except httpx.TimeoutException as e:
            logger.warning("Backend '%s' stream timed out", self.name)
            raise UpstreamStreamingError(f"Timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning("Backend '%s' stream failed: %s", self.name, e)
            raise UpstreamStreamingError(str(e)) from e

    async def health_check(self) -> bool:
        """Check the endpoint is reachable."""
        try:
            async with httpx.AsyncClient(timeout=5) as client:
                resp = await client.get(
                    f"{self.url}/v1/models",
                    headers=self._headers(),
                )
                return resp.status_code == 200
        except Exception:
            return False
