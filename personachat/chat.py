"""
ChatPipeline: the request handler behind POST /api/chat.

    rate limit → validate → assemble persona prompt → complete or stream
               → queue the turn for persistence → respond

Rate-limit and validation failures are answered before any provider call.
Provider failures are classified into configuration (500), quota (503) or
generic (500) errors. Persistence is queued after the reply is built and
never affects what the client receives.
"""

from __future__ import annotations

import json
import logging
from uuid import uuid4

from fastapi import Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from personachat.backends.base import BaseBackend, NO_RESPONSE
from personachat.errors import (
    ChatError,
    RateLimitExceeded,
    UpstreamError,
    ValidationError,
    classify_upstream_error,
)
from personachat.identity import BodyIdentity, IdentityProvider
from personachat.persistence import PersistenceQueue
from personachat.personas import DEFAULT_MODE, assemble
from personachat.rate_limit import RateLimiter, RateLimitResult, client_key_from_headers
from personachat.sse import encode_stream
from personachat.storage.models import ConversationTurn
from personachat.validation import MAX_TOTAL_CHARS, validate

logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class ChatPipeline:
    """Composes limiter, validator, prompt assembly, provider and persistence."""

    def __init__(
        self,
        backend: BaseBackend,
        limiter: RateLimiter,
        persistence: PersistenceQueue | None = None,
        identity: IdentityProvider | None = None,
        default_mode: str = DEFAULT_MODE,
        max_total_chars: int = MAX_TOTAL_CHARS,
    ):
        self.backend = backend
        self.limiter = limiter
        self.persistence = persistence
        self.identity = identity or BodyIdentity()
        self.default_mode = default_mode
        self.max_total_chars = max_total_chars

    @classmethod
    def from_config(cls, cfg: dict, **collaborators) -> "ChatPipeline":
        chat_cfg = cfg.get("chat", {})
        return cls(
            default_mode=chat_cfg.get("default_mode", DEFAULT_MODE),
            max_total_chars=int(chat_cfg.get("max_total_chars", MAX_TOTAL_CHARS)),
            **collaborators,
        )

    async def handle(self, request: Request) -> Response:
        client_key = client_key_from_headers(request.headers)
        rl = self.limiter.check(client_key)
        if not rl.allowed:
            logger.info("Rate limit exceeded for %s", client_key)
            err = RateLimitExceeded(rl)
            return JSONResponse(err.to_dict(), status_code=err.status_code, headers=rl.headers())

        try:
            body = await self._read_body(request)
            messages = body.get("messages")
            mode = body.get("mode", self.default_mode)

            result = validate(messages, mode, self.max_total_chars)
            if not result:
                raise ValidationError(result.reason)

            user_id = await self.identity.resolve(request, body.get("userId"))
            full_messages = assemble(mode, messages)
            # The last message in the request is the one being answered.
            user_content = messages[-1]["content"]

            if body.get("stream") is True:
                return self._stream(full_messages, user_content, mode, user_id, rl)
            return await self._complete(full_messages, user_content, mode, user_id, rl)

        except ChatError as e:
            if isinstance(e, UpstreamError):
                logger.error("Chat upstream error (%s): %s", type(e).__name__, e.detail)
            return JSONResponse(e.to_dict(), status_code=e.status_code)
        except Exception:
            logger.exception("Chat API error")
            err = ChatError()
            return JSONResponse(err.to_dict(), status_code=err.status_code)

    @staticmethod
    async def _read_body(request: Request) -> dict:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Invalid JSON body.")
        if not isinstance(body, dict):
            raise ValidationError("Invalid JSON body.")
        return body

    async def _complete(
        self,
        full_messages: list[dict],
        user_content: str,
        mode: str,
        user_id: str | None,
        rl: RateLimitResult,
    ) -> JSONResponse:
        resp = await self.backend.complete(full_messages)
        if not resp.ok:
            raise classify_upstream_error(resp.error, resp.status_code)

        reply = {
            "role": "assistant",
            "content": resp.content or NO_RESPONSE,
            "id": uuid4().hex,
        }
        logger.debug("Completion from %s in %.0fms", resp.backend_name, resp.latency_ms)

        if user_id:
            self._persist(ConversationTurn(
                user_id=user_id,
                mode=mode,
                user_content=user_content,
                assistant_content=reply["content"],
                assistant_id=reply["id"],
            ))

        return JSONResponse(
            {
                "reply": reply,
                "rateLimit": {"remaining": rl.remaining, "reset": rl.reset_ms},
            },
            headers=rl.headers(),
        )

    def _stream(
        self,
        full_messages: list[dict],
        user_content: str,
        mode: str,
        user_id: str | None,
        rl: RateLimitResult,
    ) -> StreamingResponse:
        response_id = uuid4().hex

        def on_complete(content: str):
            if user_id and content:
                self._persist(ConversationTurn(
                    user_id=user_id,
                    mode=mode,
                    user_content=user_content,
                    assistant_content=content,
                    assistant_id=response_id,
                ))

        return StreamingResponse(
            encode_stream(self.backend.stream(full_messages), response_id, on_complete),
            media_type="text/event-stream",
            headers={**STREAM_HEADERS, **rl.headers()},
        )

    def _persist(self, turn: ConversationTurn):
        if self.persistence is None:
            return
        self.persistence.enqueue(turn)
