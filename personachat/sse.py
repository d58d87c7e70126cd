"""
Server-sent event encoding for streamed chat replies.

Frames:
    data: {"chunk": "<text>", "id": "<response id>"}\n\n   one per fragment
    data: [DONE]\n\n                                       on success
    data: {"error": "Streaming failed"}\n\n                on provider failure

Exactly one terminal frame ([DONE] or error) is emitted per stream, and
nothing follows it.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Callable

logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"
STREAM_FAILED = "Streaming failed"


def frame(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def encode_stream(
    fragments: AsyncIterator[str],
    response_id: str,
    on_complete: Callable[[str], None] | None = None,
) -> AsyncIterator[str]:
    """
    Relay provider fragments as SSE frames.

    on_complete receives the full assistant text once the provider finishes
    cleanly, before [DONE] is sent. It is not called on error or when the
    consumer stops iterating early; in that case the provider iterator is
    closed so its upstream connection is released.
    """
    parts: list[str] = []
    try:
        async for fragment in fragments:
            parts.append(fragment)
            yield frame({"chunk": fragment, "id": response_id})
    except Exception as e:
        logger.error("Streaming error (id=%s): %s", response_id, e)
        yield frame({"error": STREAM_FAILED})
        return
    finally:
        aclose = getattr(fragments, "aclose", None)
        if aclose is not None:
            await aclose()

    if on_complete is not None:
        on_complete("".join(parts))
    yield DONE_FRAME
