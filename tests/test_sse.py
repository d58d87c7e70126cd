"""
Tests for server-sent event encoding.
Run with: pytest tests/test_sse.py
"""

import json

import pytest

from personachat.sse import DONE_FRAME, encode_stream, frame


async def _fragments(*parts, error=None, closed=None):
    try:
        for p in parts:
            yield p
        if error is not None:
            raise error
    finally:
        if closed is not None:
            closed.append(True)


async def _collect(agen) -> list[str]:
    return [f async for f in agen]


def _payload(f: str) -> dict:
    assert f.startswith("data: ") and f.endswith("\n\n")
    return json.loads(f[len("data: "):-2])


def test_frame_format():
    assert frame({"chunk": "hi", "id": "x"}) == 'data: {"chunk": "hi", "id": "x"}\n\n'


def test_frame_keeps_unicode():
    assert "héllo" in frame({"chunk": "héllo"})


@pytest.mark.asyncio
async def test_chunks_then_done():
    """Two chunk frames sharing the id, then exactly one [DONE]."""
    frames = await _collect(encode_stream(_fragments("Hel", "lo"), "resp-1"))
    assert len(frames) == 3
    assert _payload(frames[0]) == {"chunk": "Hel", "id": "resp-1"}
    assert _payload(frames[1]) == {"chunk": "lo", "id": "resp-1"}
    assert frames[2] == DONE_FRAME == "data: [DONE]\n\n"


@pytest.mark.asyncio
async def test_empty_stream_still_terminates():
    frames = await _collect(encode_stream(_fragments(), "r"))
    assert frames == [DONE_FRAME]


@pytest.mark.asyncio
async def test_on_complete_gets_full_text_before_done():
    seen = []
    frames = []
    async for f in encode_stream(_fragments("Hel", "lo"), "r", on_complete=seen.append):
        frames.append(f)
        if f == DONE_FRAME:
            assert seen == ["Hello"]
    assert seen == ["Hello"]


@pytest.mark.asyncio
async def test_error_mid_stream_emits_single_error_frame():
    seen = []
    frames = await _collect(
        encode_stream(_fragments("Hel", error=RuntimeError("boom")), "r", on_complete=seen.append)
    )
    assert len(frames) == 2
    assert _payload(frames[0]) == {"chunk": "Hel", "id": "r"}
    assert _payload(frames[1]) == {"error": "Streaming failed"}
    assert DONE_FRAME not in frames
    assert seen == []


@pytest.mark.asyncio
async def test_error_before_first_chunk():
    frames = await _collect(encode_stream(_fragments(error=ConnectionError("refused")), "r"))
    assert [_payload(f) for f in frames] == [{"error": "Streaming failed"}]


@pytest.mark.asyncio
async def test_consumer_stopping_closes_upstream():
    """Stopping iteration early closes the provider iterator and skips persistence."""
    closed = []
    seen = []
    gen = encode_stream(_fragments("a", "b", "c", closed=closed), "r", on_complete=seen.append)

    first = await gen.__anext__()
    assert _payload(first)["chunk"] == "a"
    await gen.aclose()

    assert closed == [True]
    assert seen == []
