"""
Unit tests for the event-stream line reader.
"""

import pytest
import httpx

from careerchat.utils.sse import aiter_sse_lines


class _ChunkedStream(httpx.AsyncByteStream):
    def __init__(self, chunks):
        self._chunks = chunks

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk


async def _lines(*chunks):
    response = httpx.Response(200, stream=_ChunkedStream([c.encode("utf-8") for c in chunks]))
    return [line async for line in aiter_sse_lines(response)]


class TestSSELines:
    """Splitting a streamed body into lines."""

    @pytest.mark.asyncio
    async def test_lines_across_chunk_boundaries(self):
        assert await _lines("data: \"a", "b\"\n\nda", "ta: \"c\"\n") == ['data: "ab"', "", 'data: "c"']

    @pytest.mark.asyncio
    async def test_crlf_terminators(self):
        assert await _lines("event: error\r\ndata: {}\r\n\r\n") == ["event: error", "data: {}", ""]

    @pytest.mark.asyncio
    async def test_unicode_separators_stay_inside_line(self):
        lines = await _lines('data: "one\u2028two\u2029three\x85four"\n')
        assert lines == ['data: "one\u2028two\u2029three\x85four"']

    @pytest.mark.asyncio
    async def test_unterminated_last_line(self):
        assert await _lines("data: \"x\"\n", "data: \"y\"") == ['data: "x"', 'data: "y"']
