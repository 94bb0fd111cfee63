"""
Line reader for Server-Sent Events bodies.

``httpx.Response.aiter_lines`` breaks on every Unicode line boundary,
including U+2028, U+2029 and U+0085, which may appear unescaped inside a
``data:`` JSON payload. SSE only ends lines at CR, LF or CRLF.
"""

from typing import AsyncIterator

import httpx


async def aiter_sse_lines(response: httpx.Response) -> AsyncIterator[str]:
    """Yield the lines of an event-stream body without their terminators."""
    buffer = ""
    async for text in response.aiter_text():
        buffer += text
        *lines, buffer = buffer.split("\n")
        for line in lines:
            yield line.rstrip("\r")
    if buffer:
        yield buffer.rstrip("\r")
