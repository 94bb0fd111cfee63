"""
Unit tests for the HTTP gateway client, run against httpx.MockTransport.
"""

import json
import pytest
import httpx

from careerchat.client import (
    GatewayClient,
    GatewayError,
    NotFoundError,
    StreamError,
    UnauthorizedError,
    ValidationError,
)
from careerchat.core.chat_service import encode_terminal_signal

from conftest import make_exchange, make_message


def _gateway(handler, token="tok"):
    return GatewayClient("http://api.test", token=token, transport=httpx.MockTransport(handler))


def _sse(*fragments, error=None):
    body = "".join(f"data: {json.dumps(f)}\n\n" for f in fragments)
    if error:
        body += f"event: error\ndata: {json.dumps(error)}\n\n"
    return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})


class TestRequests:
    """Plain JSON endpoints."""

    @pytest.mark.asyncio
    async def test_bearer_header_and_page_parsing(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            seen["params"] = dict(request.url.params)
            message = make_message("m1", "hi").to_wire()
            return httpx.Response(200, json={"items": [message], "nextCursor": None, "hasNextPage": False})

        async with _gateway(handler) as gateway:
            page = await gateway.list_messages("s1", limit=5)

        assert seen["auth"] == "Bearer tok"
        assert seen["params"] == {"limit": "5"}
        assert page.items[0].id == "m1"
        assert page.has_next_page is False

    @pytest.mark.asyncio
    async def test_login_stores_token(self):
        def handler(request):
            if request.url.path == "/auth/login":
                return httpx.Response(200, json={"accessToken": "new-token", "tokenType": "bearer"})
            return httpx.Response(200, json={"items": [], "nextCursor": None, "hasNextPage": False})

        async with _gateway(handler, token=None) as gateway:
            assert await gateway.login("a@careerchat.dev", "password123") == "new-token"
            assert gateway.token == "new-token"

    @pytest.mark.asyncio
    async def test_send_message(self):
        result = make_exchange("q", "a")

        def handler(request):
            assert json.loads(request.content) == {"content": "q"}
            return httpx.Response(200, json=result.to_wire())

        async with _gateway(handler) as gateway:
            response = await gateway.send_message("s1", "q")
        assert response.ai_message.id == "a1"

    @pytest.mark.asyncio
    async def test_search_passes_query(self):
        def handler(request):
            assert request.url.path == "/chat/sessions/search"
            assert request.url.params["query"] == "rust"
            return httpx.Response(200, json={"items": [], "nextCursor": None, "hasNextPage": False})

        async with _gateway(handler) as gateway:
            page = await gateway.search_sessions("rust")
        assert page.items == []


class TestErrorMapping:
    """Status codes map to client errors."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, error_class", [
        (401, UnauthorizedError),
        (404, NotFoundError),
        (422, ValidationError),
        (500, GatewayError),
        (503, GatewayError),
    ])
    async def test_status_mapping(self, status, error_class):
        def handler(request):
            return httpx.Response(status, json={"detail": "nope"})

        async with _gateway(handler) as gateway:
            with pytest.raises(error_class) as exc_info:
                await gateway.delete_session("s1")
        assert exc_info.value.status_code == status
        assert exc_info.value.message == "nope"

    @pytest.mark.asyncio
    async def test_validation_detail_list(self):
        def handler(request):
            return httpx.Response(422, json={"detail": [{"msg": "String should have at least 1 character"}]})

        async with _gateway(handler) as gateway:
            with pytest.raises(ValidationError, match="at least 1 character"):
                await gateway.create_session("")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        async with _gateway(handler) as gateway:
            with pytest.raises(GatewayError):
                await gateway.list_sessions()


class TestStreaming:
    """SSE parsing."""

    @pytest.mark.asyncio
    async def test_yields_decoded_fragments_and_terminal(self):
        terminal = encode_terminal_signal(make_exchange("q", "Hi there"))

        def handler(request):
            assert request.url.path == "/chat/sessions/s1/messages/stream"
            return _sse("Hi", " there", terminal)

        async with _gateway(handler) as gateway:
            fragments = [f async for f in gateway.send_message_stream("s1", "q")]

        assert fragments == ["Hi", " there", terminal]

    @pytest.mark.asyncio
    async def test_fragment_with_newline_survives(self):
        def handler(request):
            return _sse("line one\nline two")

        async with _gateway(handler) as gateway:
            fragments = [f async for f in gateway.send_message_stream("s1", "q")]
        assert fragments == ["line one\nline two"]

    @pytest.mark.asyncio
    async def test_escaped_line_separators_survive(self):
        def handler(request):
            return _sse("Step one\u2028", "Step\x85two")

        async with _gateway(handler) as gateway:
            fragments = [f async for f in gateway.send_message_stream("s1", "q")]
        assert fragments == ["Step one\u2028", "Step\x85two"]

    @pytest.mark.asyncio
    async def test_undecodable_event_fails_the_stream(self):
        def handler(request):
            body = 'data: "ok"\n\ndata: "cut in\n\n'
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        received = []
        async with _gateway(handler) as gateway:
            with pytest.raises(StreamError) as exc_info:
                async for fragment in gateway.send_message_stream("s1", "q"):
                    received.append(fragment)

        assert received == ["ok"]
        assert exc_info.value.code == "MALFORMED_EVENT"

    @pytest.mark.asyncio
    async def test_error_event_raises(self):
        def handler(request):
            return _sse("partial", error={"code": "INTERNAL_SERVER_ERROR",
                                          "message": "AI service temporarily unavailable. Please try again."})

        received = []
        async with _gateway(handler) as gateway:
            with pytest.raises(StreamError) as exc_info:
                async for fragment in gateway.send_message_stream("s1", "q"):
                    received.append(fragment)

        assert received == ["partial"]
        assert exc_info.value.code == "INTERNAL_SERVER_ERROR"
        assert "temporarily unavailable" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_not_found_before_stream(self):
        def handler(request):
            return httpx.Response(404, json={"detail": "Chat session not found or deleted"})

        async with _gateway(handler) as gateway:
            with pytest.raises(NotFoundError):
                async for _ in gateway.send_message_stream("missing", "q"):
                    pass
