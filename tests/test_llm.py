"""
Unit tests for the LLM module.
Tests LLMMessage, LLMResponse, providers, and factory.
"""

import pytest
from unittest.mock import AsyncMock, patch, MagicMock

from careerchat.llm.base import LLMMessage, LLMResponse
from careerchat.llm.gemini_provider import GeminiProvider
from careerchat.llm.openai_provider import OpenAIProvider
from careerchat.llm.factory import create_llm_provider


def _mock_client(mock_client, response):
    mock_instance = AsyncMock()
    mock_instance.post.return_value = response
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=False)
    mock_client.return_value = mock_instance
    return mock_instance


class _FakeStreamResponse:
    """Stands in for the response of ``client.stream(...)``."""

    def __init__(self, lines):
        self._lines = lines

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def raise_for_status(self):
        return None

    async def aiter_text(self):
        body = "".join(f"{line}\n" for line in self._lines)
        # Arbitrary chunk boundaries, as on the wire
        for start in range(0, len(body), 7):
            yield body[start:start + 7]


def _mock_stream_client(mock_client, lines):
    mock_instance = MagicMock()
    mock_instance.stream = MagicMock(return_value=_FakeStreamResponse(lines))
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=False)
    mock_client.return_value = mock_instance
    return mock_instance


class TestLLMMessage:
    """Tests for LLMMessage dataclass."""

    def test_text_message(self):
        msg = LLMMessage.text("user", "Hello")
        assert msg.role == "user"
        assert msg.content == "Hello"

    def test_system_message(self):
        msg = LLMMessage.text("system", "You are a career counselor")
        assert msg.role == "system"


class TestLLMResponse:
    """Tests for LLMResponse dataclass."""

    def test_basic_response(self):
        resp = LLMResponse(content="Hello!", model="gemini-2.5-flash")
        assert resp.content == "Hello!"
        assert resp.usage == {}
        assert resp.raw is None


class TestGeminiProvider:
    """Tests for the Gemini provider."""

    def test_init_defaults(self):
        provider = GeminiProvider(api_key="test-key")
        assert provider.model == "gemini-2.5-flash"
        assert provider.base_url == "https://generativelanguage.googleapis.com/v1beta"

    def test_headers(self):
        provider = GeminiProvider(api_key="g-key")
        assert provider._get_headers()["x-goog-api-key"] == "g-key"

    def test_format_contents_splits_system(self):
        provider = GeminiProvider(api_key="test")
        system, contents = provider._format_contents([
            LLMMessage.text("system", "be helpful"),
            LLMMessage.text("user", "hi"),
            LLMMessage.text("assistant", "hello"),
        ])
        assert system == {"parts": [{"text": "be helpful"}]}
        assert [c["role"] for c in contents] == ["user", "model"]
        assert contents[1]["parts"] == [{"text": "hello"}]

    def test_build_payload_without_system(self):
        provider = GeminiProvider(api_key="test")
        payload = provider._build_payload([LLMMessage.text("user", "hi")], 0.2, 100)
        assert "systemInstruction" not in payload
        assert payload["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 100}

    @pytest.mark.asyncio
    async def test_chat_completion_success(self):
        provider = GeminiProvider(api_key="test-key")
        mock_response = MagicMock()
        mock_response.json.return_value = {
            "candidates": [{"content": {"parts": [{"text": "Try "}, {"text": "UX design."}]}}],
            "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 4, "totalTokenCount": 16},
            "modelVersion": "gemini-2.5-flash",
        }
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient") as mock_client:
            mock_instance = _mock_client(mock_client, mock_response)

            result = await provider.chat_completion([LLMMessage.text("user", "Hello")])

            assert result.content == "Try UX design."
            assert result.usage["total_tokens"] == 16
            url = mock_instance.post.call_args.args[0]
            assert url.endswith("/models/gemini-2.5-flash:generateContent")

    @pytest.mark.asyncio
    async def test_chat_completion_no_candidates(self):
        provider = GeminiProvider(api_key="test-key")
        mock_response = MagicMock()
        mock_response.json.return_value = {"candidates": []}
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, mock_response)
            result = await provider.chat_completion([LLMMessage.text("user", "Hello")])
            assert result.content == ""

    @pytest.mark.asyncio
    async def test_chat_completion_http_error_propagates(self):
        provider = GeminiProvider(api_key="test-key")
        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock(side_effect=RuntimeError("503"))

        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, mock_response)
            with pytest.raises(RuntimeError):
                await provider.chat_completion([LLMMessage.text("user", "Hello")])

    @pytest.mark.asyncio
    async def test_stream_yields_text_chunks(self):
        provider = GeminiProvider(api_key="test-key")
        lines = [
            'data: {"candidates": [{"content": {"parts": [{"text": "Hel"}]}}]}',
            "",
            'data: {"candidates": [{"content": {"parts": [{"text": "lo"}]}}],'
            ' "usageMetadata": {"totalTokenCount": 3}}',
            "",
            "data: not-json",
        ]

        with patch("httpx.AsyncClient") as mock_client:
            mock_instance = _mock_stream_client(mock_client, lines)
            chunks = [c async for c in provider.chat_completion_stream([LLMMessage.text("user", "Hi")])]

        assert chunks == ["Hel", "lo"]
        assert mock_instance.stream.call_args.kwargs["params"] == {"alt": "sse"}


class TestOpenAIProvider:
    """Tests for OpenAI-compatible provider."""

    def test_init_defaults(self):
        provider = OpenAIProvider(api_key="test-key")
        assert provider.api_key == "test-key"
        assert provider.model == "gpt-4o"
        assert provider.base_url == "https://api.openai.com/v1"

    def test_format_messages(self):
        provider = OpenAIProvider(api_key="test")
        formatted = provider._format_messages([
            LLMMessage.text("system", "sys prompt"),
            LLMMessage.text("user", "hello")
        ])
        assert formatted == [
            {"role": "system", "content": "sys prompt"},
            {"role": "user", "content": "hello"},
        ]

    def test_headers(self):
        provider = OpenAIProvider(api_key="sk-test123")
        headers = provider._get_headers()
        assert headers["Authorization"] == "Bearer sk-test123"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_chat_completion_success(self):
        provider = OpenAIProvider(api_key="test-key")
        mock_response = MagicMock()
        mock_response.json.return_value = {
            "choices": [{"message": {"content": "Test response"}}],
            "model": "gpt-4o",
            "usage": {"prompt_tokens": 10, "completion_tokens": 5}
        }
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, mock_response)

            result = await provider.chat_completion([LLMMessage.text("user", "Hello")])

            assert result.content == "Test response"
            assert result.model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_stream_stops_at_done(self):
        provider = OpenAIProvider(api_key="test-key")
        lines = [
            'data: {"choices": [{"delta": {"content": "A"}}]}',
            'data: {"choices": [{"delta": {}}]}',
            'data: {"choices": [{"delta": {"content": "B"}}]}',
            "data: [DONE]",
            'data: {"choices": [{"delta": {"content": "ignored"}}]}',
        ]

        with patch("httpx.AsyncClient") as mock_client:
            _mock_stream_client(mock_client, lines)
            chunks = [c async for c in provider.chat_completion_stream([LLMMessage.text("user", "Hi")])]

        assert chunks == ["A", "B"]

    @pytest.mark.asyncio
    async def test_stream_keeps_raw_unicode_line_separators(self):
        provider = OpenAIProvider(api_key="test-key")
        lines = [
            'data: {"choices": [{"delta": {"content": "one\u2028two"}}]}',
            'data: {"choices": [{"delta": {"content": "\x85three"}}]}',
            "data: [DONE]",
        ]

        with patch("httpx.AsyncClient") as mock_client:
            _mock_stream_client(mock_client, lines)
            chunks = [c async for c in provider.chat_completion_stream([LLMMessage.text("user", "Hi")])]

        assert chunks == ["one\u2028two", "\x85three"]


class TestLLMFactory:
    """Tests for LLM provider factory."""

    def test_create_gemini_provider(self):
        provider = create_llm_provider(provider="gemini", api_key="test-key")
        assert isinstance(provider, GeminiProvider)

    def test_create_openai_provider(self):
        provider = create_llm_provider(provider="openai", api_key="test-key", model="gpt-4o-mini")
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o-mini"

    def test_no_api_key_returns_none(self):
        assert create_llm_provider(provider="gemini", api_key="") is None

    def test_unsupported_provider_raises(self):
        with pytest.raises(ValueError, match="Unsupported"):
            create_llm_provider(provider="unsupported", api_key="key")

    def test_custom_base_url_and_timeout(self):
        provider = create_llm_provider(
            provider="openai",
            api_key="key",
            base_url="https://custom.api.com/v1/",
            timeout=5.0,
        )
        assert provider.base_url == "https://custom.api.com/v1"
        assert provider.timeout == 5.0
