"""
OpenAI-compatible LLM Provider.
Works with any endpoint that implements ``/chat/completions`` (OpenAI itself,
Azure-style gateways, local servers).
"""

import httpx
import json
import time
from typing import Optional, List, Dict, Any, AsyncGenerator

from ..utils.sse import aiter_sse_lines
from .base import LLMProvider, LLMMessage, LLMResponse


class OpenAIProvider(LLMProvider):
    """Provider for the OpenAI chat completions API."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
        default_temperature: float = 0.7,
        default_max_tokens: int = 2048,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model, base_url.rstrip("/"), default_temperature,
                         default_max_tokens, timeout)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        return [{"role": m.role, "content": m.content} for m in messages]

    def _build_payload(self, messages: List[LLMMessage], temperature: Optional[float],
                       max_tokens: Optional[int], model: str, stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": self._format_messages(messages),
            "temperature": temperature if temperature is not None else self.default_temperature,
            "max_tokens": max_tokens or self.default_max_tokens,
        }
        if stream:
            payload["stream"] = True
            payload["stream_options"] = {"include_usage": True}
        return payload

    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Send request to the Chat Completions endpoint."""
        start_time = time.time()
        payload = self._build_payload(messages, temperature, max_tokens,
                                      kwargs.get("model", self.model), stream=False)
        self._log_request("call", payload["model"], payload["temperature"], messages)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(f"{self.base_url}/chat/completions", json=payload,
                                         headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()

            usage = data.get("usage") or {}
            self._log_completed("call", data.get("model", payload["model"]), usage,
                                (time.time() - start_time) * 1000)
            return LLMResponse(
                content=data["choices"][0]["message"].get("content") or "",
                model=data.get("model", payload["model"]),
                usage=usage,
                raw=data,
            )
        except Exception as e:
            self._log_failed("call", payload["model"], e, (time.time() - start_time) * 1000)
            raise

    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[str, None]:
        """Stream content deltas from the Chat Completions endpoint."""
        start_time = time.time()
        payload = self._build_payload(messages, temperature, max_tokens,
                                      kwargs.get("model", self.model), stream=True)
        self._log_request("stream", payload["model"], payload["temperature"], messages)

        content_length = 0
        usage: Dict[str, Any] = {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream('POST', f"{self.base_url}/chat/completions",
                                         json=payload, headers=self._get_headers()) as response:
                    response.raise_for_status()

                    async for line in aiter_sse_lines(response):
                        # SSE format: "data: {json}" or "data: [DONE]"
                        if not line.startswith("data:"):
                            continue
                        data_str = line[5:].strip()
                        if data_str == "[DONE]":
                            break
                        try:
                            chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue

                        choices = chunk.get("choices") or []
                        if choices:
                            content = (choices[0].get("delta") or {}).get("content")
                            if content:
                                content_length += len(content)
                                yield content
                        if chunk.get("usage"):
                            usage = chunk["usage"]

            self._log_completed("stream", payload["model"], usage, (time.time() - start_time) * 1000,
                                content_length=content_length)
        except Exception as e:
            self._log_failed("stream", payload["model"], e, (time.time() - start_time) * 1000)
            raise
