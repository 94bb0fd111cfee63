"""
Google Gemini LLM Provider.
Talks to the Generative Language REST API (``generateContent`` and
``streamGenerateContent`` with server-sent events).
"""

import httpx
import json
import time
from typing import Optional, List, Dict, Any, AsyncGenerator, Tuple

from ..utils.sse import aiter_sse_lines
from .base import LLMProvider, LLMMessage, LLMResponse

ROLE_MAP = {"user": "user", "assistant": "model"}


class GeminiProvider(LLMProvider):
    """Provider for Google Gemini models."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        default_temperature: float = 0.7,
        default_max_tokens: int = 2048,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model, base_url.rstrip("/"), default_temperature,
                         default_max_tokens, timeout)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def _format_contents(self, messages: List[LLMMessage]) -> Tuple[Optional[Dict[str, Any]], List[Dict[str, Any]]]:
        """Split system turns into ``systemInstruction`` and map the rest to Gemini roles."""
        system_parts = [{"text": m.content} for m in messages if m.role == "system"]
        contents = [
            {"role": ROLE_MAP.get(m.role, "user"), "parts": [{"text": m.content}]}
            for m in messages if m.role != "system"
        ]
        system_instruction = {"parts": system_parts} if system_parts else None
        return system_instruction, contents

    def _build_payload(self, messages: List[LLMMessage], temperature: Optional[float],
                       max_tokens: Optional[int]) -> Dict[str, Any]:
        system_instruction, contents = self._format_contents(messages)
        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature if temperature is not None else self.default_temperature,
                "maxOutputTokens": max_tokens or self.default_max_tokens,
            },
        }
        if system_instruction:
            payload["systemInstruction"] = system_instruction
        return payload

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    @staticmethod
    def _extract_usage(data: Dict[str, Any]) -> Dict[str, int]:
        meta = data.get("usageMetadata") or {}
        return {
            "prompt_tokens": meta.get("promptTokenCount", 0),
            "completion_tokens": meta.get("candidatesTokenCount", 0),
            "total_tokens": meta.get("totalTokenCount", 0),
        }

    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Send request to the ``generateContent`` endpoint."""
        start_time = time.time()
        model = kwargs.get("model", self.model)
        url = f"{self.base_url}/models/{model}:generateContent"
        payload = self._build_payload(messages, temperature, max_tokens)
        self._log_request("call", model, payload["generationConfig"]["temperature"], messages)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()

            usage = self._extract_usage(data)
            self._log_completed("call", data.get("modelVersion", model), usage,
                                (time.time() - start_time) * 1000)
            return LLMResponse(
                content=self._extract_text(data),
                model=data.get("modelVersion", model),
                usage=usage,
                raw=data,
            )
        except Exception as e:
            self._log_failed("call", model, e, (time.time() - start_time) * 1000)
            raise

    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[str, None]:
        """Stream text fragments from ``streamGenerateContent``."""
        start_time = time.time()
        model = kwargs.get("model", self.model)
        url = f"{self.base_url}/models/{model}:streamGenerateContent"
        payload = self._build_payload(messages, temperature, max_tokens)
        self._log_request("stream", model, payload["generationConfig"]["temperature"], messages)

        content_length = 0
        usage: Dict[str, int] = {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream('POST', url, params={"alt": "sse"}, json=payload,
                                         headers=self._get_headers()) as response:
                    response.raise_for_status()

                    async for line in aiter_sse_lines(response):
                        if not line.startswith("data:"):
                            continue
                        try:
                            chunk = json.loads(line[5:].strip())
                        except json.JSONDecodeError:
                            continue

                        text = self._extract_text(chunk)
                        if text:
                            content_length += len(text)
                            yield text
                        if chunk.get("usageMetadata"):
                            usage = self._extract_usage(chunk)

            self._log_completed("stream", model, usage, (time.time() - start_time) * 1000,
                                content_length=content_length)
        except Exception as e:
            self._log_failed("stream", model, e, (time.time() - start_time) * 1000)
            raise
