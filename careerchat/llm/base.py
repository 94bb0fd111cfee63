"""
LLM Provider Base - Abstract base for all LLM API providers.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, AsyncGenerator
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class LLMMessage:
    """A single role-tagged turn of a conversation."""
    role: str  # "system", "user", "assistant"
    content: str

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        """Create a text message."""
        return LLMMessage(role=role, content=text)


@dataclass
class LLMResponse:
    """Response from an LLM API call."""
    content: str
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None


class LLMProvider(ABC):
    """
    Abstract base class for LLM API providers.
    Every provider offers a one-shot and an incremental (streaming) call.
    """

    name = "base"

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 2048,
                 timeout: float = 120.0):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self.timeout = timeout

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation messages, oldest first
            temperature: Sampling temperature override
            max_tokens: Max tokens override
            **kwargs: Additional provider-specific parameters

        Returns:
            LLMResponse with the generated content
        """

    @abstractmethod
    def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[str, None]:
        """
        Stream chat completion text fragments in generation order.

        Yields:
            str: Text fragments from the LLM
        """

    def _log_request(self, kind: str, model: str, temperature: float,
                     messages: List[LLMMessage]) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        summary = f"{len(messages)} messages"
        if messages:
            summary += f", last: {messages[-1].content[:200]}"
        logger.debug(
            f"LLM API {kind} starting: provider={self.name}, model={model}, "
            f"temperature={temperature}, {summary}"
        )

    def _log_completed(self, kind: str, model: str, usage: Dict[str, Any],
                       duration_ms: float, **fields: Any) -> None:
        logger.info(
            f"LLM API {kind} completed",
            extra={"extra_fields": {
                "provider": self.name,
                "model": model,
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
                "total_tokens": usage.get("total_tokens", 0),
                "duration_ms": round(duration_ms, 2),
                **fields,
            }}
        )

    def _log_failed(self, kind: str, model: str, error: Exception, duration_ms: float) -> None:
        logger.error(
            f"LLM API {kind} failed: {error}",
            exc_info=True,
            extra={"extra_fields": {
                "provider": self.name,
                "model": model,
                "duration_ms": round(duration_ms, 2),
                "error": str(error),
            }}
        )
