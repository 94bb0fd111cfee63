"""
Career Counselor Agent - turns a conversation into a counselor reply.
"""

import logging
from datetime import datetime
from typing import AsyncGenerator, List, Optional, Sequence

from ..core.exceptions import GenerationError
from ..llm.base import LLMProvider, LLMMessage
from ..models import Message, MessageRole
from .prompts import SYSTEM_PROMPT, FALLBACK_REPLY

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 50000

LLM_ROLES = {
    MessageRole.USER: "user",
    MessageRole.ASSISTANT: "assistant",
}


class CareerCounselorAgent:
    """
    Generates career-counseling replies, one-shot or streamed.

    Only the most recent turns that fit in ``max_chars`` are sent to the
    model, so long sessions stay within the provider's context budget.
    """

    def __init__(
        self,
        llm_provider: Optional[LLMProvider] = None,
        system_prompt: str = SYSTEM_PROMPT,
        max_chars: int = DEFAULT_MAX_CHARS,
        temperature: float = 0.7,
    ):
        self.name = "CareerCounselor"
        self.system_prompt = system_prompt
        self.max_chars = max_chars
        self.temperature = temperature
        self.created_at = datetime.now()
        self._llm_provider = llm_provider

    def set_llm_provider(self, provider: Optional[LLMProvider]) -> None:
        self._llm_provider = provider

    @property
    def is_configured(self) -> bool:
        return self._llm_provider is not None

    def build_context(self, messages: Sequence[Message]) -> List[LLMMessage]:
        """
        Build the LLM conversation from chronological messages.

        Walks backwards from the newest message and stops before the total
        content length exceeds ``max_chars``. The newest message is always
        kept.
        """
        window: List[LLMMessage] = []
        used = 0
        for msg in reversed(messages):
            used += len(msg.content)
            if used > self.max_chars and window:
                break
            window.append(LLMMessage.text(LLM_ROLES[msg.role], msg.content))
        window.reverse()
        return [LLMMessage.text("system", self.system_prompt)] + window

    def _require_provider(self) -> LLMProvider:
        if self._llm_provider is None:
            logger.error(f"Agent {self.name} has no LLM provider; set LLM_API_KEY")
            raise GenerationError(details={"reason": "llm_not_configured"})
        return self._llm_provider

    async def generate_reply(self, messages: Sequence[Message]) -> str:
        """
        Produce a complete reply for the conversation.

        Raises:
            GenerationError: If the provider is missing or fails
        """
        provider = self._require_provider()
        llm_messages = self.build_context(messages)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Agent {self.name} calling LLM: {len(llm_messages)} messages")

        try:
            response = await provider.chat_completion(llm_messages, temperature=self.temperature)
        except Exception as e:
            logger.error(
                f"Agent {self.name} LLM call failed: {e}",
                exc_info=True,
                extra={"extra_fields": {"agent": self.name, "error": str(e)}}
            )
            raise GenerationError(details={"error": str(e)}) from e

        return response.content.strip() or FALLBACK_REPLY

    async def generate_reply_stream(self, messages: Sequence[Message]) -> AsyncGenerator[str, None]:
        """
        Yield reply fragments as the provider produces them.

        Raises:
            GenerationError: If the provider is missing or fails mid-stream
        """
        provider = self._require_provider()
        llm_messages = self.build_context(messages)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Agent {self.name} calling LLM stream: {len(llm_messages)} messages")

        length = 0
        try:
            async for fragment in provider.chat_completion_stream(
                llm_messages, temperature=self.temperature
            ):
                if fragment:
                    length += len(fragment)
                    yield fragment
        except Exception as e:
            logger.error(
                f"Agent {self.name} LLM stream failed: {e}",
                exc_info=True,
                extra={"extra_fields": {"agent": self.name, "error": str(e)}}
            )
            raise GenerationError(details={"error": str(e)}) from e

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Agent {self.name} completed LLM stream: length={length} chars")
