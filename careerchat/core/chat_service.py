"""
Chat Service - runs message exchanges between users and the counselor.

An exchange loads the recent conversation, asks the reply generator for a
reply, then persists the user message and the reply and bumps the session's
``updated_at``. Nothing is persisted when generation fails, so a failed
exchange can simply be retried.
"""

import json
import logging
from typing import AsyncGenerator, List, Optional

from ..agents.career_agent import CareerCounselorAgent
from ..agents.prompts import FALLBACK_REPLY
from ..models import ChatSession, Message, MessageRole, Page, SendMessageResponse
from ..storage.chat_storage import ChatStorage
from .exceptions import SessionNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_MESSAGES = 20


def encode_terminal_signal(result: SendMessageResponse) -> str:
    """
    Render the stream's final fragment.

    Compact separators and ``done`` as the first key keep the literal
    ``{"done":true`` prefix that clients sniff for.
    """
    return json.dumps(
        {
            "done": True,
            "userMessage": result.user_message.to_wire(),
            "aiMessage": result.ai_message.to_wire(),
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )


class ChatService:
    """Session and message operations scoped to one authenticated user per call."""

    def __init__(
        self,
        chat_storage: ChatStorage,
        agent: CareerCounselorAgent,
        context_messages: int = DEFAULT_CONTEXT_MESSAGES,
    ):
        self.chat_storage = chat_storage
        self.agent = agent
        self.context_messages = context_messages

    async def require_session(self, user_id: str, session_id: str) -> ChatSession:
        """Return the live session owned by ``user_id`` or raise SessionNotFoundError."""
        session = await self.chat_storage.get_session(user_id, session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def list_sessions(self, user_id: str, cursor: Optional[str], limit: int) -> Page[ChatSession]:
        return await self.chat_storage.list_sessions(user_id, cursor=cursor, limit=limit)

    async def search_sessions(
        self,
        user_id: str,
        query: Optional[str],
        cursor: Optional[str],
        limit: int,
    ) -> Page[ChatSession]:
        return await self.chat_storage.list_sessions(user_id, cursor=cursor, limit=limit, query=query)

    async def create_session(self, user_id: str, title: str) -> ChatSession:
        return await self.chat_storage.create_session(user_id, title)

    async def get_messages(
        self,
        user_id: str,
        session_id: str,
        cursor: Optional[str],
        limit: int,
    ) -> Page[Message]:
        await self.require_session(user_id, session_id)
        return await self.chat_storage.list_messages(user_id, session_id, cursor=cursor, limit=limit)

    async def delete_session(self, user_id: str, session_id: str) -> None:
        if not await self.chat_storage.soft_delete(user_id, session_id):
            raise SessionNotFoundError(session_id)

    async def _build_conversation(self, user_id: str, session_id: str, content: str) -> List[Message]:
        """Recent history plus the not-yet-persisted user turn."""
        recent = await self.chat_storage.recent_messages(user_id, session_id, self.context_messages)
        pending = Message(id="pending", session_id=session_id, role=MessageRole.USER, content=content)
        return recent + [pending]

    async def _persist_exchange(
        self,
        user_id: str,
        session_id: str,
        content: str,
        reply: str,
    ) -> SendMessageResponse:
        user_message = await self.chat_storage.append_message(
            user_id, session_id, MessageRole.USER, content
        )
        ai_message = await self.chat_storage.append_message(
            user_id, session_id, MessageRole.ASSISTANT, reply
        )
        await self.chat_storage.touch_session(user_id, session_id)

        logger.info(
            "Message exchange persisted",
            extra={"extra_fields": {
                "user_id": user_id,
                "session_id": session_id,
                "user_message_id": user_message.id,
                "ai_message_id": ai_message.id,
                "reply_length": len(reply),
            }}
        )
        return SendMessageResponse(user_message=user_message, ai_message=ai_message)

    async def send_message(self, user_id: str, session_id: str, content: str) -> SendMessageResponse:
        """
        One-shot exchange.

        Raises:
            SessionNotFoundError: If the session is missing or deleted
            GenerationError: If the reply generator fails
        """
        await self.require_session(user_id, session_id)
        conversation = await self._build_conversation(user_id, session_id, content)
        reply = await self.agent.generate_reply(conversation)
        return await self._persist_exchange(user_id, session_id, content, reply)

    async def send_message_stream(
        self,
        user_id: str,
        session_id: str,
        content: str,
    ) -> AsyncGenerator[str, None]:
        """
        Streaming exchange.

        Yields each reply fragment as produced, then one terminal fragment
        (see ``encode_terminal_signal``) carrying the persisted records.

        Raises:
            SessionNotFoundError: If the session is missing or deleted
            GenerationError: If the reply generator fails
        """
        await self.require_session(user_id, session_id)
        conversation = await self._build_conversation(user_id, session_id, content)

        fragments: List[str] = []
        async for fragment in self.agent.generate_reply_stream(conversation):
            fragments.append(fragment)
            yield fragment

        if not fragments:
            fragments.append(FALLBACK_REPLY)
            yield FALLBACK_REPLY

        result = await self._persist_exchange(user_id, session_id, content, "".join(fragments))
        yield encode_terminal_signal(result)
