"""
Chat Storage - Sessions and their message logs on top of StorageInterface.

Layout per user::

    chats/{user_id}/{session_id}.json    session record
    chats/{user_id}/{session_id}.jsonl   append-only message log, oldest first

Sessions are soft-deleted by stamping ``deleted_at``; the files stay.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, TypeVar

from pydantic import ValidationError

from ..models import ChatSession, Message, MessageRole, Page
from .interface import StorageInterface

logger = logging.getLogger(__name__)

T = TypeVar("T", Message, ChatSession)


def paginate(items: Sequence[T], cursor: Optional[str], limit: int) -> Page[T]:
    """
    Slice an already-sorted sequence into one page.

    The cursor is the id of the last item of the previous page; the page
    starts strictly after it. An unknown cursor yields an empty page.
    """
    start = 0
    if cursor:
        ids = [item.id for item in items]
        if cursor not in ids:
            return Page(items=[], next_cursor=None, has_next_page=False)
        start = ids.index(cursor) + 1

    window = list(items[start:start + limit + 1])
    has_next_page = len(window) > limit
    page_items = window[:limit]
    return Page(
        items=page_items,
        next_cursor=page_items[-1].id if has_next_page and page_items else None,
        has_next_page=has_next_page,
    )


class ChatStorage:
    """Persists chat sessions and messages for all users."""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.chats_dir = "chats"
        # Read-modify-write of a session record happens under its lock
        self._locks: Dict[str, asyncio.Lock] = {}

    def _session_lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def _session_path(self, user_id: str, session_id: str) -> str:
        return f"{self.chats_dir}/{user_id}/{session_id}.json"

    def _messages_path(self, user_id: str, session_id: str) -> str:
        return f"{self.chats_dir}/{user_id}/{session_id}.jsonl"

    async def _save_session(self, session: ChatSession) -> None:
        record = session.model_dump(mode="json", by_alias=True, exclude={"message"})
        saved = await self.storage.save(
            self._session_path(session.user_id, session.id),
            json.dumps(record, indent=2, ensure_ascii=False)
        )
        if not saved:
            raise IOError(f"Failed to persist session {session.id}")

    async def _load_session(self, path: str) -> Optional[ChatSession]:
        content = await self.storage.load(path)
        if content is None:
            return None
        try:
            return ChatSession.model_validate_json(content)
        except ValidationError as e:
            logger.error(f"Skipping unreadable session file {path}: {e}")
            return None

    async def _load_messages(self, user_id: str, session_id: str) -> List[Message]:
        """All messages of a session, oldest first."""
        content = await self.storage.load(self._messages_path(user_id, session_id))
        if not content:
            return []
        messages = []
        # Records are newline-terminated; message text may hold U+2028 and friends
        for line in content.decode('utf-8').split("\n"):
            if line.strip():
                messages.append(Message.model_validate_json(line))
        return messages

    async def create_session(self, user_id: str, title: str) -> ChatSession:
        """Create a new, empty session owned by ``user_id``."""
        now = datetime.now(timezone.utc)
        session = ChatSession(
            id=str(uuid.uuid4()),
            title=title,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        await self._save_session(session)
        logger.info(
            "Chat session created",
            extra={"extra_fields": {"user_id": user_id, "session_id": session.id}}
        )
        return session

    async def get_session(self, user_id: str, session_id: str) -> Optional[ChatSession]:
        """Return the session if it exists, belongs to ``user_id`` and is not deleted."""
        session = await self._load_session(self._session_path(user_id, session_id))
        if session is None or session.user_id != user_id or session.deleted_at is not None:
            return None
        return session

    async def list_sessions(
        self,
        user_id: str,
        cursor: Optional[str] = None,
        limit: int = 10,
        query: Optional[str] = None,
    ) -> Page[ChatSession]:
        """
        List live sessions, most recently updated first.

        Args:
            user_id: Owner of the sessions
            cursor: Id of the last session already seen
            limit: Page size
            query: Optional case-insensitive title filter

        Returns:
            Page of sessions, each carrying its latest message as preview
        """
        needle = query.strip().lower() if query and query.strip() else None

        sessions: List[ChatSession] = []
        for path in await self.storage.list(f"{self.chats_dir}/{user_id}", pattern="*.json"):
            session = await self._load_session(path)
            if session is None or session.deleted_at is not None:
                continue
            if needle and needle not in session.title.lower():
                continue
            sessions.append(session)

        sessions.sort(key=lambda s: (s.updated_at, s.created_at, s.id), reverse=True)
        page = paginate(sessions, cursor, limit)

        for session in page.items:
            messages = await self._load_messages(user_id, session.id)
            session.message = messages[-1:]
        return page

    async def list_messages(
        self,
        user_id: str,
        session_id: str,
        cursor: Optional[str] = None,
        limit: int = 20,
    ) -> Page[Message]:
        """Page through a session's messages, newest first."""
        messages = await self._load_messages(user_id, session_id)
        messages.reverse()
        return paginate(messages, cursor, limit)

    async def recent_messages(self, user_id: str, session_id: str, count: int) -> List[Message]:
        """The ``count`` most recent messages in chronological order."""
        if count <= 0:
            return []
        messages = await self._load_messages(user_id, session_id)
        return messages[-count:]

    async def append_message(
        self,
        user_id: str,
        session_id: str,
        role: MessageRole,
        content: str,
    ) -> Message:
        """Persist a new message at the end of the session log."""
        message = Message(
            id=str(uuid.uuid4()),
            session_id=session_id,
            role=role,
            content=content,
        )
        line = json.dumps(message.to_wire(), ensure_ascii=False) + "\n"
        if not await self.storage.append(self._messages_path(user_id, session_id), line):
            raise IOError(f"Failed to persist message for session {session_id}")
        return message

    async def touch_session(
        self,
        user_id: str,
        session_id: str,
        when: Optional[datetime] = None,
    ) -> Optional[ChatSession]:
        """Refresh ``updated_at``; returns None if the session is gone."""
        async with self._session_lock(session_id):
            session = await self.get_session(user_id, session_id)
            if session is None:
                return None
            session.updated_at = when or datetime.now(timezone.utc)
            await self._save_session(session)
        return session

    async def soft_delete(self, user_id: str, session_id: str) -> bool:
        """Mark the session deleted. Returns False if it was missing or already deleted."""
        async with self._session_lock(session_id):
            session = await self.get_session(user_id, session_id)
            if session is None:
                return False
            session.deleted_at = datetime.now(timezone.utc)
            await self._save_session(session)
        logger.info(
            "Chat session deleted",
            extra={"extra_fields": {"user_id": user_id, "session_id": session_id}}
        )
        return True
