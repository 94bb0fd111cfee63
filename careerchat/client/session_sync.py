"""
Session List Synchronizer - keeps cached session listings in step with
completed exchanges and deletions.
"""

import logging
from typing import List, Optional

from ..models import ChatSession, Message
from .cache import CachePage, QueryCache, SESSIONS, sessions_key

logger = logging.getLogger(__name__)


def promote_session(sessions: List[ChatSession], session_id: str, ai_message: Message) -> List[ChatSession]:
    """
    Refresh the session's ``updated_at`` and preview, and move it to index 0.

    Returns the list unchanged when the session is not present. The others
    keep their relative order.
    """
    for index, session in enumerate(sessions):
        if session.id == session_id:
            updated = session.model_copy(update={
                "updated_at": ai_message.created_at,
                "message": [ai_message],
            })
            return [updated, *sessions[:index], *sessions[index + 1:]]
    return sessions


def without_session(sessions: List[ChatSession], session_id: str) -> List[ChatSession]:
    return [s for s in sessions if s.id != session_id]


class SessionListSynchronizer:
    """Loads session listings into the cache and patches them afterwards."""

    def __init__(self, cache: QueryCache, gateway, user_id: str, page_size: int = 10):
        self.cache = cache
        self.gateway = gateway
        self.user_id = user_id
        self.page_size = page_size

    def key(self, query: Optional[str] = None):
        return sessions_key(self.user_id, query)

    def sessions(self, query: Optional[str] = None) -> List[ChatSession]:
        return self.cache.items(self.key(query))

    async def _fetch(self, query: Optional[str], cursor: Optional[str]):
        if query:
            return await self.gateway.search_sessions(query=query, cursor=cursor, limit=self.page_size)
        return await self.gateway.list_sessions(cursor=cursor, limit=self.page_size)

    async def load(self, query: Optional[str] = None) -> None:
        """Fetch the first page of the default listing, or of a title search."""
        page = await self._fetch(query, None)
        self.cache.set_first_page(self.key(query), CachePage(
            items=list(page.items),
            next_cursor=page.next_cursor,
            has_next_page=page.has_next_page,
        ))

    async def load_more(self, query: Optional[str] = None) -> bool:
        """Append the next page; returns False when there is nothing more."""
        data = self.cache.get(self.key(query))
        if data is None or data.last_page is None:
            await self.load(query)
            return True
        last = data.last_page
        if not last.has_next_page or not last.next_cursor:
            return False
        page = await self._fetch(query, last.next_cursor)
        self.cache.append_page(self.key(query), CachePage(
            items=list(page.items),
            next_cursor=page.next_cursor,
            has_next_page=page.has_next_page,
        ))
        return True

    def apply_exchange(self, session_id: str, ai_message: Message) -> None:
        """Bring the session to the top of every cached listing it appears in."""
        for key in self.cache.keys(SESSIONS):
            self.cache.update_first_page(
                key, lambda items: promote_session(items, session_id, ai_message)
            )

    def remove_session(self, session_id: str) -> None:
        """Drop the session from every page of every cached listing."""
        for key in self.cache.keys(SESSIONS):
            self.cache.update_pages(key, lambda items: without_session(items, session_id))

    async def delete_session(self, session_id: str) -> None:
        """
        Delete the session on the server, then forget it locally.

        Raises:
            GatewayError: If the server rejects the deletion; the cache is left as is
        """
        await self.gateway.delete_session(session_id)
        self.remove_session(session_id)
        logger.info("Chat session deleted", extra={"extra_fields": {"session_id": session_id}})
