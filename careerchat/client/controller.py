"""
Chat View Controller - the send/stream state machine behind one chat view.

A submit puts a provisional copy of the user's text at the head of the
session's first message page, runs the exchange as an asyncio task, and
finally swaps the provisional entries for the persisted records returned by
the server. Streaming and one-shot exchanges share the same reconciliation.

    One-shot:  IDLE -> SENDING -> SUCCEEDED -> IDLE
                               -> FAILED
    Streaming: IDLE -> CONNECTING -> STREAMING_TOKENS -> COMPLETED -> IDLE
                                                      -> STREAM_FAILED
"""

import asyncio
import logging
from contextlib import aclosing
from enum import Enum
from typing import Callable, List, Optional

from ..models import Message, Page, SendMessageResponse
from .auth_guard import UnauthorizedHandler
from .cache import CachePage, QueryCache, messages_key
from .entries import MessageEntry, Provisional, ProvisionalKind
from .errors import ClientError, GatewayError, StreamClosedError
from .reconcile import apply_fragment, drop_provisional, drop_ref, merge_exchange, prepend
from .session_sync import SessionListSynchronizer
from .signals import is_terminal_signal, parse_terminal_signal

logger = logging.getLogger(__name__)


class ChatStatus(str, Enum):
    IDLE = "IDLE"
    SENDING = "SENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CONNECTING = "CONNECTING"
    STREAMING_TOKENS = "STREAMING_TOKENS"
    COMPLETED = "COMPLETED"
    STREAM_FAILED = "STREAM_FAILED"


BUSY_STATES = frozenset({ChatStatus.SENDING, ChatStatus.CONNECTING, ChatStatus.STREAMING_TOKENS})
FAILED_STATES = frozenset({ChatStatus.FAILED, ChatStatus.STREAM_FAILED})

StatusListener = Callable[[ChatStatus], None]


def to_cache_page(page: Page[Message]) -> CachePage[MessageEntry]:
    return CachePage(
        items=[MessageEntry.confirmed(m) for m in page.items],
        next_cursor=page.next_cursor,
        has_next_page=page.has_next_page,
    )


class ChatViewController:
    """
    Drives message exchanges for one session view.

    At most one exchange is in flight; ``submit`` while busy is ignored.
    A failed exchange keeps the user's provisional entry and text so that
    ``retry`` can resend it without inserting a second copy.
    """

    def __init__(
        self,
        session_id: str,
        gateway,
        cache: QueryCache,
        sessions: SessionListSynchronizer,
        unauthorized: Optional[UnauthorizedHandler] = None,
        streaming: bool = True,
        page_size: int = 10,
    ):
        self.session_id = session_id
        self.gateway = gateway
        self.cache = cache
        self.sessions = sessions
        self.unauthorized = unauthorized
        self.streaming = streaming
        self.page_size = page_size
        self.key = messages_key(session_id, page_size)

        self.status = ChatStatus.IDLE
        self.failed_text: Optional[str] = None
        self.last_error: Optional[ClientError] = None
        self.load_error: Optional[ClientError] = None

        self._pending: Optional[Provisional] = None
        self._task: Optional[asyncio.Task] = None
        # Bumped on every dispatch and on close; stale exchanges compare against it
        self._generation = 0
        self._listeners: List[StatusListener] = []

    # State

    @property
    def messages(self) -> List[MessageEntry]:
        """Visible entries, newest first."""
        return self.cache.items(self.key)

    @property
    def is_busy(self) -> bool:
        return self.status in BUSY_STATES

    @property
    def has_failed(self) -> bool:
        return self.status in FAILED_STATES

    def add_status_listener(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _set_status(self, status: ChatStatus) -> None:
        if status == self.status:
            return
        logger.debug(f"Chat {self.session_id}: {self.status.value} -> {status.value}")
        self.status = status
        for listener in list(self._listeners):
            listener(status)

    # Loading

    async def load(self) -> None:
        """
        Fetch the first page of messages into the cache.

        Raises:
            NotFoundError: If the session is missing or deleted; ``load_error`` is set
        """
        try:
            page = await self.gateway.list_messages(self.session_id, limit=self.page_size)
        except ClientError as e:
            await self._load_failed(e)
            raise
        self.load_error = None
        self.cache.set_first_page(self.key, to_cache_page(page))

    async def load_more(self) -> bool:
        """Append the next older page. Returns False when there is none."""
        data = self.cache.get(self.key)
        if data is None or data.last_page is None:
            await self.load()
            return True
        last = data.last_page
        if not last.has_next_page or not last.next_cursor:
            return False
        try:
            page = await self.gateway.list_messages(
                self.session_id, cursor=last.next_cursor, limit=self.page_size
            )
        except ClientError as e:
            await self._load_failed(e)
            raise
        self.cache.append_page(self.key, to_cache_page(page))
        return True

    async def _load_failed(self, error: ClientError) -> None:
        self.load_error = error
        logger.warning(
            f"Loading messages failed: {error.message}",
            extra={"extra_fields": {"session_id": self.session_id, "status_code": error.status_code}}
        )
        await self._route_unauthorized(error)

    # Exchanges

    def submit(self, text: str) -> Optional[asyncio.Task]:
        """
        Send ``text`` and return the task running the exchange.

        Empty text, or a submit while an exchange is in flight, is ignored
        and returns None.
        """
        text = (text or "").strip()
        if not text:
            return None
        if self.is_busy:
            logger.debug(f"Chat {self.session_id}: submit ignored while {self.status.value}")
            return None
        return self._dispatch(text, is_retry=False)

    def retry(self) -> Optional[asyncio.Task]:
        """Resend the text of the failed exchange, reusing its provisional entry."""
        if not self.has_failed or not self.failed_text:
            return None
        return self._dispatch(self.failed_text, is_retry=True)

    def close(self) -> None:
        """
        Abandon the in-flight exchange and return to IDLE.

        Does nothing unless an exchange is in flight; a failed exchange stays
        failed so its text can still be retried.
        """
        if not self.is_busy:
            return
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        self.cache.update_first_page(
            self.key, lambda items: drop_provisional(items, ProvisionalKind.ASSISTANT)
        )
        self._set_status(ChatStatus.IDLE)

    def _pending_is_cached(self) -> bool:
        return self._pending is not None and any(e.ref == self._pending for e in self.messages)

    def _dispatch(self, text: str, is_retry: bool) -> asyncio.Task:
        self.failed_text = None
        self.last_error = None

        if not (is_retry and self._pending_is_cached()):
            if self._pending is not None:
                stale = self._pending
                self.cache.update_first_page(self.key, lambda items: drop_ref(items, stale))
            entry = MessageEntry.provisional(ProvisionalKind.USER, self.session_id, text)
            self._pending = entry.ref
            self.cache.ensure(self.key)
            self.cache.update_first_page(self.key, lambda items: prepend(items, entry))

        self._generation += 1
        if self.streaming:
            self._set_status(ChatStatus.CONNECTING)
            coro = self._run_stream(text, self._generation)
        else:
            self._set_status(ChatStatus.SENDING)
            coro = self._run_one_shot(text, self._generation)

        self._task = asyncio.get_running_loop().create_task(coro)
        return self._task

    async def _run_one_shot(self, text: str, generation: int) -> None:
        try:
            result = await self.gateway.send_message(self.session_id, text)
        except ClientError as e:
            await self._fail(text, e, generation)
            return
        except Exception as e:
            logger.error(f"Unexpected error sending message: {e}", exc_info=True)
            await self._fail(text, GatewayError(str(e)), generation)
            return

        if generation == self._generation:
            self._resolve(result)

    async def _run_stream(self, text: str, generation: int) -> None:
        try:
            async with aclosing(self.gateway.send_message_stream(self.session_id, text)) as stream:
                async for fragment in stream:
                    if generation != self._generation:
                        return
                    if is_terminal_signal(fragment):
                        self._resolve(parse_terminal_signal(fragment))
                        return
                    self._apply_fragment(fragment)
            raise StreamClosedError("Reply stream ended without a terminal signal")
        except ClientError as e:
            await self._fail(text, e, generation)
        except Exception as e:
            logger.error(f"Unexpected error streaming reply: {e}", exc_info=True)
            await self._fail(text, GatewayError(str(e)), generation)

    def _apply_fragment(self, fragment: str) -> None:
        if self.status == ChatStatus.CONNECTING:
            self._set_status(ChatStatus.STREAMING_TOKENS)
        self.cache.update_first_page(
            self.key, lambda items: apply_fragment(items, self.session_id, fragment)
        )

    def _resolve(self, result: SendMessageResponse) -> None:
        """Replace provisional entries with the persisted records."""
        pending = self._pending

        def reconcile(items: List[MessageEntry]) -> List[MessageEntry]:
            if self.streaming:
                remaining = drop_provisional(items)
            elif pending is not None:
                remaining = drop_ref(items, pending)
            else:
                remaining = items
            return merge_exchange(remaining, result)

        self.cache.update_first_page(self.key, reconcile)
        self.sessions.apply_exchange(self.session_id, result.ai_message)
        self._pending = None

        logger.info(
            "Message exchange completed",
            extra={"extra_fields": {
                "session_id": self.session_id,
                "ai_message_id": result.ai_message.id,
                "streaming": self.streaming,
            }}
        )
        self._set_status(ChatStatus.COMPLETED if self.streaming else ChatStatus.SUCCEEDED)
        self._set_status(ChatStatus.IDLE)

    async def _fail(self, text: str, error: ClientError, generation: int) -> None:
        if generation != self._generation:
            return
        self.cache.update_first_page(
            self.key, lambda items: drop_provisional(items, ProvisionalKind.ASSISTANT)
        )
        self.failed_text = text
        self.last_error = error
        logger.warning(
            f"Message exchange failed: {error.message}",
            extra={"extra_fields": {
                "session_id": self.session_id,
                "error": type(error).__name__,
                "status_code": error.status_code,
            }}
        )
        self._set_status(ChatStatus.STREAM_FAILED if self.streaming else ChatStatus.FAILED)
        await self._route_unauthorized(error)

    async def _route_unauthorized(self, error: ClientError) -> None:
        if self.unauthorized is not None:
            await self.unauthorized.handle(error)
