"""
Client Cache - in-memory store of paginated query results.

Each key maps to ``InfiniteData``: the pages loaded so far, newest first.
Optimistic and streaming updates only ever touch the first page; later pages
are appended by backward pagination and otherwise left alone.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Generic, Hashable, Iterator, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

QueryKey = Tuple[Hashable, ...]
Listener = Callable[[QueryKey], None]

MESSAGES = "chat.messages"
SESSIONS = "chat.sessions"


def messages_key(session_id: str, limit: int) -> QueryKey:
    return (MESSAGES, session_id, limit)


def sessions_key(user_id: str, query: Optional[str] = None) -> QueryKey:
    return (SESSIONS, user_id, query or None)


@dataclass(frozen=True)
class CachePage(Generic[T]):
    items: List[T] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_next_page: bool = False


@dataclass(frozen=True)
class InfiniteData(Generic[T]):
    pages: List[CachePage[T]] = field(default_factory=list)

    def flat_items(self) -> List[T]:
        return [item for page in self.pages for item in page.items]

    @property
    def last_page(self) -> Optional[CachePage[T]]:
        return self.pages[-1] if self.pages else None


class QueryCache:
    """Key-addressed store with patch operations and change listeners."""

    def __init__(self):
        self._data: Dict[QueryKey, InfiniteData] = {}
        self._listeners: List[Listener] = []

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._data

    def get(self, key: QueryKey) -> Optional[InfiniteData]:
        return self._data.get(key)

    def items(self, key: QueryKey) -> List[Any]:
        data = self._data.get(key)
        return data.flat_items() if data else []

    def keys(self, prefix: Optional[Hashable] = None) -> Iterator[QueryKey]:
        """Iterate cached keys, optionally only those whose first element is ``prefix``."""
        for key in list(self._data):
            if prefix is None or key[0] == prefix:
                yield key

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: QueryKey) -> None:
        for listener in list(self._listeners):
            listener(key)

    def _put(self, key: QueryKey, data: InfiniteData) -> None:
        self._data[key] = data
        self._notify(key)

    def set_first_page(self, key: QueryKey, page: CachePage) -> None:
        """Replace the whole entry with a freshly fetched first page."""
        self._put(key, InfiniteData(pages=[page]))

    def ensure(self, key: QueryKey) -> InfiniteData:
        """Return the entry, seeding an empty first page if nothing is cached."""
        data = self._data.get(key)
        if data is None or not data.pages:
            data = InfiniteData(pages=[CachePage()])
            self._put(key, data)
        return data

    def append_page(self, key: QueryKey, page: CachePage) -> None:
        data = self._data.get(key)
        if data is None:
            self.set_first_page(key, page)
            return
        self._put(key, InfiniteData(pages=[*data.pages, page]))

    def update_first_page(self, key: QueryKey, updater: Callable[[List[Any]], List[Any]]) -> bool:
        """
        Apply ``updater`` to the items of the first page.

        Returns False (and changes nothing) when the key is not cached.
        """
        data = self._data.get(key)
        if data is None or not data.pages:
            return False
        first = data.pages[0]
        updated = replace(first, items=updater(first.items))
        self._put(key, InfiniteData(pages=[updated, *data.pages[1:]]))
        return True

    def update_pages(self, key: QueryKey, updater: Callable[[List[Any]], List[Any]]) -> bool:
        """Apply ``updater`` to the items of every page; used for removals."""
        data = self._data.get(key)
        if data is None:
            return False
        pages = [replace(page, items=updater(page.items)) for page in data.pages]
        self._put(key, InfiniteData(pages=pages))
        return True

    def remove(self, key: QueryKey) -> None:
        if self._data.pop(key, None) is not None:
            self._notify(key)

    def clear(self) -> None:
        keys = list(self._data)
        self._data.clear()
        for key in keys:
            self._notify(key)
        logger.debug(f"Query cache cleared: {len(keys)} keys")
