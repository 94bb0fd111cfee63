"""
Pure list transformations applied to the first page of a message listing.

Pages are ordered newest first. Every function returns a new list.
"""

from typing import Iterable, List, Optional

from ..models import SendMessageResponse
from .entries import EntryRef, MessageEntry, ProvisionalKind


def dedupe(entries: Iterable[MessageEntry]) -> List[MessageEntry]:
    """Keep the first entry for each ref."""
    seen = set()
    result = []
    for entry in entries:
        if entry.ref in seen:
            continue
        seen.add(entry.ref)
        result.append(entry)
    return result


def drop_provisional(entries: Iterable[MessageEntry],
                     kind: Optional[ProvisionalKind] = None) -> List[MessageEntry]:
    """Remove provisional entries, all of them or only those of ``kind``."""
    if kind is None:
        return [e for e in entries if not e.is_provisional]
    return [e for e in entries if not e.is_kind(kind)]


def drop_ref(entries: Iterable[MessageEntry], ref: EntryRef) -> List[MessageEntry]:
    return [e for e in entries if e.ref != ref]


def prepend(entries: List[MessageEntry], entry: MessageEntry) -> List[MessageEntry]:
    return [entry, *entries]


def merge_exchange(entries: Iterable[MessageEntry], result: SendMessageResponse) -> List[MessageEntry]:
    """Put the authoritative reply and user message at the head, de-duplicated by id."""
    return dedupe([
        MessageEntry.confirmed(result.ai_message),
        MessageEntry.confirmed(result.user_message),
        *entries,
    ])


def apply_fragment(entries: List[MessageEntry], session_id: str, fragment: str) -> List[MessageEntry]:
    """
    Grow the streaming reply by ``fragment``.

    The first fragment creates the provisional assistant entry at the head;
    later fragments are appended to it in place.
    """
    for index, entry in enumerate(entries):
        if entry.is_kind(ProvisionalKind.ASSISTANT):
            updated = list(entries)
            updated[index] = entry.with_fragment(fragment)
            return updated
    streaming = MessageEntry.provisional(ProvisionalKind.ASSISTANT, session_id, fragment)
    return [streaming, *entries]
