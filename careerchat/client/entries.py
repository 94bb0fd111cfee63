"""
Cached message entries.

An entry is either confirmed (mirrors a persisted Message) or provisional
(client-only, never persisted). The variant is carried by ``ref``; entries are
matched on it, never on id strings.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Union

from ..models import Message, MessageRole


class ProvisionalKind(str, Enum):
    USER = "USER"            # optimistic copy of the text being sent
    ASSISTANT = "ASSISTANT"  # reply being streamed in


@dataclass(frozen=True)
class Confirmed:
    id: str


@dataclass(frozen=True)
class Provisional:
    kind: ProvisionalKind
    temp_id: str = field(default_factory=lambda: uuid.uuid4().hex)


EntryRef = Union[Confirmed, Provisional]

ROLE_FOR_KIND = {
    ProvisionalKind.USER: MessageRole.USER,
    ProvisionalKind.ASSISTANT: MessageRole.ASSISTANT,
}


@dataclass(frozen=True)
class MessageEntry:
    """One item of a cached message page."""
    ref: EntryRef
    session_id: str
    role: MessageRole
    content: str
    created_at: datetime

    @classmethod
    def confirmed(cls, message: Message) -> "MessageEntry":
        return cls(
            ref=Confirmed(message.id),
            session_id=message.session_id,
            role=message.role,
            content=message.content,
            created_at=message.created_at,
        )

    @classmethod
    def provisional(cls, kind: ProvisionalKind, session_id: str, content: str) -> "MessageEntry":
        return cls(
            ref=Provisional(kind),
            session_id=session_id,
            role=ROLE_FOR_KIND[kind],
            content=content,
            created_at=datetime.now(timezone.utc),
        )

    @property
    def id(self) -> str:
        """Display identifier: the persisted id, or the temporary one."""
        if isinstance(self.ref, Confirmed):
            return self.ref.id
        return self.ref.temp_id

    @property
    def is_provisional(self) -> bool:
        return isinstance(self.ref, Provisional)

    def is_kind(self, kind: ProvisionalKind) -> bool:
        return isinstance(self.ref, Provisional) and self.ref.kind == kind

    def with_fragment(self, fragment: str) -> "MessageEntry":
        return replace(self, content=self.content + fragment)
