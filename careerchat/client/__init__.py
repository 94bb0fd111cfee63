"""
Client side of the chat API: gateway, query cache and the chat view state machine.
"""

from .auth_guard import UnauthorizedHandler, make_sign_out
from .cache import CachePage, InfiniteData, QueryCache, messages_key, sessions_key
from .controller import ChatStatus, ChatViewController
from .entries import Confirmed, MessageEntry, Provisional, ProvisionalKind
from .errors import (
    ClientError,
    GatewayError,
    NotFoundError,
    StreamClosedError,
    StreamError,
    UnauthorizedError,
    ValidationError,
)
from .gateway import GatewayClient
from .session_sync import SessionListSynchronizer
from .signals import TERMINAL_PREFIX, is_terminal_signal, parse_terminal_signal

__all__ = [
    "UnauthorizedHandler",
    "make_sign_out",
    "CachePage",
    "InfiniteData",
    "QueryCache",
    "messages_key",
    "sessions_key",
    "ChatStatus",
    "ChatViewController",
    "Confirmed",
    "MessageEntry",
    "Provisional",
    "ProvisionalKind",
    "ClientError",
    "GatewayError",
    "NotFoundError",
    "StreamClosedError",
    "StreamError",
    "UnauthorizedError",
    "ValidationError",
    "GatewayClient",
    "SessionListSynchronizer",
    "TERMINAL_PREFIX",
    "is_terminal_signal",
    "parse_terminal_signal",
]
