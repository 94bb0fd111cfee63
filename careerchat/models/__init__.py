"""Models module."""

from .base import CamelModel
from .user import User, UserCreate, LoginRequest, RegisterResponse, Token, TokenData
from .chat import (
    MessageRole, Message, ChatSession, Page,
    CreateSessionRequest, SendMessageRequest, SendMessageResponse, DeleteSessionResponse,
)

__all__ = [
    'CamelModel',
    'User', 'UserCreate', 'LoginRequest', 'RegisterResponse', 'Token', 'TokenData',
    'MessageRole', 'Message', 'ChatSession', 'Page',
    'CreateSessionRequest', 'SendMessageRequest', 'SendMessageResponse', 'DeleteSessionResponse',
]
