"""Core module - chat business logic, domain errors and logging setup."""

from .exceptions import ChatError, SessionNotFoundError, GenerationError

__all__ = ['ChatError', 'SessionNotFoundError', 'GenerationError']
