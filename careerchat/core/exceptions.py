"""
Domain errors raised by the chat service.
Routers translate these into HTTP responses.
"""

from typing import Any, Dict, Optional

GENERATION_UNAVAILABLE = "AI service temporarily unavailable. Please try again."


class ChatError(Exception):
    """Base exception for chat operations."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class SessionNotFoundError(ChatError):
    """Session is missing, deleted, or owned by someone else."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__("Chat session not found or deleted", {"session_id": session_id})


class GenerationError(ChatError):
    """The reply generator could not produce a reply."""

    def __init__(self, message: str = GENERATION_UNAVAILABLE, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
