"""
Errors raised by the client side of the chat gateway.
"""

from typing import Optional


class ClientError(Exception):
    """Base exception for client operations."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class GatewayError(ClientError):
    """Request failed on the server or in transport."""


class UnauthorizedError(GatewayError):
    """Credentials are missing or expired; the user must sign in again."""


class NotFoundError(GatewayError):
    """The session does not exist or was deleted."""


class ValidationError(GatewayError):
    """The server rejected the request payload."""


class StreamError(GatewayError):
    """The reply stream reported an error or ended abnormally."""


class StreamClosedError(StreamError):
    """The reply stream ended without a terminal signal."""
