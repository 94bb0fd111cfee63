"""
Unauthorized handling - signs the user out once, however many requests
fail with 401 at the same time.
"""

import logging
from typing import Awaitable, Callable, Optional

from .errors import UnauthorizedError

logger = logging.getLogger(__name__)

SignOut = Callable[[], Awaitable[None]]


class UnauthorizedHandler:
    """
    Routes unauthorized errors to a single sign-out.

    The in-progress slot holds a token while sign-out runs; later 401s that
    arrive in the meantime are absorbed. The slot is cleared when sign-out
    finishes or fails, so a later expiry is handled again.
    """

    def __init__(self, sign_out: SignOut, on_expired: Optional[Callable[[], None]] = None):
        self._sign_out = sign_out
        self._on_expired = on_expired
        self._in_progress: Optional[object] = None

    @property
    def signing_out(self) -> bool:
        return self._in_progress is not None

    async def handle(self, error: BaseException) -> bool:
        """
        Sign out if ``error`` is an UnauthorizedError.

        Returns:
            bool: True if the error was an unauthorized error (handled or absorbed)
        """
        if not isinstance(error, UnauthorizedError):
            return False

        if self._in_progress is not None:
            logger.debug("Sign-out already in progress; ignoring duplicate unauthorized error")
            return True

        token = object()
        self._in_progress = token
        logger.warning("Session expired, signing out")
        try:
            if self._on_expired is not None:
                self._on_expired()
            await self._sign_out()
        except Exception as e:
            logger.error(f"Sign-out failed: {e}", exc_info=True)
        finally:
            if self._in_progress is token:
                self._in_progress = None
        return True


def make_sign_out(gateway, cache) -> SignOut:
    """Sign-out that drops the bearer token and every cached listing."""

    async def sign_out() -> None:
        gateway.set_token(None)
        cache.clear()

    return sign_out
