"""
HTTP client for the chat API.

Wraps one ``httpx.AsyncClient`` and maps failed responses to the errors in
``errors.py``. The streaming call parses the Server-Sent Events body and
yields each decoded fragment, the terminal ``{"done":true,...}`` string
included.
"""

import json
import logging
from typing import Any, AsyncGenerator, Dict, Optional

import httpx

from ..models import ChatSession, Message, Page, SendMessageResponse, Token, User
from ..utils.sse import aiter_sse_lines
from .errors import (
    GatewayError,
    NotFoundError,
    StreamError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_ERRORS = {
    401: UnauthorizedError,
    404: NotFoundError,
    422: ValidationError,
}


def _error_message(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        return response.text or response.reason_phrase
    if isinstance(detail, list):
        # pydantic validation errors
        return "; ".join(str(item.get("msg", item)) for item in detail if isinstance(item, dict)) or str(detail)
    return str(detail) if detail else response.reason_phrase


def raise_for_status(response: httpx.Response) -> None:
    """Raise the client error matching a failed response."""
    if response.status_code < 400:
        return
    error_class = STATUS_ERRORS.get(response.status_code, GatewayError)
    raise error_class(_error_message(response), status_code=response.status_code)


class GatewayClient:
    """Async client for the /auth and /chat endpoints."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise GatewayError(f"Request failed: {e}") from e
        raise_for_status(response)
        return response.json()

    @staticmethod
    def _params(**values) -> Dict[str, Any]:
        return {k: v for k, v in values.items() if v is not None}

    # Auth

    async def register(self, email: str, password: str, name: str) -> User:
        data = await self._request("POST", "/auth/register",
                                   json={"email": email, "password": password, "name": name})
        return User.model_validate(data["user"])

    async def login(self, email: str, password: str) -> str:
        """Sign in and keep the returned bearer token for later calls."""
        data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        token = Token.model_validate(data)
        self.set_token(token.access_token)
        return token.access_token

    async def me(self) -> User:
        return User.model_validate(await self._request("GET", "/auth/me"))

    # Sessions

    async def list_sessions(self, cursor: Optional[str] = None, limit: int = 10) -> Page[ChatSession]:
        data = await self._request("GET", "/chat/sessions", params=self._params(cursor=cursor, limit=limit))
        return Page[ChatSession].model_validate(data)

    async def search_sessions(
        self,
        query: Optional[str] = None,
        cursor: Optional[str] = None,
        limit: int = 10,
    ) -> Page[ChatSession]:
        data = await self._request(
            "GET", "/chat/sessions/search",
            params=self._params(query=query, cursor=cursor, limit=limit),
        )
        return Page[ChatSession].model_validate(data)

    async def create_session(self, title: str) -> ChatSession:
        return ChatSession.model_validate(await self._request("POST", "/chat/sessions", json={"title": title}))

    async def delete_session(self, session_id: str) -> bool:
        data = await self._request("DELETE", f"/chat/sessions/{session_id}")
        return bool(data.get("success"))

    # Messages

    async def list_messages(self, session_id: str, cursor: Optional[str] = None, limit: int = 20) -> Page[Message]:
        data = await self._request(
            "GET", f"/chat/sessions/{session_id}/messages",
            params=self._params(cursor=cursor, limit=limit),
        )
        return Page[Message].model_validate(data)

    async def send_message(self, session_id: str, content: str) -> SendMessageResponse:
        data = await self._request("POST", f"/chat/sessions/{session_id}/messages", json={"content": content})
        return SendMessageResponse.model_validate(data)

    async def send_message_stream(self, session_id: str, content: str) -> AsyncGenerator[str, None]:
        """
        Yield reply fragments in arrival order.

        Raises:
            StreamError: If the server sends an ``error`` event
            GatewayError: On a failed response or transport error
        """
        path = f"/chat/sessions/{session_id}/messages/stream"
        try:
            async with self._client.stream("POST", path, json={"content": content},
                                           headers=self._headers()) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise_for_status(response)

                event: Optional[str] = None
                async for line in aiter_sse_lines(response):
                    # SSE format: optional "event: name" then "data: payload"
                    if not line or line.startswith(":"):
                        continue
                    field, _, value = line.partition(":")
                    value = value[1:] if value.startswith(" ") else value
                    if field == "event":
                        event = value
                        continue
                    if field != "data":
                        continue

                    if event == "error":
                        raise self._stream_error(value)
                    event = None

                    try:
                        fragment = json.loads(value)
                    except json.JSONDecodeError as e:
                        logger.warning(f"Undecodable stream event: {value[:100]}")
                        raise StreamError("Malformed stream event", code="MALFORMED_EVENT") from e
                    if isinstance(fragment, str):
                        yield fragment
        except httpx.HTTPError as e:
            logger.warning(f"POST {path} stream failed: {e}")
            raise GatewayError(f"Stream failed: {e}") from e

    @staticmethod
    def _stream_error(value: str) -> StreamError:
        try:
            payload = json.loads(value)
        except json.JSONDecodeError:
            return StreamError(value or "Stream failed")
        if not isinstance(payload, dict):
            return StreamError(str(payload))
        return StreamError(payload.get("message") or "Stream failed", code=payload.get("code"))
