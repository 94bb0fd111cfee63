"""
Chat API endpoints - sessions, message history and message exchanges.
Every endpoint requires an authenticated user.
"""

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Depends, status, Query
from fastapi.responses import StreamingResponse

from ..agents import CareerCounselorAgent
from ..config import settings
from ..core.chat_service import ChatService
from ..core.exceptions import ChatError, GenerationError, SessionNotFoundError
from ..llm.factory import create_llm_provider
from ..models import (
    ChatSession,
    CreateSessionRequest,
    DeleteSessionResponse,
    Message,
    Page,
    SendMessageRequest,
    SendMessageResponse,
)
from ..storage import ChatStorage, LocalStorage
from ..utils.auth import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

_chat_service: Optional[ChatService] = None


def _get_llm_provider():
    """Get configured LLM provider or None."""
    return create_llm_provider(
        provider=settings.llm_provider,
        api_key=settings.resolved_llm_api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout,
    )


def get_chat_service() -> ChatService:
    """Dependency returning the process-wide chat service, built on first use."""
    global _chat_service
    if _chat_service is None:
        agent = CareerCounselorAgent(
            _get_llm_provider(),
            max_chars=settings.reply_max_chars,
            temperature=settings.reply_temperature,
        )
        _chat_service = ChatService(
            ChatStorage(LocalStorage(settings.local_storage_path)),
            agent,
            context_messages=settings.reply_context_messages,
        )
    return _chat_service


def _http_error(error: ChatError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


def _internal_error(action: str, error: Exception) -> HTTPException:
    logger.error(f"Failed to {action}: {error}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


def _sse(payload: Any, event: Optional[str] = None) -> str:
    # ASCII-only JSON keeps U+2028/U+0085 off the wire for naive line readers
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {json.dumps(payload)}\n\n"


@router.get("/sessions", response_model=Page[ChatSession])
async def list_sessions(
    cursor: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """List the user's sessions, most recently updated first."""
    try:
        return await service.list_sessions(user_id, cursor, limit)
    except Exception as e:
        raise _internal_error("fetch chat sessions", e)


@router.get("/sessions/search", response_model=Page[ChatSession])
async def search_sessions(
    query: Optional[str] = Query(None),
    cursor: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Search the user's sessions by title (case-insensitive)."""
    try:
        return await service.search_sessions(user_id, query, cursor, limit)
    except Exception as e:
        raise _internal_error("search chat sessions", e)


@router.post("/sessions", response_model=ChatSession, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Create a new chat session."""
    try:
        return await service.create_session(user_id, request.title)
    except Exception as e:
        raise _internal_error("create chat session", e)


@router.get("/sessions/{session_id}/messages", response_model=Page[Message])
async def list_messages(
    session_id: str,
    cursor: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Page through a session's messages, newest first."""
    try:
        return await service.get_messages(user_id, session_id, cursor, limit)
    except SessionNotFoundError as e:
        raise _http_error(e)
    except Exception as e:
        raise _internal_error("fetch messages", e)


@router.post("/sessions/{session_id}/messages", response_model=SendMessageResponse)
async def send_message(
    session_id: str,
    request: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """
    Send a message and wait for the complete counselor reply.

    Returns:
        The persisted user message and assistant reply
    """
    try:
        return await service.send_message(user_id, session_id, request.content)
    except ChatError as e:
        raise _http_error(e)
    except Exception as e:
        raise _internal_error("send message", e)


@router.post("/sessions/{session_id}/messages/stream")
async def send_message_stream(
    session_id: str,
    request: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """
    Send a message and stream the counselor reply as Server-Sent Events.

    Each event carries one JSON-encoded string: a reply fragment, or finally
    the ``{"done":true,...}`` payload with the persisted records. Failures
    after the stream opened arrive as an ``error`` event.
    """
    # Checked up front so a missing session is a plain 404, not a stream event
    try:
        await service.require_session(user_id, session_id)
    except SessionNotFoundError as e:
        raise _http_error(e)

    async def event_generator():
        try:
            async for fragment in service.send_message_stream(user_id, session_id, request.content):
                yield _sse(fragment)
        except ChatError as e:
            logger.warning(
                f"Message streaming failed: {e.message}",
                extra={"extra_fields": {"session_id": session_id, "code": e.code}}
            )
            yield _sse(e.to_dict(), event="error")
        except Exception as e:
            logger.error(f"Message streaming failed: {e}", exc_info=True)
            fallback = GenerationError()
            yield _sse(fallback.to_dict(), event="error")

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        }
    )


@router.delete("/sessions/{session_id}", response_model=DeleteSessionResponse)
async def delete_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Soft-delete a session."""
    try:
        await service.delete_session(user_id, session_id)
        return DeleteSessionResponse(success=True)
    except SessionNotFoundError as e:
        raise _http_error(e)
    except Exception as e:
        raise _internal_error("delete chat session", e)
