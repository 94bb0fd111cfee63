"""
Shared test fixtures and configuration.
"""

import asyncio
import os
from datetime import datetime, timezone

import pytest
from typing import AsyncGenerator, List, Optional

# Set test environment variables before importing app modules
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/careerchat_test_data")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LLM_API_KEY", "")
os.environ.setdefault("GEMINI_API_KEY", "")

from careerchat.llm.base import LLMProvider, LLMMessage, LLMResponse  # noqa: E402
from careerchat.models import Message, Page, SendMessageResponse  # noqa: E402
from careerchat.storage import ChatStorage, LocalStorage  # noqa: E402


class FakeProvider(LLMProvider):
    """Scripted LLM provider; records every conversation it receives."""

    name = "fake"

    def __init__(self, reply: str = "Consider a data analytics path.",
                 fragments: Optional[List[str]] = None, error: Optional[Exception] = None):
        super().__init__(api_key="fake", model="fake-model")
        self.reply = reply
        self.fragments = fragments if fragments is not None else ["Consider ", "a data ", "analytics path."]
        self.error = error
        self.calls: List[List[LLMMessage]] = []

    async def chat_completion(self, messages, temperature=None, max_tokens=None, **kwargs) -> LLMResponse:
        self.calls.append(list(messages))
        if self.error:
            raise self.error
        return LLMResponse(content=self.reply, model=self.model)

    async def chat_completion_stream(self, messages, temperature=None, max_tokens=None,
                                     **kwargs) -> AsyncGenerator[str, None]:
        self.calls.append(list(messages))
        for fragment in self.fragments:
            yield fragment
        if self.error:
            raise self.error


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def local_storage(tmp_path):
    return LocalStorage(str(tmp_path / "data"))


@pytest.fixture
def chat_storage(local_storage):
    return ChatStorage(local_storage)


PAUSE = object()


def make_message(message_id, content, role="USER", session_id="s1", created_at=None):
    return Message(
        id=message_id,
        session_id=session_id,
        role=role,
        content=content,
        created_at=created_at or datetime.now(timezone.utc),
    )


def make_exchange(text, reply, n=1, session_id="s1"):
    return SendMessageResponse(
        user_message=make_message(f"u{n}", text, "USER", session_id),
        ai_message=make_message(f"a{n}", reply, "ASSISTANT", session_id),
    )


class FakeGateway:
    """
    Scripted stand-in for GatewayClient.

    ``script`` drives ``send_message_stream``: strings are yielded, exceptions
    raised, and ``PAUSE`` sets ``paused`` and waits for ``resume``.
    """

    def __init__(self):
        self.script = []
        self.reply = None
        self.pages = {None: Page(items=[])}
        self.sessions_pages = {None: Page(items=[])}
        self.sent = []
        self.deleted = []
        self.paused = asyncio.Event()
        self.resume = asyncio.Event()
        self.stream_closed = False

    async def list_messages(self, session_id, cursor=None, limit=20):
        page = self.pages[cursor]
        if isinstance(page, Exception):
            raise page
        return page

    async def list_sessions(self, cursor=None, limit=10):
        return self.sessions_pages[cursor]

    async def search_sessions(self, query=None, cursor=None, limit=10):
        return self.sessions_pages[cursor]

    async def delete_session(self, session_id):
        self.deleted.append(session_id)
        return True

    async def send_message(self, session_id, content):
        self.sent.append(content)
        for item in self.script:
            if item is PAUSE:
                self.paused.set()
                await self.resume.wait()
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply

    async def send_message_stream(self, session_id, content):
        self.sent.append(content)
        try:
            for item in self.script:
                if item is PAUSE:
                    self.paused.set()
                    await self.resume.wait()
                elif isinstance(item, Exception):
                    raise item
                else:
                    yield item
        finally:
            self.stream_closed = True
