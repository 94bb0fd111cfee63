"""
Unit tests for the storage layer.
Tests LocalStorage, UserStorage, ChatStorage and cursor pagination.
"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone

from careerchat.models import Message, MessageRole
from careerchat.storage import LocalStorage, UserStorage, paginate


def _messages(n):
    return [Message(id=f"m{i}", session_id="s", role=MessageRole.USER, content=str(i)) for i in range(n)]


class TestPaginate:
    """Tests for cursor pagination."""

    def test_first_page(self):
        page = paginate(_messages(5), None, 2)
        assert [m.id for m in page.items] == ["m0", "m1"]
        assert page.has_next_page is True
        assert page.next_cursor == "m1"

    def test_starts_strictly_after_cursor(self):
        page = paginate(_messages(5), "m1", 2)
        assert [m.id for m in page.items] == ["m2", "m3"]

    def test_last_page(self):
        page = paginate(_messages(5), "m3", 2)
        assert [m.id for m in page.items] == ["m4"]
        assert page.has_next_page is False
        assert page.next_cursor is None

    def test_unknown_cursor_yields_empty_page(self):
        page = paginate(_messages(3), "nope", 2)
        assert page.items == []
        assert page.has_next_page is False


class TestLocalStorage:
    """Tests for the filesystem backend."""

    @pytest.mark.asyncio
    async def test_save_and_load(self, local_storage):
        assert await local_storage.save("a/b.json", '{"x": 1}')
        assert await local_storage.load("a/b.json") == b'{"x": 1}'
        assert await local_storage.exists("a/b.json")

    @pytest.mark.asyncio
    async def test_load_missing(self, local_storage):
        assert await local_storage.load("missing.json") is None

    @pytest.mark.asyncio
    async def test_append(self, local_storage):
        await local_storage.append("log.jsonl", "one\n")
        await local_storage.append("log.jsonl", "two\n")
        assert await local_storage.load("log.jsonl") == b"one\ntwo\n"

    @pytest.mark.asyncio
    async def test_path_traversal_rejected(self, local_storage):
        assert await local_storage.save("../escape.txt", "nope") is False
        assert await local_storage.exists("../escape.txt") is False

    @pytest.mark.asyncio
    async def test_list_with_pattern(self, local_storage):
        await local_storage.save("d/one.json", "{}")
        await local_storage.save("d/one.jsonl", "")
        await local_storage.save("d/two.json", "{}", metadata={"k": "v"})
        assert await local_storage.list("d", pattern="*.json") == ["d/one.json", "d/two.json"]

    @pytest.mark.asyncio
    async def test_metadata_and_delete(self, local_storage):
        await local_storage.save("f.txt", "hello", metadata={"owner": "u1"})
        meta = await local_storage.get_metadata("f.txt")
        assert meta["size"] == 5
        assert meta["owner"] == "u1"
        assert await local_storage.delete("f.txt")
        assert await local_storage.delete("f.txt") is False


class TestUserStorage:
    """Tests for user records and the email index."""

    @pytest.mark.asyncio
    async def test_create_and_lookup(self, local_storage):
        users = UserStorage(local_storage)
        created = await users.create_user("u1", "Ada@Example.com", "Ada", "hash")
        assert created["email"] == "ada@example.com"

        by_id = await users.get_user("u1")
        assert by_id["name"] == "Ada"
        by_email = await users.get_user_by_email("  ADA@example.com ")
        assert by_email["id"] == "u1"

    @pytest.mark.asyncio
    async def test_unknown_email(self, local_storage):
        users = UserStorage(local_storage)
        assert await users.get_user_by_email("nobody@example.com") is None


class TestChatStorage:
    """Tests for sessions and message logs."""

    @pytest.mark.asyncio
    async def test_create_and_get_session(self, chat_storage):
        session = await chat_storage.create_session("u1", "Switching to data science")
        loaded = await chat_storage.get_session("u1", session.id)
        assert loaded.title == "Switching to data science"
        assert loaded.deleted_at is None

    @pytest.mark.asyncio
    async def test_other_user_cannot_read_session(self, chat_storage):
        session = await chat_storage.create_session("u1", "Mine")
        assert await chat_storage.get_session("u2", session.id) is None

    @pytest.mark.asyncio
    async def test_list_sessions_newest_first_with_preview(self, chat_storage):
        first = await chat_storage.create_session("u1", "First")
        second = await chat_storage.create_session("u1", "Second")
        await chat_storage.append_message("u1", first.id, MessageRole.USER, "hello")
        await chat_storage.touch_session("u1", first.id, datetime.now(timezone.utc) + timedelta(minutes=1))

        page = await chat_storage.list_sessions("u1")
        assert [s.id for s in page.items] == [first.id, second.id]
        assert page.items[0].message[0].content == "hello"
        assert page.items[1].message == []

    @pytest.mark.asyncio
    async def test_list_sessions_title_search(self, chat_storage):
        await chat_storage.create_session("u1", "Resume review")
        await chat_storage.create_session("u1", "Interview prep")
        page = await chat_storage.list_sessions("u1", query="RESUME")
        assert [s.title for s in page.items] == ["Resume review"]

    @pytest.mark.asyncio
    async def test_soft_delete_hides_session(self, chat_storage):
        session = await chat_storage.create_session("u1", "Temp")
        assert await chat_storage.soft_delete("u1", session.id) is True
        assert await chat_storage.get_session("u1", session.id) is None
        assert (await chat_storage.list_sessions("u1")).items == []
        assert await chat_storage.soft_delete("u1", session.id) is False

    @pytest.mark.asyncio
    async def test_messages_newest_first_and_recent_chronological(self, chat_storage):
        session = await chat_storage.create_session("u1", "Chat")
        for i in range(5):
            await chat_storage.append_message("u1", session.id, MessageRole.USER, f"msg {i}")

        page = await chat_storage.list_messages("u1", session.id, limit=2)
        assert [m.content for m in page.items] == ["msg 4", "msg 3"]
        assert page.has_next_page is True

        older = await chat_storage.list_messages("u1", session.id, cursor=page.next_cursor, limit=2)
        assert [m.content for m in older.items] == ["msg 2", "msg 1"]

        recent = await chat_storage.recent_messages("u1", session.id, 3)
        assert [m.content for m in recent] == ["msg 2", "msg 3", "msg 4"]

    @pytest.mark.asyncio
    async def test_recent_messages_zero(self, chat_storage):
        session = await chat_storage.create_session("u1", "Chat")
        assert await chat_storage.recent_messages("u1", session.id, 0) == []

    @pytest.mark.asyncio
    async def test_unicode_line_separators_in_content(self, chat_storage):
        session = await chat_storage.create_session("u1", "Chat")
        text = "first\u2028second\u2029third\x85fourth"
        await chat_storage.append_message("u1", session.id, MessageRole.USER, text)
        await chat_storage.append_message("u1", session.id, MessageRole.ASSISTANT, "reply")

        page = await chat_storage.list_messages("u1", session.id)
        assert [m.content for m in page.items] == ["reply", text]

        recent = await chat_storage.recent_messages("u1", session.id, 20)
        assert recent[0].content == text

        sessions = await chat_storage.list_sessions("u1")
        assert sessions.items[0].message[0].content == "reply"

    @pytest.mark.asyncio
    async def test_touch_racing_delete_keeps_session_deleted(self, chat_storage):
        session = await chat_storage.create_session("u1", "Chat")
        deleted, touched = await asyncio.gather(
            chat_storage.soft_delete("u1", session.id),
            chat_storage.touch_session("u1", session.id),
        )
        assert deleted is True
        assert touched is None
        assert await chat_storage.get_session("u1", session.id) is None


@pytest.fixture
def other_storage(tmp_path):
    return LocalStorage(str(tmp_path / "other"))


class TestStorageIsolation:
    """Separate base directories do not share data."""

    @pytest.mark.asyncio
    async def test_isolated(self, local_storage, other_storage):
        await local_storage.save("x.txt", "1")
        assert await other_storage.exists("x.txt") is False
