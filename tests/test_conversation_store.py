"""Tests for per-sender conversation memory (in-memory mode)"""

from datetime import timedelta

import pytest

from conftest import NOW
from line_agent.interfaces.conversation_store import ConversationStore
from line_agent.schemas.agent_schemas import PendingInvocation


@pytest.fixture
def memory_store():
    return ConversationStore(use_redis=False, expiry_minutes=30, max_messages=4)


class TestConversationStore:
    @pytest.mark.asyncio
    async def test_unknown_sender_starts_fresh(self, memory_store):
        state = await memory_store.load("U1", NOW)
        assert state.sender_id == "U1"
        assert state.messages == []
        assert state.pending is None
        assert memory_store.mode == "memory"

    @pytest.mark.asyncio
    async def test_state_survives_between_turns(self, memory_store):
        state = await memory_store.load("U1", NOW)
        state.add_exchange("จองห้อง", "ห้องไหนคะ?")
        state.pending = PendingInvocation(name="book_room", arguments={"date": "2025-12-21"}, missing=["room_id"])
        await memory_store.save(state, NOW)

        again = await memory_store.load("U1", NOW + timedelta(minutes=5))

        assert [m.text for m in again.messages] == ["จองห้อง", "ห้องไหนคะ?"]
        assert again.pending.name == "book_room"

    @pytest.mark.asyncio
    async def test_state_expires_after_inactivity(self, memory_store):
        state = await memory_store.load("U1", NOW)
        state.add_exchange("สวัสดี", "สวัสดีค่ะ")
        await memory_store.save(state, NOW)

        later = await memory_store.load("U1", NOW + timedelta(minutes=31))

        assert later.messages == []

    @pytest.mark.asyncio
    async def test_history_is_trimmed(self, memory_store):
        state = await memory_store.load("U1", NOW)
        for i in range(3):
            state.add_exchange(f"ข้อความ {i}", f"ตอบ {i}")
        await memory_store.save(state, NOW)

        saved = await memory_store.load("U1", NOW)

        assert len(saved.messages) == 4
        assert saved.messages[0].text == "ข้อความ 1"

    @pytest.mark.asyncio
    async def test_senders_are_isolated_and_clearable(self, memory_store):
        first = await memory_store.load("U1", NOW)
        first.add_exchange("a", "b")
        await memory_store.save(first, NOW)

        assert (await memory_store.load("U2", NOW)).messages == []

        await memory_store.clear("U1")
        assert (await memory_store.load("U1", NOW)).messages == []
