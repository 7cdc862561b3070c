"""Tests for the intent & slot extractor"""

import pytest

from conftest import ScriptedModel, say, tool, NOW
from line_agent.exceptions import ExtractionError
from line_agent.llm.intent_extractor import IntentExtractor
from line_agent.llm.model_client import RawModelOutput
from line_agent.schemas.agent_schemas import ConversationTurn, ImagePayload, PendingInvocation


def _extractor(registry, clock, *outputs):
    model = ScriptedModel(*outputs)
    return IntentExtractor(registry, model, clock=clock), model


class TestToolCalls:
    @pytest.mark.asyncio
    async def test_relative_date_and_thai_time_are_resolved(self, registry, clock):
        extractor, _ = _extractor(registry, clock, tool("book_room", date="พรุ่งนี้", start_time="บ่ายสอง"))

        result = await extractor.extract("ขอจองห้องประชุมพรุ่งนี้บ่ายสอง")

        assert result.invocation.name == "book_room"
        assert result.invocation.arguments == {"date": "2025-12-21", "start_time": "14:00"}

    @pytest.mark.asyncio
    async def test_room_alias_becomes_room_id(self, registry, clock):
        extractor, _ = _extractor(registry, clock, tool("check_room_schedule", room_id="ลีลาวดี", date="today"))

        result = await extractor.extract("วันนี้ห้องลีลาวดีว่างไหม")

        assert result.invocation.arguments == {"room_id": "sh_leelawadee", "date": "2025-12-20"}

    @pytest.mark.asyncio
    async def test_unresolvable_room_is_left_for_the_validator(self, registry, clock):
        extractor, _ = _extractor(registry, clock, tool("check_room_schedule", room_id="ห้องสมุด"))

        result = await extractor.extract("ห้องสมุดว่างไหม")

        assert result.invocation.arguments["room_id"] == "ห้องสมุด"

    @pytest.mark.asyncio
    async def test_side_alias(self, registry, clock):
        extractor, _ = _extractor(
            registry, clock,
            tool("create_repair", description="ไมค์ไม่มีเสียง", room="ห้อง 204", side="ม.ปลาย"),
        )

        result = await extractor.extract("แจ้งซ่อมไมค์ห้อง 204 ม.ปลาย")

        assert result.invocation.arguments["side"] == "senior_high"

    @pytest.mark.asyncio
    async def test_unknown_action_fails_closed(self, registry, clock):
        extractor, _ = _extractor(registry, clock, tool("order_pizza", size="L"))

        result = await extractor.extract("สั่งพิซซ่าให้หน่อย")

        assert result.invocation is None
        assert result.unknown_action == "order_pizza"

    @pytest.mark.asyncio
    async def test_malformed_tool_arguments(self, registry, clock):
        broken = RawModelOutput(tool_name="book_room", tool_arguments="{room_id: ")
        extractor, _ = _extractor(registry, clock, broken)

        with pytest.raises(ExtractionError):
            await extractor.extract("จองห้อง")

    @pytest.mark.asyncio
    async def test_image_is_attached_to_repair(self, registry, clock):
        extractor, model = _extractor(
            registry, clock,
            tool("create_repair", description="จอภาพกระพริบ", room="ห้อง 301", side="junior_high"),
        )
        image = ImagePayload(data=b"\xff\xd8\xff", mime_type="image/jpeg")

        result = await extractor.extract("จอเป็นแบบนี้ค่ะ", image=image)

        assert result.invocation.arguments["image_url"].startswith("data:image/jpeg;base64,")
        user_content = model.calls[0]["messages"][-1]["content"]
        assert user_content[1]["type"] == "image_url"


class TestTextProtocol:
    @pytest.mark.asyncio
    async def test_legacy_json_intent(self, registry, clock):
        extractor, _ = _extractor(
            registry, clock,
            say('{"intent": "CHECK_ROOM_SCHEDULE", "params": {"room": "หอประชุม", "date": "tomorrow"}, "execute": true}'),
        )

        result = await extractor.extract("ขอตารางหอประชุมพรุ่งนี้หน่อย")

        assert result.invocation.name == "check_room_schedule"
        assert result.invocation.arguments == {"room_id": "sh_auditorium", "date": "2025-12-21"}

    @pytest.mark.asyncio
    async def test_json_in_code_fence_with_camel_case_params(self, registry, clock):
        extractor, _ = _extractor(
            registry, clock,
            say('```json\n{"intent": "CHECK_AVAILABILITY", "params": {"room": "จามจุรี", "date": "2025-12-22", '
                '"startTime": "9 โมง", "endTime": "12:00"}}\n```'),
        )

        result = await extractor.extract("จามจุรีว่างไหม 22 ธันวา 9 โมงถึงเที่ยง")

        assert result.invocation.arguments == {
            "room_id": "jamjuree",
            "date": "2025-12-22",
            "start_time": "09:00",
            "end_time": "12:00",
        }

    @pytest.mark.asyncio
    async def test_plain_reply(self, registry, clock):
        extractor, _ = _extractor(registry, clock, say("สวัสดีค่ะ มีอะไรให้ช่วยไหมคะ"))

        result = await extractor.extract("สวัสดีครับ")

        assert result.invocation is None
        assert result.unknown_action is None
        assert result.reply_text == "สวัสดีค่ะ มีอะไรให้ช่วยไหมคะ"

    @pytest.mark.asyncio
    async def test_malformed_json_reply(self, registry, clock):
        extractor, _ = _extractor(registry, clock, say('{"intent": "BOOK_ROOM", "params": {"room": }}'))

        with pytest.raises(ExtractionError):
            await extractor.extract("จองห้อง")

    @pytest.mark.asyncio
    async def test_empty_reply(self, registry, clock):
        extractor, _ = _extractor(registry, clock, say(""))

        with pytest.raises(ExtractionError):
            await extractor.extract("...")


class TestContext:
    @pytest.mark.asyncio
    async def test_pending_arguments_are_merged(self, registry, clock):
        extractor, model = _extractor(registry, clock, tool("book_room", room_id="ห้องจามจุรี"))
        pending = PendingInvocation(
            name="book_room",
            arguments={"date": "2025-12-21", "start_time": "14:00"},
            missing=["room_id"],
        )

        result = await extractor.extract("ห้องจามจุรีค่ะ", pending=pending)

        assert result.invocation.arguments == {
            "date": "2025-12-21",
            "start_time": "14:00",
            "room_id": "jamjuree",
        }
        assert "book_room" in model.calls[0]["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_prompt_carries_catalogue_date_and_history(self, registry, clock, account):
        extractor, model = _extractor(registry, clock, say("ได้เลยค่ะ"))
        history = [
            ConversationTurn(sender_id="U1", role="user", text="สวัสดี"),
            ConversationTurn(sender_id="U1", role="assistant", text="สวัสดีค่ะ"),
        ]

        await extractor.extract("ขอบคุณ", account=account, history=history)

        messages = model.calls[0]["messages"]
        system = messages[0]["content"]
        assert "ห้องประชุมลีลาวดี" in system
        assert NOW.date().isoformat() in system
        assert "2568" in system
        assert "ครูสมศรี" in system
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert len(model.calls[0]["tools"]) == len(registry)

    @pytest.mark.asyncio
    async def test_confirmation_note_keeps_image_data_out_of_prompt(self, registry, clock):
        extractor, model = _extractor(registry, clock, tool("create_repair", room="ห้อง 305"))
        pending = PendingInvocation(
            name="create_repair",
            arguments={
                "description": "จอไม่ขึ้น",
                "room": "ห้อง 301",
                "side": "junior_high",
                "image_url": "data:image/jpeg;base64,AAAA",
            },
            awaiting_confirmation=True,
        )

        result = await extractor.extract("ขอแก้เป็นห้อง 305", pending=pending)

        system = model.calls[0]["messages"][0]["content"]
        assert "base64" not in system
        assert "<แนบรูปภาพแล้ว>" in system
        assert result.invocation.arguments["room"] == "ห้อง 305"
        assert result.invocation.arguments["image_url"] == "data:image/jpeg;base64,AAAA"
