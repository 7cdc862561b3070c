# llm/reply_phraser.py
"""
Reply Phraser
- Clarifying questions that name exactly which slots are missing or wrong
- Second model call that phrases knowledge-base answers in natural Thai
- Second model call that suggests first-aid steps from a repair photo

Clarifying questions are templated so they stay precise. Answer phrasing
and troubleshooting use the model and fall back to None on any failure,
so the renderer's template takes over.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from ..agents.catalogue import ROOMS
from ..config import settings
from ..exceptions import ExtractionError
from ..schemas.agent_schemas import ActionDescriptor, ActionResult, KnowledgeEntry, ValidationIssue
from ..utils.text_helpers import truncate_text
from .model_client import GenerationModel
from .prompts import ANSWER_PROMPT, TROUBLESHOOT_PROMPT


ARGUMENT_LABELS: Dict[str, str] = {
    "room_id": "ห้อง",
    "date": "วันที่",
    "start_time": "เวลาเริ่ม",
    "end_time": "เวลาสิ้นสุด",
    "title": "หัวข้อการประชุม",
    "description": "อาการเสีย",
    "room": "ห้องหรือสถานที่",
    "side": "ฝั่งอาคาร (ม.ต้น หรือ ม.ปลาย)",
    "keyword": "คำค้นหา",
    "question": "คำถาม",
    "ticket_id": "เลข Ticket",
}

# Asked when exactly one slot is missing
SINGLE_QUESTIONS: Dict[str, str] = {
    "room_id": "ต้องการใช้ห้องไหนคะ?",
    "date": "ต้องการวันที่เท่าไหร่คะ?",
    "start_time": "เริ่มกี่โมงคะ?",
    "end_time": "ใช้ห้องถึงกี่โมงคะ?",
    "description": "อุปกรณ์มีอาการเสียอย่างไรคะ?",
    "room": "อุปกรณ์อยู่ห้องไหนคะ?",
    "side": "อยู่ฝั่ง ม.ต้น หรือ ม.ปลาย คะ?",
    "keyword": "ต้องการค้นหาภาพกิจกรรมอะไรคะ?",
    "question": "ต้องการสอบถามเรื่องอะไรคะ?",
}


def label(argument: str) -> str:
    return ARGUMENT_LABELS.get(argument, argument)


def clarifying_question(descriptor: Optional[ActionDescriptor], issues: Sequence[ValidationIssue]) -> str:
    """
    Build one question covering every issue.

    A single missing slot gets a direct question ("ต้องการใช้ห้องไหนคะ?");
    several issues are listed together.
    """
    missing = [i.argument for i in issues if i.code == "missing"]
    invalid = [i for i in issues if i.code != "missing"]

    if len(missing) == 1 and not invalid:
        argument = missing[0]
        question = SINGLE_QUESTIONS.get(argument, f"ขอทราบ{label(argument)}ด้วยค่ะ")
        if argument == "room_id":
            question += "\n" + "\n".join(f"- {room.name}" for room in ROOMS)
        return question

    lines: List[str] = ["ขอข้อมูลเพิ่มอีกนิดนะคะ"]
    if missing:
        lines.append(f"ยังขาด: {', '.join(label(a) for a in missing)}")
    for issue in invalid:
        if issue.argument == "room_id":
            lines.append("ไม่พบห้องที่ระบุ กรุณาเลือกจาก: " + ", ".join(room.name for room in ROOMS))
        else:
            lines.append(f"{label(issue.argument)} ไม่ถูกต้อง กรุณาระบุใหม่ค่ะ")
    if descriptor is not None:
        lines.append("(พิมพ์ \"ยกเลิก\" เพื่อยกเลิกรายการ)")
    return "\n".join(lines)


class ReplyPhraser:
    """Second, optional model call used after an action has produced data"""

    MAX_ADVICE_CHARS = 2000

    def __init__(self, model: GenerationModel, timeout: Optional[float] = None):
        self.model = model
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS

    async def phrase_result(self, result: ActionResult, arguments: Dict[str, Any]) -> Optional[str]:
        """Natural-language answer for a successful result, if this kind of payload supports one"""
        if not result.success or not isinstance(result.payload, dict):
            return None
        entries = result.payload.get("entries")
        if entries is None:
            return None
        return await self.phrase_answer(arguments.get("question", ""), entries)

    async def phrase_answer(self, question: str, entries: Sequence[KnowledgeEntry]) -> Optional[str]:
        """
        Phrase an answer from knowledge-base entries.

        Returns:
            The phrased answer, or None when the model fails or times out
        """
        if not entries:
            return None

        knowledge = "\n\n".join(f"ถาม: {e.question}\nตอบ: {e.answer}" for e in entries)
        prompt = ANSWER_PROMPT.format(question=question, knowledge=knowledge)
        return await self._complete([{"role": "user", "content": prompt}], "Answer phrasing")

    async def troubleshoot(self, description: str, image_url: str) -> Optional[str]:
        """
        First-aid suggestions for a fault, read from the photo the sender attached.

        Returns:
            The suggestions, or None when the model fails or times out
        """
        prompt = TROUBLESHOOT_PROMPT.format(description=description)
        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ],
        }]
        text = await self._complete(messages, "Troubleshooting")
        return truncate_text(text, self.MAX_ADVICE_CHARS) if text else None

    async def _complete(self, messages: List[Dict[str, Any]], purpose: str) -> Optional[str]:
        try:
            raw = await asyncio.wait_for(self.model.complete(messages), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"{purpose} timed out after {self.timeout}s")
            return None
        except ExtractionError as e:
            logger.error(f"{purpose} failed: {e}")
            return None

        text = (raw.text or "").strip()
        return text or None
