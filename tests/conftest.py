"""Shared fixtures: scripted model, fixed clock, seeded in-memory store"""

import asyncio
import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import pytest

from line_agent.agents.actions import build_default_registry
from line_agent.agents.dispatcher import Dispatcher
from line_agent.agents.reply_renderer import ReplyRenderer
from line_agent.exceptions import ExtractionError
from line_agent.interfaces.conversation_store import ConversationStore
from line_agent.interfaces.school_store import InMemorySchoolStore
from line_agent.llm.intent_extractor import IntentExtractor
from line_agent.llm.model_client import RawModelOutput
from line_agent.llm.reply_phraser import ReplyPhraser
from line_agent.schemas.agent_schemas import KnowledgeEntry, UserAccount, UserRole


BANGKOK = ZoneInfo("Asia/Bangkok")
NOW = datetime(2025, 12, 20, 10, 0, tzinfo=BANGKOK)


def at(day: int, hour: int, minute: int = 0, month: int = 12) -> datetime:
    return datetime(2025, month, day, hour, minute, tzinfo=BANGKOK)


def tool(name: str, **arguments: Any) -> RawModelOutput:
    """Model output carrying a function call"""
    return RawModelOutput(tool_name=name, tool_arguments=json.dumps(arguments, ensure_ascii=False))


def say(text: str) -> RawModelOutput:
    """Model output carrying plain text"""
    return RawModelOutput(text=text)


class ScriptedModel:
    """GenerationModel fake that replays canned outputs in order"""

    def __init__(self, *outputs, delay: float = 0.0):
        self.outputs: List[Any] = list(outputs)
        self.calls: List[Dict[str, Any]] = []
        self.delay = delay

    async def complete(self, messages, tools=None) -> RawModelOutput:
        self.calls.append({"messages": messages, "tools": tools})
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.outputs:
            raise ExtractionError("script exhausted")
        output = self.outputs.pop(0)
        if isinstance(output, Exception):
            raise output
        return output


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def account():
    return UserAccount(uid="u-1", display_name="ครูสมศรี", email="somsri@school.ac.th")


@pytest.fixture
def admin():
    return UserAccount(
        uid="u-9", display_name="ผู้ดูแล", email="admin@school.ac.th", role=UserRole.ADMIN
    )


@pytest.fixture
def store():
    store = InMemorySchoolStore()
    store.knowledge.append(KnowledgeEntry(
        id="kb-1",
        question="วิธีเปิดโปรเจคเตอร์",
        answer="กดปุ่ม Power ที่รีโมทค้างไว้ 3 วินาที แล้วเลือก Input เป็น HDMI",
        category="projector",
        keywords=["โปรเจคเตอร์", "projector"],
    ))
    return store


@pytest.fixture
def registry(store, clock):
    return build_default_registry(store, clock)


@pytest.fixture
def conversations():
    return ConversationStore(use_redis=False)


@pytest.fixture
def make_dispatcher(registry, conversations, clock):
    """Dispatcher factory around a scripted model"""

    def factory(model: ScriptedModel, model_timeout: Optional[float] = None, handler_timeout: Optional[float] = None):
        return Dispatcher(
            registry=registry,
            extractor=IntentExtractor(registry, model, clock=clock),
            renderer=ReplyRenderer(web_app_url="https://crms6it.vercel.app"),
            conversations=conversations,
            phraser=ReplyPhraser(model, timeout=1.0),
            clock=clock,
            model_timeout=model_timeout,
            handler_timeout=handler_timeout,
        )

    return factory
