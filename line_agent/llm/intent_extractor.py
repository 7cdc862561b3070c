# llm/intent_extractor.py
"""
Intent & Slot Extractor
Turns one LINE message (plus short history) into either:
- a conversational reply with no action, or
- an ActionInvocation naming a registered action with best-effort arguments

Relative dates and Thai times are resolved here, against the local
clock, so domain handlers always receive YYYY-MM-DD / HH:MM values.
Whether the arguments are complete is decided by the registry validator.
"""

import json
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, TYPE_CHECKING

from loguru import logger

from ..agents.catalogue import ROOMS, describe_rooms, resolve_room, resolve_side
from ..exceptions import ExtractionError
from ..schemas.agent_schemas import (
    ActionInvocation,
    ArgumentType,
    ConversationTurn,
    ExtractionResult,
    ImagePayload,
    PendingInvocation,
    Room,
    UserAccount,
)
from ..utils.thai_dates import format_thai_date, now_local, resolve_date, resolve_time
from .model_client import GenerationModel, RawModelOutput
from .prompts import CONFIRM_NOTE, IMAGE_NOTE, PENDING_NOTE, SYSTEM_PROMPT

if TYPE_CHECKING:
    from ..agents.registry import ActionRegistry


# Upper-case intent names used by the older JSON-in-text protocol
LEGACY_INTENTS = {
    "CHECK_ROOM_SCHEDULE": "check_room_schedule",
    "CHECK_AVAILABILITY": "check_availability",
    "BOOK_ROOM": "book_room",
    "MY_BOOKINGS": "my_bookings",
    "MY_WORK": "my_photo_jobs",
    "MY_PHOTO_JOBS": "my_photo_jobs",
    "CREATE_REPAIR": "create_repair",
    "CHECK_REPAIR": "check_repair",
    "GALLERY_SEARCH": "gallery_search",
    "DAILY_SUMMARY": "daily_summary",
    "ASK_KNOWLEDGE_BASE": "ask_knowledge_base",
    "FAQ": "ask_knowledge_base",
}

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)

# Stands in for an attached image when pending arguments are shown to the model
IMAGE_PLACEHOLDER = "<แนบรูปภาพแล้ว>"


def _snake(name: str) -> str:
    return _CAMEL.sub("_", name).lower()


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class IntentExtractor:
    """
    Builds the prompt, calls the generation model and parses its answer.
    Raises ExtractionError when the model fails or its output is malformed.
    """

    def __init__(
        self,
        registry: "ActionRegistry",
        model: GenerationModel,
        rooms: Sequence[Room] = ROOMS,
        clock: Callable[[], datetime] = now_local,
    ):
        self.registry = registry
        self.model = model
        self.rooms = list(rooms)
        self.clock = clock

    # ============================================
    # Prompt assembly
    # ============================================

    def build_messages(
        self,
        text: str,
        image: Optional[ImagePayload] = None,
        account: Optional[UserAccount] = None,
        history: Sequence[ConversationTurn] = (),
        pending: Optional[PendingInvocation] = None,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        now = now or self.clock()
        caller = f"{account.display_name} ({account.role.value})" if account else "ยังไม่ได้ผูกบัญชี"
        system = SYSTEM_PROMPT.format(
            actions=self.registry.describe_for_prompt(),
            rooms=describe_rooms(self.rooms),
            today_thai=format_thai_date(now, short_month=False),
            today_iso=now.date().isoformat(),
            caller=caller,
        )
        if pending:
            known = {
                k: (IMAGE_PLACEHOLDER if isinstance(v, str) and v.startswith("data:") else v)
                for k, v in pending.arguments.items()
            }
            if pending.awaiting_confirmation:
                system += "\n\n" + CONFIRM_NOTE.format(
                    action=pending.name,
                    arguments=json.dumps(known, ensure_ascii=False),
                )
            else:
                system += "\n\n" + PENDING_NOTE.format(
                    action=pending.name,
                    arguments=json.dumps(known, ensure_ascii=False),
                    missing=", ".join(pending.missing) or "-",
                )
        if image:
            system += "\n\n" + IMAGE_NOTE

        messages: List[Dict[str, Any]] = [{"role": "system", "content": system}]
        for turn in history:
            messages.append({"role": turn.role, "content": turn.text})

        if image:
            messages.append({
                "role": "user",
                "content": [
                    {"type": "text", "text": text or "ช่วยดูรูปนี้หน่อย"},
                    {"type": "image_url", "image_url": {"url": image.data_url}},
                ],
            })
        else:
            messages.append({"role": "user", "content": text})
        return messages

    # ============================================
    # Extraction
    # ============================================

    async def extract(
        self,
        text: str,
        image: Optional[ImagePayload] = None,
        account: Optional[UserAccount] = None,
        history: Sequence[ConversationTurn] = (),
        pending: Optional[PendingInvocation] = None,
    ) -> ExtractionResult:
        """
        Extract an intent from one message.

        Returns:
            ExtractionResult with either ``invocation``, ``unknown_action``
            or only ``reply_text`` set
        """
        now = self.clock()
        messages = self.build_messages(text, image, account, history, pending, now)
        raw = await self.model.complete(messages, self.registry.tool_schemas())

        name, arguments, reply_text = self._parse(raw)

        if name is None:
            logger.info("Extraction: no action, conversational reply")
            return ExtractionResult(reply_text=reply_text, raw_text=raw.text)

        action = LEGACY_INTENTS.get(name, name.strip().lower())
        entry = self.registry.get(action)
        if entry is None:
            logger.warning(f"Extraction: model named unknown action '{name}'")
            return ExtractionResult(unknown_action=name, reply_text=reply_text, raw_text=raw.text)

        arguments = self._rename_arguments(arguments, [a.name for a in entry.descriptor.arguments])

        if pending and pending.name == action:
            merged = dict(pending.arguments)
            merged.update({k: v for k, v in arguments.items() if not _is_blank(v) and v != IMAGE_PLACEHOLDER})
            arguments = merged
            logger.debug(f"Merged pending arguments for {action}")

        arguments = self.normalize(entry.descriptor.arguments, arguments, now)

        if image and action == "create_repair" and _is_blank(arguments.get("image_url")):
            arguments["image_url"] = image.data_url

        logger.info(f"Extraction: action={action}, arguments={sorted(arguments)}")
        return ExtractionResult(
            invocation=ActionInvocation(name=action, arguments=arguments),
            reply_text=reply_text,
            raw_text=raw.text,
        )

    def _parse(self, raw: RawModelOutput):
        """(action name or None, argument dict, leftover reply text)"""
        text = (raw.text or "").strip()

        if raw.has_tool_call:
            try:
                arguments = json.loads(raw.tool_arguments or "{}")
            except json.JSONDecodeError as e:
                raise ExtractionError(f"tool arguments are not JSON: {e}") from e
            if not isinstance(arguments, dict):
                raise ExtractionError("tool arguments are not an object")
            return raw.tool_name, arguments, text or None

        if not text:
            raise ExtractionError("model returned an empty reply")

        cleaned = _CODE_FENCE.sub("", text).strip()
        match = _JSON_OBJECT.search(cleaned)
        if match:
            try:
                payload = json.loads(match.group(0))
            except json.JSONDecodeError as e:
                if cleaned.startswith("{"):
                    raise ExtractionError(f"model output is malformed JSON: {e}") from e
                # Braces inside ordinary prose
                return None, {}, text

            if isinstance(payload, dict) and (payload.get("intent") or payload.get("action")):
                name = str(payload.get("intent") or payload.get("action"))
                params = payload.get("params") or payload.get("arguments") or {}
                if not isinstance(params, dict):
                    raise ExtractionError("params is not an object")
                leftover = (cleaned[:match.start()] + cleaned[match.end():]).strip()
                return name, params, leftover or None

            if cleaned.startswith("{"):
                raise ExtractionError("JSON reply without an intent")

        return None, {}, text

    @staticmethod
    def _rename_arguments(arguments: Dict[str, Any], declared: List[str]) -> Dict[str, Any]:
        """camelCase -> snake_case, and the legacy ``room`` key for room-id actions"""
        renamed: Dict[str, Any] = {}
        for key, value in arguments.items():
            name = _snake(str(key))
            if name == "room" and "room" not in declared and "room_id" in declared:
                name = "room_id"
            renamed[name] = value
        return renamed

    def normalize(self, specs, arguments: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        """
        Resolve dates, times, rooms and sides to canonical values.
        Values that cannot be resolved are left as-is for the validator.
        """
        result = dict(arguments)
        for spec in specs:
            value = result.get(spec.name)
            if _is_blank(value) or not isinstance(value, str):
                continue

            if spec.type == ArgumentType.DATE:
                resolved = resolve_date(value, now)
            elif spec.type == ArgumentType.TIME:
                resolved = resolve_time(value)
            elif spec.name == "room_id":
                resolved = resolve_room(value, self.rooms)
            elif spec.name == "side":
                resolved = resolve_side(value)
            else:
                resolved = value.strip()

            if resolved is not None:
                result[spec.name] = resolved
            else:
                logger.debug(f"Could not normalise {spec.name}={value!r}")
        return result
