# agents/dispatcher.py
"""
Dispatcher (chat-facing)
Turns one inbound LINE message into exactly one outbound reply:

    Idle -> Extracting -> (NoAction | Validating)
         -> (Invalid -> Clarifying) | (Valid -> Executing) -> Rendering -> Done

Uses:
- IntentExtractor for the first model call
- ActionRegistry as the only validation gate
- ConversationStore for short-lived history, partial invocations,
  invocations awaiting "ยืนยัน" and pending gallery selections
- ReplyPhraser for the optional second model call (answers, repair advice)
- ReplyRenderer for the LINE payload

Every failure path ends in a user-visible reply; nothing is retried.
"""

import asyncio
import re
from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from ..config import settings
from ..exceptions import ActionValidationError, ExtractionError, TransportError
from ..interfaces.conversation_store import ConversationState, ConversationStore
from ..llm.intent_extractor import IntentExtractor
from ..llm.reply_phraser import ReplyPhraser, clarifying_question
from ..schemas.agent_schemas import (
    ActionInvocation,
    ActionResult,
    CardReply,
    DispatchOutcome,
    DispatchState,
    ImagePayload,
    OutboundReply,
    PendingInvocation,
    TextReply,
    UserAccount,
    ValidationIssue,
)
from ..utils.text_helpers import sanitize_arguments
from ..utils.thai_dates import now_local
from .registry import ActionRegistry
from .reply_renderer import CANCELLED, GENERIC_APOLOGY, NOT_SURE, TRY_AGAIN_LATER, ReplyRenderer


BINDING_KEYWORDS = [
    "ผูกบัญชี", "ผูกรึยัง", "ผูกหรือยัง", "ผูกแล้วยัง", "ผูกไลน์",
    "เชื่อมบัญชี", "เชื่อมต่อบัญชี", "สถานะบัญชี",
]
CANCEL_WORDS = {"ยกเลิก", "ไม่เอา", "ไม่เอาแล้ว", "พอแล้ว", "cancel", "stop"}
CONFIRM_WORDS = {"ยืนยัน", "ใช่", "ตกลง", "ok", "yes", "confirm"}

_POLITE_ENDING = re.compile(r"(ค่ะ|คะ|ครับ|จ้า|นะ)+$")


def _reply_word(text: str) -> str:
    """Short reply reduced to its keyword, e.g. "ยืนยันค่ะ" becomes "ยืนยัน" """
    word = text.strip().lower().rstrip(" !.")
    return _POLITE_ENDING.sub("", word).strip()


def _reply_text(reply: OutboundReply) -> str:
    return reply.alt_text if isinstance(reply, CardReply) else reply.body


class Dispatcher:
    """
    Orchestrates one request end-to-end.
    Collaborators are injected so tests can substitute fakes.
    """

    def __init__(
        self,
        registry: ActionRegistry,
        extractor: IntentExtractor,
        renderer: Optional[ReplyRenderer] = None,
        conversations: Optional[ConversationStore] = None,
        phraser: Optional[ReplyPhraser] = None,
        clock: Callable[[], datetime] = now_local,
        model_timeout: Optional[float] = None,
        handler_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.extractor = extractor
        self.renderer = renderer or ReplyRenderer()
        self.conversations = conversations or ConversationStore(use_redis=False)
        self.phraser = phraser
        self.clock = clock
        self.model_timeout = model_timeout or settings.LLM_TIMEOUT_SECONDS
        self.handler_timeout = handler_timeout or settings.HANDLER_TIMEOUT_SECONDS

    # ============================================
    # Entry points
    # ============================================

    async def handle_message(
        self,
        account: Optional[UserAccount],
        text: str,
        image: Optional[ImagePayload] = None,
        sender_id: Optional[str] = None,
    ) -> OutboundReply:
        """Process one message; never raises"""
        try:
            outcome = await self.run(account, text, image, sender_id)
        except Exception as e:
            logger.exception(f"Dispatcher crashed on message from {sender_id}: {e}")
            return TextReply(body=GENERIC_APOLOGY)
        return outcome.reply

    async def run(
        self,
        account: Optional[UserAccount],
        text: str,
        image: Optional[ImagePayload] = None,
        sender_id: Optional[str] = None,
    ) -> DispatchOutcome:
        """Process one message and report the full state trace"""
        sender = sender_id or (account.uid if account else "anonymous")
        text = (text or "").strip()
        trace: List[DispatchState] = [DispatchState.IDLE]
        state = await self.conversations.load(sender, self.clock())

        if self._is_confirmation(text, image, state):
            return await self._run_confirmed(account, text, state, trace)

        shortcut = self._shortcut(account, text, image, state)
        if shortcut is not None:
            trace += [DispatchState.RENDERING, DispatchState.DONE]
            return await self._finish(state, text, image, shortcut, trace)

        # ---------- Extracting ----------
        trace.append(DispatchState.EXTRACTING)
        state.gallery_results = []
        try:
            extraction = await asyncio.wait_for(
                self.extractor.extract(
                    text,
                    image=image,
                    account=account,
                    history=state.messages,
                    pending=state.pending,
                ),
                timeout=self.model_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Extraction timed out after {self.model_timeout}s for {sender}")
            trace.append(DispatchState.CLARIFYING)
            return await self._finish(state, text, image, TextReply(body=GENERIC_APOLOGY), trace)
        except ExtractionError as e:
            logger.error(f"Extraction failed for {sender}: {e}")
            trace.append(DispatchState.CLARIFYING)
            return await self._finish(state, text, image, TextReply(body=GENERIC_APOLOGY), trace)

        if extraction.invocation is None:
            trace.append(DispatchState.NO_ACTION)
            if extraction.unknown_action or not extraction.reply_text:
                trace.append(DispatchState.CLARIFYING)
                return await self._finish(state, text, image, TextReply(body=NOT_SURE), trace)
            trace += [DispatchState.RENDERING, DispatchState.DONE]
            return await self._finish(state, text, image, self.renderer.text(extraction.reply_text), trace)

        # ---------- Validating ----------
        trace.append(DispatchState.VALIDATING)
        candidate = extraction.invocation
        entry = self.registry.get(candidate.name)

        if entry is not None and entry.requires_account and account is None:
            logger.info(f"{candidate.name} needs a bound account, redirecting {sender} to registration")
            state.pending = None
            trace += [DispatchState.INVALID, DispatchState.CLARIFYING]
            return await self._finish(state, text, image, self.renderer.registration(), trace, invocation=candidate)

        try:
            invocation = self.registry.validate(candidate)
        except ActionValidationError as e:
            logger.info(f"Validation failed for {e.action}: {[f'{i.argument}:{i.code}' for i in e.issues]}")
            trace += [DispatchState.INVALID, DispatchState.CLARIFYING]
            bad = {issue.argument for issue in e.issues}
            state.pending = PendingInvocation(
                name=candidate.name,
                arguments={k: v for k, v in candidate.arguments.items() if k not in bad},
                missing=[issue.argument for issue in e.issues],
            )
            reply = TextReply(body=clarifying_question(entry.descriptor if entry else None, e.issues))
            return await self._finish(state, text, image, reply, trace, invocation=candidate, issues=e.issues)

        trace.append(DispatchState.VALID)

        if entry.confirm_before_run:
            return await self._ask_confirmation(invocation, text, image, state, trace)

        return await self._execute(entry, invocation, account, text, image, state, trace)

    # ============================================
    # Confirmation
    # ============================================

    def _is_confirmation(self, text: str, image: Optional[ImagePayload], state: ConversationState) -> bool:
        pending = state.pending
        if image is not None or pending is None or not pending.awaiting_confirmation:
            return False
        return _reply_word(text) in CONFIRM_WORDS

    async def _ask_confirmation(
        self,
        invocation: ActionInvocation,
        text: str,
        image: Optional[ImagePayload],
        state: ConversationState,
        trace: List[DispatchState],
    ) -> DispatchOutcome:
        """Park a validated invocation until the sender confirms it"""
        state.pending = PendingInvocation(
            name=invocation.name,
            arguments=invocation.arguments,
            awaiting_confirmation=True,
        )

        advice = None
        image_url = invocation.arguments.get("image_url")
        if image is not None and image_url and self.phraser is not None:
            advice = await self.phraser.troubleshoot(invocation.arguments.get("description", ""), image_url)

        logger.info(f"{invocation.name} for {state.sender_id} is waiting for confirmation")
        trace.append(DispatchState.CLARIFYING)
        reply = self.renderer.confirmation(invocation, advice)
        return await self._finish(state, text, image, reply, trace, invocation=invocation)

    async def _run_confirmed(
        self,
        account: Optional[UserAccount],
        text: str,
        state: ConversationState,
        trace: List[DispatchState],
    ) -> DispatchOutcome:
        """Execute the invocation the sender just confirmed"""
        pending = state.pending
        state.pending = None
        logger.info(f"{pending.name} confirmed by {state.sender_id}")

        trace.append(DispatchState.VALIDATING)
        candidate = ActionInvocation(name=pending.name, arguments=pending.arguments)
        entry = self.registry.get(candidate.name)

        if entry is not None and entry.requires_account and account is None:
            trace += [DispatchState.INVALID, DispatchState.CLARIFYING]
            return await self._finish(state, text, None, self.renderer.registration(), trace, invocation=candidate)

        try:
            invocation = self.registry.validate(candidate)
        except ActionValidationError as e:
            logger.warning(f"Confirmed {e.action} no longer validates: {[f'{i.argument}:{i.code}' for i in e.issues]}")
            trace += [DispatchState.INVALID, DispatchState.CLARIFYING]
            return await self._finish(
                state, text, None, TextReply(body=NOT_SURE), trace, invocation=candidate, issues=e.issues
            )

        trace.append(DispatchState.VALID)
        return await self._execute(entry, invocation, account, text, None, state, trace)

    # ============================================
    # Execution
    # ============================================

    async def _execute(
        self,
        entry,
        invocation: ActionInvocation,
        account: Optional[UserAccount],
        text: str,
        image: Optional[ImagePayload],
        state: ConversationState,
        trace: List[DispatchState],
    ) -> DispatchOutcome:
        # ---------- Executing ----------
        trace.append(DispatchState.EXECUTING)
        state.pending = None
        try:
            result = await asyncio.wait_for(
                entry.handler(invocation.arguments, account),
                timeout=self.handler_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Handler {invocation.name} timed out after {self.handler_timeout}s, "
                f"args={sanitize_arguments(invocation.arguments)}"
            )
            trace.append(DispatchState.CLARIFYING)
            return await self._finish(state, text, image, TextReply(body=TRY_AGAIN_LATER), trace, invocation=invocation)
        except TransportError as e:
            logger.error(
                f"Transport failure in {invocation.name}: {e}, "
                f"args={sanitize_arguments(invocation.arguments)}"
            )
            trace.append(DispatchState.CLARIFYING)
            return await self._finish(state, text, image, TextReply(body=TRY_AGAIN_LATER), trace, invocation=invocation)

        if not result.success:
            logger.info(f"{invocation.name} rejected: {result.reason}")

        # ---------- Rendering ----------
        trace.append(DispatchState.RENDERING)
        result = self._rank(entry, result, invocation)

        if invocation.name == "gallery_search":
            state.gallery_results = list(result.payload) if result.success and len(result.payload or []) > 1 else []

        phrased = None
        if entry.phrase_with_model and result.success and self.phraser is not None:
            phrased = await self.phraser.phrase_result(result, invocation.arguments)

        reply = self.renderer.render(result, invocation.arguments, phrased)
        trace.append(DispatchState.DONE)
        return await self._finish(state, text, image, reply, trace, invocation=invocation, result=result)

    # ============================================
    # Helpers
    # ============================================

    def _shortcut(
        self,
        account: Optional[UserAccount],
        text: str,
        image: Optional[ImagePayload],
        state: ConversationState,
    ) -> Optional[OutboundReply]:
        """Replies that do not need the model"""
        if image is not None or not text:
            return None

        if any(keyword in text for keyword in BINDING_KEYWORDS):
            return self.renderer.binding_status(account)

        if state.pending is not None and _reply_word(text) in CANCEL_WORDS:
            logger.info(f"Pending {state.pending.name} cancelled by {state.sender_id}")
            state.pending = None
            return TextReply(body=CANCELLED)

        # a number answering a clarifying question is not a gallery pick
        if state.gallery_results and state.pending is None and text.isdecimal():
            index = int(text)
            count = len(state.gallery_results)
            if 1 <= index <= count:
                job = state.gallery_results[index - 1]
                state.gallery_results = []
                return self.renderer.gallery_detail(job)
            return TextReply(body=f"กรุณาเลือกหมายเลข 1-{count} ค่ะ")

        return None

    def _rank(self, entry, result: ActionResult, invocation: ActionInvocation) -> ActionResult:
        """Order multi-candidate payloads before rendering"""
        if entry.ranker is None or not result.success or not isinstance(result.payload, list):
            return result
        if len(result.payload) < 2:
            return result
        ranked = entry.ranker(result.payload, invocation.arguments, self.clock())
        return result.model_copy(update={"payload": ranked})

    async def _finish(
        self,
        state: ConversationState,
        text: str,
        image: Optional[ImagePayload],
        reply: OutboundReply,
        trace: List[DispatchState],
        invocation: Optional[ActionInvocation] = None,
        result: Optional[ActionResult] = None,
        issues: Optional[List[ValidationIssue]] = None,
    ) -> DispatchOutcome:
        state.add_exchange(text or "[รูปภาพ]", _reply_text(reply), has_image=image is not None)
        await self.conversations.save(state, self.clock())

        final_state = trace[-1]
        logger.info(f"Turn for {state.sender_id} ended in {final_state.value}: {' -> '.join(s.value for s in trace)}")
        return DispatchOutcome(
            reply=reply,
            final_state=final_state,
            trace=trace,
            invocation=invocation,
            result=result,
            issues=list(issues or []),
        )
