"""
Conversation Store - Short-lived memory per LINE sender

Keeps the last few messages (replayed to the model as history), a
partial invocation awaiting a clarifying answer or a confirm word, and
pending gallery results awaiting a number selection. Everything expires
after a period of inactivity.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import redis.asyncio as redis
from loguru import logger
from pydantic import BaseModel, Field

from ..config import settings
from ..schemas.agent_schemas import ConversationTurn, PendingInvocation, PhotoJob


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationState(BaseModel):
    """Everything remembered about one sender between turns"""
    sender_id: str
    messages: List[ConversationTurn] = Field(default_factory=list)
    pending: Optional[PendingInvocation] = None
    gallery_results: List[PhotoJob] = Field(default_factory=list)
    last_activity: datetime = Field(default_factory=_utcnow)

    def add_exchange(self, user_text: str, assistant_text: str, has_image: bool = False):
        self.messages.append(
            ConversationTurn(sender_id=self.sender_id, role="user", text=user_text, has_image=has_image)
        )
        self.messages.append(
            ConversationTurn(sender_id=self.sender_id, role="assistant", text=assistant_text)
        )


class ConversationStore:
    """
    Stores and retrieves conversation state

    Uses Redis for fast access and automatic expiration
    Falls back to in-memory storage if Redis unavailable
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        expiry_minutes: Optional[int] = None,
        max_messages: Optional[int] = None,
        use_redis: Optional[bool] = None,
    ):
        """
        Initialize conversation store

        Args:
            redis_url: Redis connection URL
            expiry_minutes: Minutes of inactivity before state is forgotten
            max_messages: Messages kept for history replay
            use_redis: Set False to stay in memory
        """
        self.redis_url = redis_url or settings.redis_url
        self.expiry = timedelta(minutes=expiry_minutes or settings.CONTEXT_EXPIRY_MINUTES)
        self.max_messages = max_messages or settings.MAX_CONTEXT_MESSAGES
        self.use_redis = settings.USE_REDIS if use_redis is None else use_redis
        self.redis_client: Optional[redis.Redis] = None

        # Fallback in-memory storage
        self.memory_store: Dict[str, ConversationState] = {}

        self._initialized = False

    @property
    def mode(self) -> str:
        return "redis" if self.redis_client else "memory"

    async def _ensure_connected(self):
        """Ensure Redis connection is established"""
        if self._initialized:
            return

        if not self.use_redis:
            self._initialized = True
            return

        try:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            # Test connection
            await self.redis_client.ping()
            logger.info("ConversationStore connected to Redis")
        except Exception as e:
            logger.warning(f"Redis connection failed, using in-memory storage: {e}")
            self.redis_client = None
        self._initialized = True

    def _get_key(self, sender_id: str) -> str:
        """Generate Redis key for a sender"""
        return f"ai_conversation:{sender_id}"

    def _is_expired(self, state: ConversationState, now: datetime) -> bool:
        return now - state.last_activity > self.expiry

    async def load(self, sender_id: str, now: Optional[datetime] = None) -> ConversationState:
        """
        Load a sender's state; expired or missing state yields a fresh one

        Args:
            sender_id: LINE user id
            now: Current time (defaults to UTC now)

        Returns:
            ConversationState
        """
        await self._ensure_connected()
        now = now or _utcnow()

        state: Optional[ConversationState] = None
        if self.redis_client:
            try:
                raw = await self.redis_client.get(self._get_key(sender_id))
                if raw:
                    state = ConversationState.model_validate_json(raw)
            except Exception as e:
                logger.error(f"Failed to load conversation from Redis: {e}")
                state = self.memory_store.get(sender_id)
        else:
            state = self.memory_store.get(sender_id)

        if state is None or self._is_expired(state, now):
            return ConversationState(sender_id=sender_id, last_activity=now)
        return state

    async def save(self, state: ConversationState, now: Optional[datetime] = None):
        """Trim history, stamp activity and persist"""
        await self._ensure_connected()
        state.messages = state.messages[-self.max_messages:]
        state.last_activity = now or _utcnow()

        if self.redis_client:
            try:
                await self.redis_client.setex(
                    self._get_key(state.sender_id),
                    int(self.expiry.total_seconds()),
                    state.model_dump_json(),
                )
                return
            except Exception as e:
                logger.error(f"Failed to save conversation to Redis: {e}")

        self.memory_store[state.sender_id] = state

    async def clear(self, sender_id: str):
        """Forget everything about a sender"""
        await self._ensure_connected()
        if self.redis_client:
            try:
                await self.redis_client.delete(self._get_key(sender_id))
            except Exception as e:
                logger.error(f"Failed to clear conversation in Redis: {e}")
        self.memory_store.pop(sender_id, None)

    async def close(self):
        if self.redis_client:
            await self.redis_client.aclose()
