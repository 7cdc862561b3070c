# schemas/agent_schemas.py
"""
Pydantic v2 schemas for the LINE agent
Covers the action model, replies, school records and LINE webhook payloads
"""

import base64
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================
# Enums
# ============================================

class ArgumentType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"  # YYYY-MM-DD
    TIME = "time"  # HH:MM (24h)


class RenderHint(str, Enum):
    TEXT = "text"
    CARD = "card"


class DispatchState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    NO_ACTION = "no_action"
    VALIDATING = "validating"
    INVALID = "invalid"
    CLARIFYING = "clarifying"
    VALID = "valid"
    EXECUTING = "executing"
    RENDERING = "rendering"
    DONE = "done"


class UserRole(str, Enum):
    USER = "user"
    TECHNICIAN = "technician"
    MODERATOR = "moderator"
    ADMIN = "admin"


# ============================================
# Identity
# ============================================

class UserAccount(BaseModel):
    """Internal account a LINE sender is bound to"""
    uid: str
    display_name: str = "ผู้ใช้"
    email: str
    role: UserRole = UserRole.USER
    is_photographer: bool = False


class IdentityBinding(BaseModel):
    """LINE user id <-> account, owned by the registration flow"""
    line_user_id: str
    uid: str
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


# ============================================
# Conversation
# ============================================

class ImagePayload(BaseModel):
    """Image received from the chat platform"""
    data: bytes
    mime_type: str = "image/jpeg"

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class ConversationTurn(BaseModel):
    """One message in the short history replayed to the model"""
    sender_id: str
    role: Literal["user", "assistant"]
    text: str
    has_image: bool = False
    timestamp: datetime = Field(default_factory=_utcnow)


# ============================================
# Actions
# ============================================

class ArgumentSpec(BaseModel):
    """Declared argument (slot) of an action"""
    model_config = ConfigDict(frozen=True)

    name: str
    type: ArgumentType = ArgumentType.STRING
    description: str = ""
    required: bool = False
    enum: Optional[List[str]] = None

    def to_json_schema(self) -> Dict[str, Any]:
        json_type = {
            ArgumentType.INTEGER: "integer",
            ArgumentType.NUMBER: "number",
            ArgumentType.BOOLEAN: "boolean",
        }.get(self.type, "string")
        schema: Dict[str, Any] = {"type": json_type, "description": self.description}
        if self.type == ArgumentType.DATE:
            schema["description"] = f"{self.description} (YYYY-MM-DD, 'today' or 'tomorrow')".strip()
        elif self.type == ArgumentType.TIME:
            schema["description"] = f"{self.description} (HH:MM, 24h)".strip()
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


class ActionDescriptor(BaseModel):
    """Static description of an action the agent can perform"""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    arguments: List[ArgumentSpec] = Field(default_factory=list)

    @property
    def required_arguments(self) -> List[str]:
        return [a.name for a in self.arguments if a.required]

    def argument(self, name: str) -> Optional[ArgumentSpec]:
        for spec in self.arguments:
            if spec.name == name:
                return spec
        return None

    def to_tool_schema(self) -> Dict[str, Any]:
        """OpenAI function-tool definition"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {a.name: a.to_json_schema() for a in self.arguments},
                    "required": self.required_arguments,
                },
            },
        }


class ActionInvocation(BaseModel):
    """Resolved action name plus argument values"""
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ValidationIssue(BaseModel):
    """A single schema violation"""
    argument: str
    code: Literal["missing", "type", "enum", "format", "unknown_action"]
    problem: str


class ActionResult(BaseModel):
    """Outcome of a domain handler"""
    action: str
    success: bool
    payload: Any = None
    reason: Optional[str] = None  # domain-specific rejection message
    render_hint: RenderHint = RenderHint.TEXT

    @property
    def is_empty(self) -> bool:
        return self.payload is None or self.payload == [] or self.payload == {}


class PendingInvocation(BaseModel):
    """Partial invocation awaiting a clarifying answer, or a complete one awaiting a confirm word"""
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    missing: List[str] = Field(default_factory=list)
    awaiting_confirmation: bool = False


class ExtractionResult(BaseModel):
    """Output of the intent & slot extractor"""
    reply_text: Optional[str] = None
    invocation: Optional[ActionInvocation] = None
    unknown_action: Optional[str] = None
    raw_text: str = ""


# ============================================
# Outbound replies
# ============================================

class TextReply(BaseModel):
    kind: Literal["text"] = "text"
    body: str


class CardReply(BaseModel):
    kind: Literal["card"] = "card"
    alt_text: str
    payload: Dict[str, Any]


OutboundReply = Annotated[Union[TextReply, CardReply], Field(discriminator="kind")]


class DispatchOutcome(BaseModel):
    """Everything one turn produced, for logging and tests"""
    reply: OutboundReply
    final_state: DispatchState
    trace: List[DispatchState] = Field(default_factory=list)
    invocation: Optional[ActionInvocation] = None
    result: Optional[ActionResult] = None
    issues: List[ValidationIssue] = Field(default_factory=list)


# ============================================
# School records
# ============================================

class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    room_id: str
    name: str
    aliases: List[str] = Field(default_factory=list)


class Booking(BaseModel):
    id: str = ""
    room_id: str
    room_name: str = ""
    title: str = ""
    start_time: datetime
    end_time: datetime
    status: str = "pending"  # pending, approved, rejected, cancelled
    requester_name: str = ""
    requester_email: str = ""
    source: str = "line_ai"


class RepairTicket(BaseModel):
    id: str = ""
    ticket_id: str
    room: str
    description: str
    zone: str = ""
    image_url: str = ""
    status: str = "pending"  # pending, in_progress, completed, cancelled
    requester_name: str = ""
    requester_email: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    source: str = "line_ai"

    @property
    def is_active(self) -> bool:
        return self.status in ("pending", "in_progress", "waiting_parts")


class PhotoJob(BaseModel):
    """Photography job; completed jobs form the photo gallery"""
    id: str
    title: str
    location: str = ""
    description: str = ""
    start_time: Optional[datetime] = None
    status: str = "completed"
    assignee_ids: List[str] = Field(default_factory=list)
    drive_link: Optional[str] = None
    facebook_post_id: Optional[str] = None
    cover_image_url: Optional[str] = None


class KnowledgeEntry(BaseModel):
    id: str
    question: str
    answer: str
    category: str = ""
    keywords: List[str] = Field(default_factory=list)


class DailySummary(BaseModel):
    repairs_total: int = 0
    repairs_pending: int = 0
    repairs_in_progress: int = 0
    bookings_total: int = 0
    bookings_pending: int = 0
    bookings_approved: int = 0
    photo_jobs_total: int = 0


# ============================================
# LINE webhook
# ============================================

class LineSource(BaseModel):
    type: str = "user"
    userId: Optional[str] = None
    groupId: Optional[str] = None


class LineMessage(BaseModel):
    id: str
    type: str
    text: Optional[str] = None


class LineDeliveryContext(BaseModel):
    isRedelivery: bool = False


class LineEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    replyToken: Optional[str] = None
    source: LineSource = Field(default_factory=LineSource)
    message: Optional[LineMessage] = None
    webhookEventId: Optional[str] = None
    deliveryContext: LineDeliveryContext = Field(default_factory=LineDeliveryContext)
    timestamp: Optional[int] = None


class LineWebhookBody(BaseModel):
    destination: Optional[str] = None
    events: List[LineEvent] = Field(default_factory=list)


# ============================================
# Health Check
# ============================================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    llm_provider: str
    llm_model: str
    components: Dict[str, str]
    timestamp: datetime = Field(default_factory=_utcnow)
