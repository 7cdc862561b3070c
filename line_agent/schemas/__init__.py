"""
Pydantic Schemas Package

Contains all Pydantic v2 models for:
- The action model (descriptors, invocations, results)
- Outbound replies
- School records and LINE webhook payloads
"""

from .agent_schemas import (
    # Enums
    ArgumentType, RenderHint, DispatchState, UserRole,
    # Identity & conversation
    UserAccount, IdentityBinding, ImagePayload, ConversationTurn,
    # Actions
    ArgumentSpec, ActionDescriptor, ActionInvocation, ActionResult,
    ValidationIssue, PendingInvocation, ExtractionResult,
    # Replies
    TextReply, CardReply, OutboundReply, DispatchOutcome,
    # Records
    Room, Booking, RepairTicket, PhotoJob, KnowledgeEntry, DailySummary,
    # LINE
    LineEvent, LineMessage, LineSource, LineWebhookBody,
    # API
    HealthResponse,
)

__all__ = [
    "ArgumentType", "RenderHint", "DispatchState", "UserRole",
    "UserAccount", "IdentityBinding", "ImagePayload", "ConversationTurn",
    "ArgumentSpec", "ActionDescriptor", "ActionInvocation", "ActionResult",
    "ValidationIssue", "PendingInvocation", "ExtractionResult",
    "TextReply", "CardReply", "OutboundReply", "DispatchOutcome",
    "Room", "Booking", "RepairTicket", "PhotoJob", "KnowledgeEntry", "DailySummary",
    "LineEvent", "LineMessage", "LineSource", "LineWebhookBody",
    "HealthResponse",
]
