"""
Interfaces Package

Contains the collaborators the agent talks to:
- school_store: bookings, repairs, photo jobs, knowledge base, bindings
- identity_store: LINE user id -> school account
- conversation_store: short-lived per-sender memory
- line_messaging: LINE Messaging API client
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .school_store import SchoolStore, InMemorySchoolStore, MongoSchoolStore
    from .identity_store import IdentityResolver
    from .conversation_store import ConversationStore, ConversationState
    from .line_messaging import LineMessagingClient, verify_signature, to_line_messages

__all__ = [
    "SchoolStore",
    "InMemorySchoolStore",
    "MongoSchoolStore",
    "IdentityResolver",
    "ConversationStore",
    "ConversationState",
    "LineMessagingClient",
    "verify_signature",
    "to_line_messages",
]
