"""
Data models for conversation storage.
These define the shape of data flowing between the API and the store.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

DEFAULT_TITLE = "New Conversation"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_conversation_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class Message:
    """A single message in a conversation. Immutable once created."""
    conversation_id: str = ""
    role: str = ""           # "user" or "bot"
    text: str = ""
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "text": self.text,
            "timestamp": self.timestamp,
        }


@dataclass
class Conversation:
    """A conversation is an ordered list of messages sharing a conversation_id."""
    id: str = field(default_factory=new_conversation_id)
    messages: list[Message] = field(default_factory=list)
    created_at: str = field(default_factory=_now)

    @property
    def title(self) -> str:
        """Text of the first user message, or DEFAULT_TITLE."""
        first_user = next((m for m in self.messages if m.role == "user"), None)
        return (first_user.text if first_user else "") or DEFAULT_TITLE

    def to_dict(self) -> dict:
        return {
            "conversationId": self.id,
            "createdAt": self.created_at,
            "messages": [m.to_dict() for m in self.messages],
        }
