"""
Data models for persisted conversations and messages.

Conversations and messages are append-only records owned by the conversation
store. ``ChatContext`` describes what the client was looking at when the
message was sent; it shapes the model input for one turn and is never
persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class MessageRole(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


class MessageKind(str, Enum):
    """What a message holds.

    ``content`` messages are replayed to the model as history; ``tool_call``
    messages record one tool invocation for audit and display only.
    """

    CONTENT = "content"
    TOOL_CALL = "tool_call"


@dataclass
class Source:
    """A citation gathered from a tool result."""

    id: str
    title: str
    type: str = "note"

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "title": self.title, "type": self.type}


@dataclass
class Conversation:
    """A chat conversation owned by one user, optionally scoped to a team."""

    id: str
    user_id: str
    team_id: Optional[str]
    title: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass
class ConversationSummary(Conversation):
    """Conversation row as shown in listings."""

    message_count: int = 0
    last_message_preview: str = ""


@dataclass
class Message:
    """A persisted message. ``order`` is unique within its conversation."""

    id: str
    conversation_id: str
    role: MessageRole
    content: str
    kind: MessageKind
    metadata: dict[str, Any]
    order: int
    created_at: datetime
    parent_id: Optional[str] = None


@dataclass
class MessageDraft:
    """A message waiting to be appended; the store assigns id and order."""

    role: MessageRole
    content: str
    kind: MessageKind = MessageKind.CONTENT
    metadata: dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[str] = None


@dataclass
class ChatContext:
    """Client-side context attached to a chat message."""

    route: Optional[str] = None
    note_ids: list[str] = field(default_factory=list)
    team_id: Optional[str] = None
    collection_id: Optional[str] = None
