"""
Data models for conversations, messages and turn context.
"""

from .conversation import (
    ChatContext,
    Conversation,
    ConversationSummary,
    Message,
    MessageDraft,
    MessageKind,
    MessageRole,
    Source,
)

__all__ = [
    "ChatContext",
    "Conversation",
    "ConversationSummary",
    "Message",
    "MessageDraft",
    "MessageKind",
    "MessageRole",
    "Source",
]
