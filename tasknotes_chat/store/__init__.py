"""
Durable storage for conversations and their ordered messages.
"""

from .conversation_store import SQLiteConversationStore
from .title import derive_title

__all__ = ["SQLiteConversationStore", "derive_title"]
