"""Exception types shared by the store, the tools and the turn orchestrator."""


class ChatError(Exception):
    """Base class for chat service errors."""


class ConversationNotFoundError(ChatError):
    """The conversation does not exist or is not owned by the caller."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class StoreError(ChatError):
    """A conversation store read or write failed."""


class ModelStreamError(ChatError):
    """The chat model call failed or produced an unusable stream."""


class ToolDispatchError(ChatError):
    """A tool could not be dispatched (unknown name, invalid arguments, crash)."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}': {message}")
        self.tool_name = tool_name


class ContextLoadError(ChatError):
    """Referenced context documents could not be loaded."""
