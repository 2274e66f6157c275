"""
Events emitted by the turn orchestrator.

Each event knows its wire ``type`` tag and payload keys; the key names follow
the web client (``conversationId``, ``delta``, ``id``, ``args``).
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union


@dataclass(frozen=True)
class ConversationEvent:
    type: ClassVar[str] = "conversation"
    conversation_id: str

    def payload(self) -> dict[str, Any]:
        return {"conversationId": self.conversation_id}


@dataclass(frozen=True)
class ContentEvent:
    type: ClassVar[str] = "content"
    delta: str

    def payload(self) -> dict[str, Any]:
        return {"delta": self.delta}


@dataclass(frozen=True)
class ToolCallStartEvent:
    type: ClassVar[str] = "tool_call_start"
    name: str
    id: str

    def payload(self) -> dict[str, Any]:
        return {"name": self.name, "id": self.id}


@dataclass(frozen=True)
class ToolCallEvent:
    type: ClassVar[str] = "tool_call"
    name: str
    args: dict[str, Any]
    id: str

    def payload(self) -> dict[str, Any]:
        return {"name": self.name, "args": self.args, "id": self.id}


@dataclass(frozen=True)
class ToolResultEvent:
    type: ClassVar[str] = "tool_result"
    name: str
    result: str

    def payload(self) -> dict[str, Any]:
        return {"name": self.name, "result": self.result}


@dataclass(frozen=True)
class SourcesEvent:
    type: ClassVar[str] = "sources"
    sources: list[dict[str, str]] = field(default_factory=list)

    def payload(self) -> dict[str, Any]:
        return {"sources": self.sources}


@dataclass(frozen=True)
class DoneEvent:
    type: ClassVar[str] = "done"

    def payload(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[str] = "error"
    message: str

    def payload(self) -> dict[str, Any]:
        return {"message": self.message}


TurnEvent = Union[
    ConversationEvent,
    ContentEvent,
    ToolCallStartEvent,
    ToolCallEvent,
    ToolResultEvent,
    SourcesEvent,
    DoneEvent,
    ErrorEvent,
]

TERMINAL_EVENTS = (DoneEvent, ErrorEvent)
