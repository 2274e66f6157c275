"""
Turn orchestration: model streaming, tool-call assembly, persistence order
and the wire event stream.
"""

from .events import (
    ContentEvent,
    ConversationEvent,
    DoneEvent,
    ErrorEvent,
    SourcesEvent,
    ToolCallEvent,
    ToolCallStartEvent,
    ToolResultEvent,
    TurnEvent,
)
from .fragments import (
    Fragment,
    ModelStreamAdapter,
    TextDelta,
    ToolCallArgs,
    ToolCallComplete,
    ToolCallStart,
    ToolResultFragment,
)
from .model_stream import OpenAIStreamAdapter
from .turn import ChatTurn, TurnMode, TurnOrchestrator, TurnState
from .wire import WireFormatError, decode_event, decode_stream, encode_event, encode_stream

__all__ = [
    "ChatTurn",
    "ContentEvent",
    "ConversationEvent",
    "DoneEvent",
    "ErrorEvent",
    "Fragment",
    "ModelStreamAdapter",
    "OpenAIStreamAdapter",
    "SourcesEvent",
    "TextDelta",
    "ToolCallArgs",
    "ToolCallComplete",
    "ToolCallEvent",
    "ToolCallStart",
    "ToolCallStartEvent",
    "ToolResultEvent",
    "ToolResultFragment",
    "TurnEvent",
    "TurnMode",
    "TurnOrchestrator",
    "TurnState",
    "WireFormatError",
    "decode_event",
    "decode_stream",
    "encode_event",
    "encode_stream",
]
