"""
Server-Sent Events encoding of turn events.

Each event becomes one ``data: <json>`` record followed by a blank line.
The decoder reverses this for clients reading the stream.
"""

import json
from typing import Any, Iterable, Iterator

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


class WireFormatError(ValueError):
    """A received record is not a valid turn event."""


def encode_event(event: TurnEvent) -> str:
    record = {"type": event.type, **event.payload()}
    return f"data: {json.dumps(record)}\n\n"


def encode_stream(events: Iterable[TurnEvent]) -> Iterator[str]:
    for event in events:
        yield encode_event(event)


def decode_event(record: dict[str, Any]) -> TurnEvent:
    """Build an event from one decoded JSON record."""
    event_type = record.get("type")
    try:
        if event_type == "conversation":
            return ConversationEvent(conversation_id=record["conversationId"])
        if event_type == "content":
            return ContentEvent(delta=record["delta"])
        if event_type == "tool_call_start":
            return ToolCallStartEvent(name=record["name"], id=record["id"])
        if event_type == "tool_call":
            return ToolCallEvent(name=record["name"], args=record.get("args") or {}, id=record["id"])
        if event_type == "tool_result":
            return ToolResultEvent(name=record["name"], result=record["result"])
        if event_type == "sources":
            return SourcesEvent(sources=list(record["sources"]))
        if event_type == "done":
            return DoneEvent()
        if event_type == "error":
            return ErrorEvent(message=record["message"])
    except KeyError as e:
        raise WireFormatError(f"'{event_type}' event is missing key {e}") from e
    raise WireFormatError(f"Unknown event type: {event_type!r}")


def decode_stream(lines: Iterable[str]) -> Iterator[TurnEvent]:
    """Decode SSE text lines (without trailing newlines) into events.

    Multiple ``data:`` lines in one record are joined with newlines; comment
    lines and other fields are ignored.
    """
    data_lines: list[str] = []
    for line in lines:
        if line == "":
            if data_lines:
                yield _decode_record("\n".join(data_lines))
                data_lines = []
            continue
        if line.startswith(":"):
            continue
        if line.startswith("data:"):
            value = line[len("data:"):]
            data_lines.append(value[1:] if value.startswith(" ") else value)
    if data_lines:
        yield _decode_record("\n".join(data_lines))


def _decode_record(data: str) -> TurnEvent:
    try:
        record = json.loads(data)
    except json.JSONDecodeError as e:
        raise WireFormatError(f"Event data is not JSON: {e}") from e
    if not isinstance(record, dict):
        raise WireFormatError("Event data must be a JSON object")
    return decode_event(record)
