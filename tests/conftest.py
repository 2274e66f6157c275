"""
Pytest configuration and fixtures for TaskNotes chat tests.
"""

import copy
from typing import Iterator, Optional

import pytest
from pydantic import BaseModel

from tasknotes_chat.orchestration.fragments import (
    Fragment,
    TextDelta,
    ToolCallArgs,
    ToolCallComplete,
    ToolCallStart,
)
from tasknotes_chat.orchestration.prompt import ContextNote
from tasknotes_chat.store import SQLiteConversationStore
from tasknotes_chat.tools import ToolRegistry, ToolScope

WIFI_NOTE_ID = "3f1c2a9e-5b7d-4e21-9c0a-6d8e2f4b1a37"


class ScriptedAdapter:
    """Model stream adapter that replays one scripted fragment list per round.

    An exception instance inside a round is raised when reached.
    """

    def __init__(self, rounds: list[list], executes_tools: bool = False):
        self.rounds = list(rounds)
        self.executes_tools = executes_tools
        self.calls: list[dict] = []
        self.closed = 0

    def stream(
        self,
        messages: list[dict],
        model: str,
        tools: Optional[list[dict]] = None,
    ) -> Iterator[Fragment]:
        self.calls.append({"messages": copy.deepcopy(messages), "model": model, "tools": tools})
        script = self.rounds.pop(0) if self.rounds else [TextDelta("")]
        return self._replay(script)

    def _replay(self, script: list) -> Iterator[Fragment]:
        try:
            for item in script:
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed += 1


def tool_call_fragments(
    name: str,
    arguments: str,
    call_id: Optional[str] = "call_abc",
    index: int = 0,
    pieces: int = 1,
) -> list[Fragment]:
    """Fragments for one tool call with its argument text split into ``pieces`` chunks."""
    size = max(1, -(-len(arguments) // pieces))
    chunks = [arguments[i:i + size] for i in range(0, len(arguments), size)] or [""]
    return (
        [ToolCallStart(name=name, call_id=call_id, index=index)]
        + [ToolCallArgs(delta=chunk, call_id=call_id, index=index) for chunk in chunks]
        + [ToolCallComplete(call_id=call_id, index=index)]
    )


class QueryArgs(BaseModel):
    query: str
    limit: int = 10


def _fake_search_notes(args: QueryArgs, scope: ToolScope) -> dict:
    return {"query": args.query, "user_id": scope.user_id}


def _format_fake_search(result: dict) -> str:
    return (
        f'Found 1 result(s) matching "{result["query"]}":\n\n'
        "-----\n"
        "## Office WiFi\n"
        f"ID: {WIFI_NOTE_ID}\n"
        "Updated: 2026-01-05T10:00:00Z\n\n"
        "Excerpt: Network tasknotes-guest, password hunter2\n\n"
    )


def _fake_web_search(args: QueryArgs, scope: ToolScope) -> dict:
    return {"query": args.query}


def _fake_search_collection(args: QueryArgs, scope: ToolScope) -> dict:
    return {"query": args.query, "collection_id": scope.collection_id}


@pytest.fixture
def fake_tools():
    """Replace the registry contents with deterministic fake tools for one test."""
    saved = ToolRegistry.all_tools()
    ToolRegistry.clear()
    ToolRegistry.register(
        name="search_notes",
        description="Search notes",
        args_model=QueryArgs,
        handler=_fake_search_notes,
        formatter=_format_fake_search,
    )
    ToolRegistry.register(
        name="web_search",
        description="Search the web",
        args_model=QueryArgs,
        handler=_fake_web_search,
        formatter=lambda result: f"No web results for {result['query']}",
    )
    ToolRegistry.register(
        name="search_collection",
        description="Search the active collection",
        args_model=QueryArgs,
        handler=_fake_search_collection,
        formatter=lambda result: f"Collection {result['collection_id']}: nothing found",
        requires_collection=True,
    )
    yield ToolRegistry
    ToolRegistry.clear()
    ToolRegistry._tools.update(saved)


@pytest.fixture
def store(tmp_path) -> SQLiteConversationStore:
    """A fresh SQLite conversation store in a temporary directory."""
    conversation_store = SQLiteConversationStore(str(tmp_path / "chat.db"))
    conversation_store.init()
    return conversation_store


@pytest.fixture
def context_loader():
    """Context loader returning one canned note per requested id."""

    def load(note_ids: list[str], scope: ToolScope) -> list[ContextNote]:
        return [
            ContextNote(id=note_id, title=f"Note {note_id}", content=f"Body of {note_id}")
            for note_id in note_ids
        ]

    return load
