"""Tests for turn-local tool call assembly."""

import logging

import pytest

from tasknotes_chat.errors import ToolDispatchError
from tasknotes_chat.orchestration.tool_calls import ToolCallTable

ARGUMENTS = '{"query": "find the wifi password for the office guest network", "limit": 5}'


def split_evenly(text: str, pieces: int) -> list[str]:
    return [text[i * len(text) // pieces:(i + 1) * len(text) // pieces] for i in range(pieces)]


def assemble(pieces: int, call_id="call_1") -> str:
    table = ToolCallTable()
    table.start("search_notes", call_id=call_id, index=0)
    for chunk in split_evenly(ARGUMENTS, pieces):
        table.append_arguments(chunk, call_id=call_id, index=0)
    call = table.complete(call_id=call_id, index=0)
    return call.arguments


class TestAssembly:
    """Tests for argument accumulation."""

    def test_one_vs_fifty_fragments_identical(self):
        """Arguments split into 1 or 50 fragments assemble byte-identically."""
        assert assemble(1) == assemble(50) == ARGUMENTS

    def test_fragments_without_ids_match_by_index(self):
        """Argument fragments with no id route by stream index."""
        table = ToolCallTable()
        table.start("search_notes", call_id=None, index=0)
        table.start("web_search", call_id=None, index=1)
        table.append_arguments('{"query": ', index=1)
        table.append_arguments('{"query": "notes"}', index=0)
        table.append_arguments('"web"}', index=1)

        first = table.complete(index=0)
        second = table.complete(index=1)

        assert first.parsed_arguments() == {"query": "notes"}
        assert second.parsed_arguments() == {"query": "web"}

    def test_fragment_without_id_or_index_goes_to_latest_open_call(self):
        """With no id and no index, the most recent open call receives the text."""
        table = ToolCallTable()
        table.start("search_notes")
        table.append_arguments('{"query": "x"}')
        call = table.complete()

        assert call.arguments == '{"query": "x"}'

    def test_empty_arguments_parse_to_empty_dict(self):
        """A call with no argument text has no arguments."""
        table = ToolCallTable()
        table.start("get_recent_notes", call_id="c1")
        call = table.complete(call_id="c1")

        assert call.parsed_arguments() == {}

    def test_invalid_json_raises_dispatch_error(self):
        """Malformed argument text is a dispatch error."""
        table = ToolCallTable()
        table.start("search_notes", call_id="c1")
        table.append_arguments('{"query": ', call_id="c1")
        call = table.complete(call_id="c1")

        with pytest.raises(ToolDispatchError):
            call.parsed_arguments()


class TestKeys:
    """Tests for correlation keys."""

    def test_stream_id_used_as_key(self):
        """A fresh stream id becomes the key."""
        table = ToolCallTable()
        call = table.start("search_notes", call_id="call_xyz")

        assert call.key == "call_xyz"
        assert call.synthetic_key is False

    def test_missing_id_gets_synthetic_key(self):
        """A call without an id gets a synthetic key."""
        table = ToolCallTable()
        call = table.start("search_notes", call_id=None)

        assert call.key
        assert call.synthetic_key is True

    def test_reused_id_gets_synthetic_key_and_own_arguments(self, caplog):
        """A reused id gets a new key; its fragments go to the newer call."""
        table = ToolCallTable()
        first = table.start("search_notes", call_id="dup")
        table.append_arguments('{"query": "a"}', call_id="dup")
        table.complete(call_id="dup")

        with caplog.at_level(logging.WARNING):
            second = table.start("web_search", call_id="dup")
        table.append_arguments('{"query": "b"}', call_id="dup")
        table.complete(call_id="dup")

        assert second.key != first.key
        assert second.synthetic_key is True
        assert first.parsed_arguments() == {"query": "a"}
        assert second.parsed_arguments() == {"query": "b"}
        assert "reused" in caplog.text

    def test_completed_calls_in_completion_order(self):
        """Completion order, not start order, is preserved."""
        table = ToolCallTable()
        table.start("a", call_id="1", index=0)
        table.start("b", call_id="2", index=1)
        table.complete(call_id="2", index=1)
        table.complete(call_id="1", index=0)

        assert [c.name for c in table.completed_calls()] == ["b", "a"]


class TestResultCorrelation:
    """Tests for matching results to calls."""

    def test_resolve_by_key(self):
        """A result with a known key lands on that call."""
        table = ToolCallTable()
        table.start("search_notes", call_id="c1")
        table.complete(call_id="c1")

        call = table.resolve("search_notes", "result", key="c1")

        assert call.key == "c1"
        assert call.result == "result"

    def test_fallback_to_oldest_unresolved_with_same_name(self, caplog):
        """Without a usable key the oldest unresolved same-name call is used, with a warning."""
        table = ToolCallTable()
        table.start("search_notes", call_id="c1")
        table.start("search_notes", call_id="c2")

        with caplog.at_level(logging.WARNING):
            first = table.resolve("search_notes", "r1", key=None)
            second = table.resolve("search_notes", "r2", key="c1")  # c1 already consumed

        assert first.key == "c1"
        assert second.key == "c2"
        assert "matched by name" in caplog.text

    def test_unmatched_result_returns_none(self, caplog):
        """A result matching nothing is reported and dropped."""
        table = ToolCallTable()
        table.start("search_notes", call_id="c1")

        with caplog.at_level(logging.WARNING):
            assert table.resolve("web_search", "stray", key="zzz") is None
        assert "matches no pending call" in caplog.text
