"""
Tests for the tool registry.
"""

import pytest
from pydantic import BaseModel

from tasknotes_chat.errors import ToolDispatchError
from tasknotes_chat.tools import ToolRegistry, ToolScope, register_default_tools

NOTE_TOOLS = {
    "get_note_by_id",
    "search_notes",
    "list_notes",
    "get_note_hierarchy",
    "get_notes_by_tag",
    "get_recent_notes",
}


class EchoArgs(BaseModel):
    text: str


@pytest.fixture
def isolated_registry():
    saved = ToolRegistry.all_tools()
    ToolRegistry.clear()
    yield ToolRegistry
    ToolRegistry.clear()
    ToolRegistry._tools.update(saved)


class TestBuiltinTools:
    """Tests for the tools registered on import."""

    def test_all_tools_registered(self):
        """Note tools, web search and collection search are registered."""
        assert set(ToolRegistry.all_tools()) == NOTE_TOOLS | {"web_search", "search_collection"}

    def test_collection_tool_hidden_without_collection(self):
        """search_collection is only declared while a collection is active."""
        without = {t.name for t in ToolRegistry.declared_tools(collection_active=False)}
        with_collection = {t.name for t in ToolRegistry.declared_tools(collection_active=True)}

        assert "search_collection" not in without
        assert "search_collection" in with_collection
        assert with_collection - without == {"search_collection"}

    def test_openai_declaration(self):
        """Declarations carry the argument schema as function parameters."""
        declaration = ToolRegistry.get("search_notes").to_openai_tool()

        assert declaration["type"] == "function"
        function = declaration["function"]
        assert function["name"] == "search_notes"
        assert function["parameters"]["type"] == "object"
        assert "query" in function["parameters"]["properties"]
        assert function["parameters"]["required"] == ["query"]
        assert "title" not in function["parameters"]

    def test_register_default_tools_restores_registry(self, isolated_registry):
        """Re-registering after a clear brings back every built-in tool."""
        register_default_tools()

        assert set(isolated_registry.all_tools()) == NOTE_TOOLS | {"web_search", "search_collection"}


class TestDispatch:
    """Tests for ToolRegistry.dispatch."""

    def test_validates_and_formats(self, isolated_registry):
        """Arguments are validated into the model and the result formatted."""
        isolated_registry.register(
            name="echo",
            description="Echo text",
            args_model=EchoArgs,
            handler=lambda args, scope: {"text": args.text, "user": scope.user_id},
            formatter=lambda result: f"{result['user']} said {result['text']}",
        )

        result = isolated_registry.dispatch("echo", {"text": "hi"}, ToolScope(user_id="user-1"))

        assert result == "user-1 said hi"

    def test_unknown_tool(self, isolated_registry):
        """Unknown tools raise ToolDispatchError."""
        with pytest.raises(ToolDispatchError) as exc_info:
            isolated_registry.dispatch("nope", {}, ToolScope(user_id="user-1"))
        assert exc_info.value.tool_name == "nope"

    def test_invalid_arguments(self, isolated_registry):
        """Arguments failing validation raise ToolDispatchError."""
        isolated_registry.register(
            name="echo",
            description="Echo text",
            args_model=EchoArgs,
            handler=lambda args, scope: {},
            formatter=str,
        )

        with pytest.raises(ToolDispatchError, match="invalid arguments"):
            isolated_registry.dispatch("echo", {"wrong": 1}, ToolScope(user_id="user-1"))

    def test_handler_crash(self, isolated_registry):
        """A handler that raises becomes ToolDispatchError."""

        def explode(args, scope):
            raise RuntimeError("kaboom")

        isolated_registry.register(
            name="echo",
            description="Echo text",
            args_model=EchoArgs,
            handler=explode,
            formatter=str,
        )

        with pytest.raises(ToolDispatchError, match="kaboom"):
            isolated_registry.dispatch("echo", {"text": "x"}, ToolScope(user_id="user-1"))

    def test_collection_tool_needs_collection(self, isolated_registry):
        """Collection tools cannot run without an active collection."""
        isolated_registry.register(
            name="echo",
            description="Echo text",
            args_model=EchoArgs,
            handler=lambda args, scope: {"text": args.text},
            formatter=lambda result: result["text"],
            requires_collection=True,
        )

        with pytest.raises(ToolDispatchError, match="no active collection"):
            isolated_registry.dispatch("echo", {"text": "x"}, ToolScope(user_id="user-1"))
        assert (
            isolated_registry.dispatch(
                "echo", {"text": "x"}, ToolScope(user_id="user-1", collection_id="col-1")
            )
            == "x"
        )
