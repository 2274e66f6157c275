"""
Tests for Langfuse tracing integration with SDK v3.

Tests cover:
- Client disabled states
- Context manager no-ops when disabled
- Full trace lifecycle with mocked Langfuse
- Turn integration: completed turns flush, cancelled turns do not
"""

import pytest
from unittest.mock import patch

from conftest import ScriptedAdapter
from tasknotes_chat.config import LangfuseConfig
from tasknotes_chat.orchestration import TextDelta, TurnOrchestrator
from tasknotes_chat.tracing import (
    TracingClient,
    TracingContext,
    get_tracing_client,
    init_tracing_client,
    shutdown_tracing,
)


@pytest.fixture
def mock_langfuse():
    """Enable tracing against a mocked Langfuse client."""
    with patch("tasknotes_chat.tracing.client.Langfuse") as langfuse_class:
        langfuse = langfuse_class.return_value
        langfuse.auth_check.return_value = True
        init_tracing_client(settings("pk-test", "sk-test", "http://langfuse:3000"))
        yield langfuse
        shutdown_tracing()


def settings(public_key="", secret_key="", host=""):
    return LangfuseConfig(public_key=public_key, secret_key=secret_key, host=host, debug=False)


class TestTracingClient:
    """Tests for TracingClient."""

    def test_client_disabled_without_credentials(self):
        """Test client is disabled when credentials not provided."""
        client = TracingClient(settings())
        assert client.enabled is False
        assert "credentials not configured" in client.error.lower()

    def test_client_disabled_with_partial_credentials(self):
        """Test client is disabled with only public key."""
        client = TracingClient(settings(public_key="pk-test"))
        assert client.enabled is False

    @patch("tasknotes_chat.tracing.client.Langfuse")
    def test_client_disabled_when_auth_check_fails(self, langfuse_class):
        """An unreachable or misconfigured server disables tracing."""
        langfuse_class.return_value.auth_check.return_value = False

        client = TracingClient(settings("pk-test", "sk-test"))

        assert client.enabled is False
        assert client.client is None
        assert "auth_check" in client.error

    @patch("tasknotes_chat.tracing.client.Langfuse")
    def test_client_disabled_when_langfuse_raises(self, langfuse_class):
        """A client that cannot even be built leaves tracing off."""
        langfuse_class.side_effect = ValueError("bad host")

        client = TracingClient(settings("pk-test", "sk-test"))

        assert client.enabled is False
        assert "bad host" in client.error

    @patch("tasknotes_chat.tracing.client.Langfuse")
    def test_client_enabled_with_credentials(self, langfuse_class):
        """Valid credentials and a reachable server enable tracing."""
        langfuse_class.return_value.auth_check.return_value = True

        client = TracingClient(settings("pk-test", "sk-test", "http://lf:3000"))

        assert client.enabled is True
        assert langfuse_class.call_args.kwargs["host"] == "http://lf:3000"

    @patch("tasknotes_chat.tracing.client.Langfuse")
    def test_default_host_not_passed(self, langfuse_class):
        """Without a host the SDK default is used."""
        langfuse_class.return_value.auth_check.return_value = True

        TracingClient(settings("pk-test", "sk-test"))

        assert "host" not in langfuse_class.call_args.kwargs

    def test_flush_and_shutdown_no_op_when_disabled(self):
        """Test flush and shutdown are no-ops when tracing disabled."""
        client = TracingClient(settings())
        client.flush()
        client.shutdown()


class TestTracingClientSingleton:
    """Tests for tracing client singleton pattern."""

    def test_init_tracing_client_creates_singleton(self):
        """Test init_tracing_client creates global singleton."""
        client = init_tracing_client(settings())
        assert get_tracing_client() is client

        shutdown_tracing()
        assert get_tracing_client() is None


class TestTracingContext:
    """Tests for TracingContext."""

    def test_no_op_when_disabled(self):
        """Every operation is a no-op without a client."""
        shutdown_tracing()

        ctx = TracingContext(execution_id="turn-1234")
        ctx.start_trace(name="chat_ask", input={"message": "hi"})
        with ctx.span(name="tool:search_notes") as span:
            assert span._span is None
            span.set_output("result")
        with ctx.generation(name="model_round_1", model="gpt-4o-mini") as gen:
            assert gen._generation is None
            gen.set_output({"content": "hi"})
        ctx.end_trace(output="hi")

        assert ctx.enabled is False

    def test_trace_lifecycle(self, mock_langfuse):
        """Spans and generations hang off the turn's root span."""
        root = mock_langfuse.start_span.return_value

        ctx = TracingContext(execution_id="turn-1234", user_id="user-1")
        ctx.start_trace(name="chat_agent", input={"message": "wifi?"})
        ctx.set_session("conv-1")
        with ctx.generation(name="model_round_1", model="gpt-4o-mini") as gen:
            gen.set_output({"content": ""})
        with ctx.span(name="tool:search_notes", input={"query": "wifi"}) as span:
            span.set_output("Found 1 result(s)")
        ctx.end_trace(output="done", status="success")

        assert mock_langfuse.start_span.call_args.kwargs["name"] == "chat_agent"
        root.update_trace.assert_any_call(session_id="conv-1")
        root.start_generation.assert_called_once()
        root.start_span.assert_called_once()
        root.start_span.return_value.update.assert_called_once()
        assert root.start_span.return_value.update.call_args.kwargs["output"] == "Found 1 result(s)"
        root.end.assert_called_once()

    def test_span_marks_error_on_exception(self, mock_langfuse):
        """An exception inside a span records an error level and propagates."""
        root = mock_langfuse.start_span.return_value
        ctx = TracingContext(execution_id="turn-1234")
        ctx.start_trace()

        with pytest.raises(ValueError):
            with ctx.span(name="tool:web_search"):
                raise ValueError("bad")

        kwargs = root.start_span.return_value.update.call_args.kwargs
        assert kwargs["level"] == "ERROR"
        assert kwargs["metadata"]["status"] == "error"


class TestTurnTracing:
    """Tests for tracing around chat turns."""

    def test_completed_turn_is_traced_and_flushed(self, mock_langfuse, store):
        """A finished turn ends its trace and flushes."""
        adapter = ScriptedAdapter([[TextDelta("hello")]])
        orchestrator = TurnOrchestrator(store, adapter=adapter, history_limit=20, max_tool_rounds=2)

        list(orchestrator.run_ask_turn("user-1", None, "hi", "gpt-4o-mini"))

        root = mock_langfuse.start_span.return_value
        root.start_generation.assert_called_once()
        root.end.assert_called_once()
        assert root.update.call_args.kwargs["metadata"]["status"] == "success"
        mock_langfuse.flush.assert_called_once()

    def test_cancelled_turn_is_not_flushed(self, mock_langfuse, store):
        """A cancelled turn ends its trace as cancelled without flushing."""
        adapter = ScriptedAdapter([[TextDelta("a"), TextDelta("b")]])
        orchestrator = TurnOrchestrator(store, adapter=adapter, history_limit=20, max_tool_rounds=2)

        events = orchestrator.run_ask_turn("user-1", None, "hi", "gpt-4o-mini")
        next(events)
        next(events)
        events.close()

        root = mock_langfuse.start_span.return_value
        assert root.update.call_args.kwargs["metadata"]["status"] == "cancelled"
        mock_langfuse.flush.assert_not_called()
