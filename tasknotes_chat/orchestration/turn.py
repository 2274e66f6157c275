"""
Turn orchestrator.

Drives one chat turn through

    Idle -> BuildingPrompt -> Streaming -> (ToolDispatch <-> Streaming)*
         -> Finalizing -> Done

with Failed reachable from every non-terminal state. A turn is a generator
of events: the HTTP layer pulls it from a worker thread and closes it when the
client disconnects, which stops fragment consumption and closes the model
stream.

Persistence per turn is all-or-nothing on the assistant side: the user message
is stored before any model work, and the tool-call messages plus the
assistant message are stored together in one transaction during Finalizing.
"""

import logging
from enum import Enum
from typing import Callable, Iterator, Optional
from uuid import uuid4

import requests

from ..config import config
from ..errors import ContextLoadError, ConversationNotFoundError
from ..models import ChatContext, Conversation, Message, MessageDraft, MessageKind, MessageRole
from ..store import SQLiteConversationStore, derive_title
from ..tools import ToolDefinition, ToolRegistry, ToolScope, get_workspace_client
from ..tracing import TracingContext, get_tracing_client
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
from .prompt import (
    AGENT_PROMPT,
    ASK_PROMPT,
    COLLECTION_PROMPT,
    ContextNote,
    EffectivePrompt,
    build_context_notes_block,
    build_route_block,
)
from .sources import SourceCollector
from .tool_calls import ToolCallTable, TurnToolCall

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong while generating a response. Please try again."

ContextLoader = Callable[[list[str], ToolScope], list[ContextNote]]


class TurnMode(str, Enum):
    ASK = "ask"
    AGENT = "agent"


class TurnState(str, Enum):
    IDLE = "idle"
    BUILDING_PROMPT = "building_prompt"
    STREAMING = "streaming"
    TOOL_DISPATCH = "tool_dispatch"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


def load_context_notes(note_ids: list[str], scope: ToolScope) -> list[ContextNote]:
    """Fetch the notes a message references through the workspace API."""
    try:
        notes = get_workspace_client().get_notes(note_ids, scope)
    except requests.exceptions.RequestException as e:
        raise ContextLoadError(f"Could not load context notes: {e}") from e
    return [
        ContextNote(
            id=note.get("id", ""),
            title=note.get("title") or "Untitled",
            content=note.get("searchableContent") or note.get("content") or "",
        )
        for note in notes
    ]


class TurnOrchestrator:
    """Creates and runs chat turns against a store, a model adapter and the tool registry."""

    def __init__(
        self,
        store: SQLiteConversationStore,
        adapter: Optional[ModelStreamAdapter] = None,
        registry: type[ToolRegistry] = ToolRegistry,
        context_loader: Optional[ContextLoader] = None,
        history_limit: Optional[int] = None,
        max_tool_rounds: Optional[int] = None,
    ):
        self.store = store
        self.adapter = adapter or OpenAIStreamAdapter()
        self.registry = registry
        self.context_loader = context_loader or load_context_notes
        self.history_limit = history_limit or config.store.history_limit
        self.max_tool_rounds = max(1, max_tool_rounds or config.model.max_tool_rounds)

    def start_turn(
        self,
        mode: TurnMode,
        user_id: str,
        message: str,
        model: str,
        conversation_id: Optional[str] = None,
        context: Optional[ChatContext] = None,
    ) -> "ChatTurn":
        """Validate the request and prepare a turn without starting it.

        Raises:
            ConversationNotFoundError: ``conversation_id`` is unknown or owned
                by someone else.
        """
        conversation = None
        if conversation_id:
            conversation = self.store.load_conversation(conversation_id, user_id)
            if conversation is None:
                raise ConversationNotFoundError(conversation_id)
        return ChatTurn(
            orchestrator=self,
            mode=mode,
            user_id=user_id,
            message=message,
            model=model,
            conversation=conversation,
            context=context or ChatContext(),
        )

    def run_ask_turn(
        self,
        user_id: str,
        conversation_id: Optional[str],
        message: str,
        model: str,
        context: Optional[ChatContext] = None,
    ) -> Iterator[TurnEvent]:
        """Answer without tools."""
        turn = self.start_turn(TurnMode.ASK, user_id, message, model, conversation_id, context)
        return turn.events()

    def run_agent_turn(
        self,
        user_id: str,
        conversation_id: Optional[str],
        message: str,
        model: str,
        context: Optional[ChatContext] = None,
    ) -> Iterator[TurnEvent]:
        """Answer with note tools, web search, and collection search when a collection is active."""
        turn = self.start_turn(TurnMode.AGENT, user_id, message, model, conversation_id, context)
        return turn.events()


class ChatTurn:
    """One user message and everything done in response to it."""

    def __init__(
        self,
        orchestrator: TurnOrchestrator,
        mode: TurnMode,
        user_id: str,
        message: str,
        model: str,
        conversation: Optional[Conversation],
        context: ChatContext,
    ):
        self._orchestrator = orchestrator
        self._store = orchestrator.store
        self._adapter = orchestrator.adapter
        self._registry = orchestrator.registry

        self.mode = mode
        self.user_id = user_id
        self.message = message
        self.model = model
        self.context = context
        self.conversation = conversation
        self.execution_id = f"turn-{uuid4().hex[:8]}"
        self.state = TurnState.IDLE

        self.scope = ToolScope(
            user_id=user_id,
            team_id=context.team_id,
            collection_id=context.collection_id if mode == TurnMode.AGENT else None,
        )
        self._calls = ToolCallTable(self.execution_id)
        self._sources = SourceCollector()
        self._text: list[str] = []
        self._executes_tools = getattr(self._adapter, "executes_tools", False)
        self._tracing = TracingContext(
            execution_id=self.execution_id,
            session_id=conversation.id if conversation else None,
            user_id=user_id,
        )

    @property
    def conversation_id(self) -> Optional[str]:
        return self.conversation.id if self.conversation else None

    def events(self) -> Iterator[TurnEvent]:
        """Run the turn, yielding wire events. Ends with exactly one done or error."""
        logger.info(
            f"[{self.execution_id}] Starting {self.mode.value} turn "
            f"(conversation={self.conversation_id or 'new'}, model={self.model})"
        )
        self._tracing.start_trace(
            name=f"chat_{self.mode.value}",
            input={"message": self.message},
            metadata={"model": self.model, "mode": self.mode.value},
        )
        try:
            yield from self._drive()
        except GeneratorExit:
            logger.info(f"[{self.execution_id}] Turn cancelled in state {self.state.value}")
            raise
        except Exception as e:
            self._transition(TurnState.FAILED)
            logger.exception(f"[{self.execution_id}] Turn failed: {e}")
            yield ErrorEvent(message=GENERIC_ERROR_MESSAGE)
        finally:
            status = {
                TurnState.DONE: "success",
                TurnState.FAILED: "error",
            }.get(self.state, "cancelled")
            self._tracing.end_trace(
                output="".join(self._text)[:2000],
                status=status,
                metadata={"tool_calls": len(self._calls), "sources": len(self._sources)},
            )
            client = get_tracing_client()
            if client and status != "cancelled":
                client.flush()

    def _transition(self, state: TurnState) -> None:
        logger.debug(f"[{self.execution_id}] {self.state.value} -> {state.value}")
        self.state = state

    # -- BuildingPrompt ------------------------------------------------

    def _drive(self) -> Iterator[TurnEvent]:
        self._transition(TurnState.BUILDING_PROMPT)
        if self.conversation is None:
            self.conversation = self._store.create_conversation(
                self.user_id, team_id=self.context.team_id
            )
            self._tracing.set_session(self.conversation.id)
            logger.info(f"[{self.execution_id}] Created conversation {self.conversation.id}")
            yield ConversationEvent(conversation_id=self.conversation.id)

        history = self._store.list_history(
            self.conversation.id, limit=self._orchestrator.history_limit
        )
        self._store.append_message(self.conversation.id, MessageRole.USER, self.message)
        prompt = self._build_prompt(history)

        yield from self._stream(prompt.to_messages())
        yield from self._finalize()

    def _build_prompt(self, history: list[Message]) -> EffectivePrompt:
        blocks: list[str] = []
        if self.context.note_ids:
            notes = self._orchestrator.context_loader(self.context.note_ids, self.scope)
            blocks.append(
                build_context_notes_block(notes, max_chars=config.chat.context_note_max_chars)
            )
        if self.mode == TurnMode.AGENT:
            blocks.append(build_route_block(self.context.route))
            if self.scope.collection_id:
                blocks.append(COLLECTION_PROMPT)

        return EffectivePrompt(
            system=AGENT_PROMPT if self.mode == TurnMode.AGENT else ASK_PROMPT,
            user_message=self.message,
            history=history,
            context_blocks=blocks,
        )

    def _declared_tools(self) -> list[ToolDefinition]:
        if self.mode != TurnMode.AGENT:
            return []
        return self._registry.declared_tools(collection_active=bool(self.scope.collection_id))

    # -- Streaming / ToolDispatch ---------------------------------------

    def _stream(self, messages: list[dict]) -> Iterator[TurnEvent]:
        self._transition(TurnState.STREAMING)
        tools = self._declared_tools()
        max_rounds = self._orchestrator.max_tool_rounds

        for round_number in range(1, max_rounds + 1):
            final_round = not tools or round_number == max_rounds
            round_tools = None if final_round else [tool.to_openai_tool() for tool in tools]
            round_calls: list[TurnToolCall] = []
            round_text: list[str] = []

            with self._tracing.generation(
                name=f"model_round_{round_number}",
                model=self.model,
                input=messages,
                metadata={"tools": len(round_tools or [])},
            ) as generation:
                fragments = self._adapter.stream(messages, self.model, tools=round_tools)
                try:
                    for fragment in fragments:
                        yield from self._on_fragment(fragment, round_calls, round_text)
                finally:
                    close = getattr(fragments, "close", None)
                    if close is not None:
                        close()
                generation.set_output(
                    {
                        "content": "".join(round_text),
                        "tool_calls": [call.name for call in round_calls],
                    }
                )

            if not round_calls or final_round:
                return

            logger.debug(
                f"[{self.execution_id}] Round {round_number} made {len(round_calls)} tool call(s)"
            )
            messages.append(
                {
                    "role": "assistant",
                    "content": "".join(round_text) or None,
                    "tool_calls": [
                        {
                            "id": call.key,
                            "type": "function",
                            "function": {"name": call.name, "arguments": call.arguments or "{}"},
                        }
                        for call in round_calls
                    ],
                }
            )
            for call in round_calls:
                messages.append(
                    {"role": "tool", "tool_call_id": call.key, "content": call.result or ""}
                )

    def _on_fragment(
        self,
        fragment: Fragment,
        round_calls: list[TurnToolCall],
        round_text: list[str],
    ) -> Iterator[TurnEvent]:
        if isinstance(fragment, TextDelta):
            if fragment.text:
                self._text.append(fragment.text)
                round_text.append(fragment.text)
                yield ContentEvent(delta=fragment.text)
            return

        if self.mode == TurnMode.ASK:
            logger.warning(
                f"[{self.execution_id}] Ignoring {type(fragment).__name__} in ask mode"
            )
            return

        if isinstance(fragment, ToolCallStart):
            call = self._calls.start(fragment.name, call_id=fragment.call_id, index=fragment.index)
            yield ToolCallStartEvent(name=call.name, id=call.key)

        elif isinstance(fragment, ToolCallArgs):
            self._calls.append_arguments(fragment.delta, call_id=fragment.call_id, index=fragment.index)

        elif isinstance(fragment, ToolCallComplete):
            call = self._calls.complete(call_id=fragment.call_id, index=fragment.index)
            if call is None:
                return
            args = call.parsed_arguments()
            yield ToolCallEvent(name=call.name, args=args, id=call.key)
            if self._executes_tools:
                return

            self._transition(TurnState.TOOL_DISPATCH)
            result = self._dispatch(call, args)
            self._calls.resolve(call.name, result, key=call.key)
            round_calls.append(call)
            yield ToolResultEvent(name=call.name, result=result)
            self._sources.add_from_result(call.name, result)
            self._transition(TurnState.STREAMING)

        elif isinstance(fragment, ToolResultFragment):
            self._calls.resolve(fragment.name, fragment.result, key=fragment.call_id)
            yield ToolResultEvent(name=fragment.name, result=fragment.result)
            self._sources.add_from_result(fragment.name, fragment.result)

    def _dispatch(self, call: TurnToolCall, args: dict) -> str:
        logger.info(f"[{self.execution_id}] Calling tool {call.name} ({call.key})")
        logger.debug(f"[{self.execution_id}] Tool args: {args}")
        with self._tracing.span(name=f"tool:{call.name}", input=args) as span:
            result = self._registry.dispatch(call.name, args, self.scope)
            span.set_output(result[:2000])
        logger.debug(f"[{self.execution_id}] Tool {call.name} returned {len(result)} chars")
        return result

    # -- Finalizing ------------------------------------------------------

    def _finalize(self) -> Iterator[TurnEvent]:
        self._transition(TurnState.FINALIZING)

        drafts = [
            MessageDraft(
                role=MessageRole.ASSISTANT,
                content=f"Tool: {call.name}",
                kind=MessageKind.TOOL_CALL,
                metadata={
                    "tool_name": call.name,
                    "tool_args": call.parsed_arguments(),
                    "tool_result": call.result,
                },
            )
            for call in self._calls.completed_calls()
        ]
        sources = self._sources.to_list()
        metadata: dict = {"model": self.model}
        if sources:
            metadata["sources"] = sources
        drafts.append(
            MessageDraft(
                role=MessageRole.ASSISTANT,
                content="".join(self._text),
                metadata=metadata,
            )
        )
        self._store.append_messages(self.conversation.id, drafts)

        if self._store.set_title_if_absent(
            self.conversation.id,
            derive_title(self.message, config.chat.title_max_length),
        ):
            logger.debug(f"[{self.execution_id}] Titled conversation {self.conversation.id}")

        logger.info(
            f"[{self.execution_id}] Turn complete: {len(drafts) - 1} tool call(s), "
            f"{len(sources)} source(s)"
        )
        if sources:
            yield SourcesEvent(sources=sources)
        self._transition(TurnState.DONE)
        yield DoneEvent()
