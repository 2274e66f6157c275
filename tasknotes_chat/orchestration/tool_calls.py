"""
Turn-local tool call assembly.

The model stream identifies tool calls by a correlation id that may be
missing or reused within a turn, and by a per-round index. ``ToolCallTable``
gives every call a key that is unique within the turn and routes argument,
completion and result fragments to the right call.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import ToolDispatchError

logger = logging.getLogger(__name__)


@dataclass
class TurnToolCall:
    """A tool call being assembled within one turn."""

    key: str
    name: str
    call_id: Optional[str] = None
    index: Optional[int] = None
    synthetic_key: bool = False
    arguments: str = ""
    result: Optional[str] = None
    completed: bool = False

    @property
    def resolved(self) -> bool:
        return self.result is not None

    def parsed_arguments(self) -> dict[str, Any]:
        """Parse the accumulated argument text. Empty text means no arguments."""
        if not self.arguments.strip():
            return {}
        try:
            value = json.loads(self.arguments)
        except json.JSONDecodeError as e:
            raise ToolDispatchError(self.name, f"arguments are not valid JSON: {e}") from e
        if not isinstance(value, dict):
            raise ToolDispatchError(self.name, "arguments must be a JSON object")
        return value


class ToolCallTable:
    """All tool calls of one turn, in registration order."""

    def __init__(self, execution_id: str = ""):
        self._execution_id = execution_id
        self._calls: dict[str, TurnToolCall] = {}
        self._completion_order: list[str] = []
        self._synthetic_counter = 0

    def __len__(self) -> int:
        return len(self._calls)

    def start(
        self,
        name: str,
        call_id: Optional[str] = None,
        index: Optional[int] = None,
    ) -> TurnToolCall:
        """Register a new call, minting a synthetic key if the id is absent or taken."""
        if call_id and call_id not in self._calls:
            key, synthetic = call_id, False
        else:
            if call_id:
                logger.warning(
                    f"[{self._execution_id}] Tool call id '{call_id}' reused within turn; "
                    "assigning a synthetic key"
                )
            key, synthetic = self._next_synthetic_key(), True

        call = TurnToolCall(
            key=key,
            name=name,
            call_id=call_id,
            index=index,
            synthetic_key=synthetic,
        )
        self._calls[key] = call
        return call

    def append_arguments(
        self,
        delta: str,
        call_id: Optional[str] = None,
        index: Optional[int] = None,
    ) -> Optional[TurnToolCall]:
        call = self._match_open(call_id, index)
        if call is None:
            logger.warning(
                f"[{self._execution_id}] Dropping argument fragment with no open tool call "
                f"(id={call_id}, index={index})"
            )
            return None
        call.arguments += delta
        return call

    def complete(
        self,
        call_id: Optional[str] = None,
        index: Optional[int] = None,
    ) -> Optional[TurnToolCall]:
        call = self._match_open(call_id, index)
        if call is None:
            logger.warning(
                f"[{self._execution_id}] Completion for unknown tool call "
                f"(id={call_id}, index={index})"
            )
            return None
        call.completed = True
        self._completion_order.append(call.key)
        return call

    def resolve(
        self,
        name: str,
        result: str,
        key: Optional[str] = None,
    ) -> Optional[TurnToolCall]:
        """Attach a result to its call.

        Matches by key (or stream id). When that is missing or already
        consumed, falls back to the oldest unresolved call with the same tool
        name. Returns None when nothing matches.
        """
        call = self._unresolved_by_key(key) if key else None
        if call is None:
            call = next(
                (c for c in self._calls.values() if c.name == name and not c.resolved),
                None,
            )
            if call is None:
                logger.warning(
                    f"[{self._execution_id}] Tool result for '{name}' (key={key}) "
                    "matches no pending call; not persisting it"
                )
                return None
            logger.warning(
                f"[{self._execution_id}] Tool result for '{name}' (key={key}) matched "
                f"by name to call {call.key}"
            )
        call.result = result
        return call

    def completed_calls(self) -> list[TurnToolCall]:
        """Completed calls in the order they completed."""
        return [self._calls[key] for key in self._completion_order]

    def _match_open(
        self, call_id: Optional[str], index: Optional[int]
    ) -> Optional[TurnToolCall]:
        open_calls = [c for c in self._calls.values() if not c.completed]
        if not open_calls:
            return None
        if call_id:
            # Newest first so a reused id routes to the call that reused it.
            for call in reversed(open_calls):
                if call.call_id == call_id:
                    return call
        if index is not None:
            for call in reversed(open_calls):
                if call.index == index:
                    return call
        return open_calls[-1]

    def _unresolved_by_key(self, key: str) -> Optional[TurnToolCall]:
        call = self._calls.get(key)
        if call is not None and not call.resolved:
            return call
        for call in self._calls.values():
            if call.call_id == key and not call.resolved:
                return call
        return None

    def _next_synthetic_key(self) -> str:
        while True:
            self._synthetic_counter += 1
            key = f"call_{self._synthetic_counter}"
            if key not in self._calls:
                return key
