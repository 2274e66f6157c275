"""
Fragments yielded by a model stream adapter.

An adapter turns one model round into a finite, ordered sequence of these
values. Exhaustion of the sequence is the terminal signal for the round.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Protocol, Union


@dataclass(frozen=True)
class TextDelta:
    """A chunk of assistant text."""

    text: str


@dataclass(frozen=True)
class ToolCallStart:
    """A tool call has begun. ``call_id`` may be missing or reused by the model."""

    name: str
    call_id: Optional[str] = None
    index: Optional[int] = None


@dataclass(frozen=True)
class ToolCallArgs:
    """A piece of a tool call's JSON argument text."""

    delta: str
    call_id: Optional[str] = None
    index: Optional[int] = None


@dataclass(frozen=True)
class ToolCallComplete:
    """All argument text for a tool call has been sent."""

    call_id: Optional[str] = None
    index: Optional[int] = None


@dataclass(frozen=True)
class ToolResultFragment:
    """A tool result reported by an adapter that executes tools itself."""

    name: str
    result: str
    call_id: Optional[str] = None


Fragment = Union[TextDelta, ToolCallStart, ToolCallArgs, ToolCallComplete, ToolResultFragment]


class ModelStreamAdapter(Protocol):
    """Runs one model round and yields its fragments in order.

    ``tools`` is None when the round must not call tools. Closing the returned
    iterator must release the underlying connection.
    """

    def stream(
        self,
        messages: list[dict],
        model: str,
        tools: Optional[list[dict]] = None,
    ) -> Iterator[Fragment]:
        ...
