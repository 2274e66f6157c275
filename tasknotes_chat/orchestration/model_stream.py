"""
OpenAI-compatible model stream adapter.

Turns a streamed ``chat.completions`` response into fragments. Tool-call
deltas arrive keyed by ``index``. The id and the function name may be split
over several deltas, so a call is only started once its argument text begins
or the round ends.
"""

import logging
from typing import Iterator, Optional

from openai import OpenAI, OpenAIError

from ..config import config
from ..errors import ModelStreamError
from .fragments import Fragment, TextDelta, ToolCallArgs, ToolCallComplete, ToolCallStart

logger = logging.getLogger(__name__)


class OpenAIStreamAdapter:
    """Streams one model round from an OpenAI-compatible endpoint."""

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        max_tokens: Optional[int] = None,
    ):
        self._client = client or OpenAI(
            base_url=config.model.base_url,
            api_key=config.model.api_key or "not-needed",
            timeout=config.model.timeout,
        )
        self._max_tokens = max_tokens or config.model.max_tokens

    def stream(
        self,
        messages: list[dict],
        model: str,
        tools: Optional[list[dict]] = None,
    ) -> Iterator[Fragment]:
        kwargs = {
            "model": model,
            "messages": messages,
            "stream": True,
            "max_completion_tokens": self._max_tokens,
        }
        if tools:
            kwargs["tools"] = tools

        logger.debug(
            f"Model request: model={model}, messages={len(messages)}, tools={len(tools or [])}"
        )
        try:
            response = self._client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            raise ModelStreamError(f"Model request failed: {e}") from e

        # index -> tool call being streamed
        open_calls: dict[int, _PendingCall] = {}
        try:
            for chunk in response:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta

                if delta is not None:
                    if delta.content:
                        yield TextDelta(delta.content)

                    for tool_delta in delta.tool_calls or []:
                        call = open_calls.setdefault(tool_delta.index, _PendingCall(tool_delta.index))
                        yield from call.feed(tool_delta)

                if choice.finish_reason:
                    yield from _complete_open_calls(open_calls)

            yield from _complete_open_calls(open_calls)
        except OpenAIError as e:
            raise ModelStreamError(f"Model stream failed: {e}") from e
        finally:
            response.close()


class _PendingCall:
    """Name and id pieces for one tool-call index, held until arguments begin."""

    def __init__(self, index: int):
        self.index = index
        self.call_id: Optional[str] = None
        self.name = ""
        self.started = False

    def feed(self, tool_delta) -> Iterator[Fragment]:
        if tool_delta.id and not self.call_id:
            self.call_id = tool_delta.id
        function = tool_delta.function
        if function is None:
            return
        if function.name:
            if self.started:
                logger.warning(
                    f"Tool call name piece '{function.name}' for index {self.index} "
                    "arrived after its arguments; ignoring it"
                )
            else:
                self.name += function.name
        if function.arguments:
            yield from self.start()
            yield ToolCallArgs(delta=function.arguments, call_id=self.call_id, index=self.index)

    def start(self) -> Iterator[Fragment]:
        if not self.started:
            self.started = True
            yield ToolCallStart(name=self.name, call_id=self.call_id, index=self.index)


def _complete_open_calls(open_calls: dict[int, _PendingCall]) -> Iterator[Fragment]:
    for index in sorted(open_calls):
        call = open_calls[index]
        yield from call.start()
        yield ToolCallComplete(call_id=call.call_id, index=index)
    open_calls.clear()
