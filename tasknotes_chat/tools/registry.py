"""
Tool Registry - Single source of truth for tool definitions.

Provides a central registry for all tools with their argument models,
handlers, and formatters. Handlers return a result dict; formatters turn it
into the text the model sees.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError

from ..errors import ToolDispatchError

logger = logging.getLogger(__name__)


@dataclass
class ToolScope:
    """Who a tool runs for, and which collection is active."""

    user_id: str
    team_id: Optional[str] = None
    collection_id: Optional[str] = None


@dataclass
class ToolDefinition:
    """Metadata for a tool - defined once, used everywhere."""

    name: str
    description: str
    args_model: type[BaseModel]
    handler: Callable[[Any, ToolScope], dict]
    formatter: Callable[[dict], str]
    requires_collection: bool = False

    def to_openai_tool(self) -> dict:
        """Function-calling declaration for the chat completions API."""
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }


class ToolRegistry:
    """Central registry for all tools."""

    _tools: dict[str, ToolDefinition] = {}

    @classmethod
    def register(
        cls,
        name: str,
        description: str,
        args_model: type[BaseModel],
        handler: Callable[[Any, ToolScope], dict],
        formatter: Callable[[dict], str],
        requires_collection: bool = False,
    ) -> None:
        """Register a tool with its metadata."""
        cls._tools[name] = ToolDefinition(
            name=name,
            description=description,
            args_model=args_model,
            handler=handler,
            formatter=formatter,
            requires_collection=requires_collection,
        )

    @classmethod
    def get(cls, name: str) -> Optional[ToolDefinition]:
        """Get a tool by name."""
        return cls._tools.get(name)

    @classmethod
    def all_tools(cls) -> dict[str, ToolDefinition]:
        """Get a copy of all registered tools."""
        return cls._tools.copy()

    @classmethod
    def declared_tools(cls, collection_active: bool = False) -> list[ToolDefinition]:
        """Tools offered to the model in agent mode.

        Collection tools are only offered while a collection is active.
        """
        return [
            tool
            for tool in cls._tools.values()
            if collection_active or not tool.requires_collection
        ]

    @classmethod
    def dispatch(cls, name: str, arguments: dict, scope: ToolScope) -> str:
        """Validate arguments, run the handler and format its result.

        Raises:
            ToolDispatchError: unknown tool, invalid arguments, or a handler
                that raised. Domain failures come back as result text.
        """
        tool = cls._tools.get(name)
        if tool is None:
            raise ToolDispatchError(name, "unknown tool")
        if tool.requires_collection and not scope.collection_id:
            raise ToolDispatchError(name, "no active collection")

        try:
            args = tool.args_model.model_validate(arguments)
        except ValidationError as e:
            raise ToolDispatchError(name, f"invalid arguments: {e}") from e

        try:
            return tool.formatter(tool.handler(args, scope))
        except Exception as e:
            raise ToolDispatchError(name, f"handler failed: {e}") from e

    @classmethod
    def clear(cls) -> None:
        """Clear all registered tools (mainly for testing)."""
        cls._tools.clear()
