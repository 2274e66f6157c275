"""
TaskNotes Chat Tools Package

Available tools:
- notes: note lookup, listing, tags, recency (workspace API) and search (Meilisearch)
- search: Web search via SearXNG
- collection: Vector search within the active collection
"""

from .registry import ToolDefinition, ToolRegistry, ToolScope
from . import collection, notes, search
from .workspace import WorkspaceClient, get_workspace_client


def register_default_tools() -> None:
    """Register every built-in tool (idempotent; used after ToolRegistry.clear())."""
    notes._register()
    search._register()
    collection._register()


__all__ = [
    "ToolDefinition",
    "ToolRegistry",
    "ToolScope",
    "WorkspaceClient",
    "get_workspace_client",
    "register_default_tools",
]
