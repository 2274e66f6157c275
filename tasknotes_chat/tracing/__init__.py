"""
Langfuse tracing integration for the TaskNotes chat service.

Provides observability for chat turns, model rounds and tool dispatches.
"""

from .client import (
    TracingClient,
    init_tracing_client,
    get_tracing_client,
    shutdown_tracing,
)
from .context import (
    TracingContext,
    SpanContext,
    GenerationContext,
)

__all__ = [
    "TracingClient",
    "init_tracing_client",
    "get_tracing_client",
    "shutdown_tracing",
    "TracingContext",
    "SpanContext",
    "GenerationContext",
]
