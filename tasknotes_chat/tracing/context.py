"""
Turn-scoped tracing context using Langfuse SDK v3.

Observations are created with explicit parents (``start_span`` /
``start_generation`` on the parent object) rather than the OpenTelemetry
"current" context. A turn is a generator that may resume on a different worker
thread after every yield, so nothing here relies on thread-local state.

Every method degrades to a no-op when tracing is disabled.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

from .client import get_tracing_client

logger = logging.getLogger(__name__)


@dataclass
class TracingContext:
    """Trace for a single chat turn, with nested spans and generations."""

    execution_id: str
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    _root_span: Any = field(default=None, repr=False)
    _enabled: bool = field(default=False, repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)

    def __post_init__(self):
        client = get_tracing_client()
        self._enabled = client is not None and client.enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start_trace(
        self,
        name: str = "chat_turn",
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        """Start the root span of this turn's trace."""
        if not self._enabled:
            return

        client = get_tracing_client()
        if not client or not client.client:
            return

        try:
            trace_metadata = {"execution_id": self.execution_id, **(metadata or {})}
            self._root_span = client.client.start_span(
                name=name,
                input=input,
                metadata=trace_metadata,
            )
            self._root_span.update_trace(
                name=name,
                user_id=self.user_id,
                session_id=self.session_id,
            )
            self._start_time = time.time()
        except Exception as e:
            logger.warning(f"[{self.execution_id}] Failed to start trace: {e}")
            self._root_span = None

    def set_session(self, session_id: str) -> None:
        """Attach the conversation id once it is known."""
        self.session_id = session_id
        if not self._root_span:
            return
        try:
            self._root_span.update_trace(session_id=session_id)
        except Exception as e:
            logger.warning(f"[{self.execution_id}] Failed to set trace session: {e}")

    def end_trace(
        self,
        output: Optional[Any] = None,
        status: str = "success",
        metadata: Optional[dict] = None,
    ) -> None:
        """End the root span, recording outcome and duration."""
        if not self._root_span:
            return

        try:
            duration_ms = (time.time() - self._start_time) * 1000
            self._root_span.update(
                output=output,
                level="ERROR" if status == "error" else None,
                metadata={
                    "status": status,
                    "duration_ms": round(duration_ms, 2),
                    **(metadata or {}),
                },
            )
            self._root_span.end()
        except Exception as e:
            logger.warning(f"[{self.execution_id}] Failed to end trace: {e}")
        finally:
            self._root_span = None

    @contextmanager
    def span(
        self,
        name: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> Generator["SpanContext", None, None]:
        """Child span of the turn, ended when the block exits."""
        span_ctx = SpanContext(name=name, input=input, metadata=metadata, _parent=self._root_span)
        try:
            span_ctx.start()
            yield span_ctx
        except BaseException:
            span_ctx.set_status("error")
            raise
        finally:
            span_ctx.end()

    @contextmanager
    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
        model_parameters: Optional[dict] = None,
    ) -> Generator["GenerationContext", None, None]:
        """Child generation for one model round."""
        gen_ctx = GenerationContext(
            name=name,
            model=model,
            input=input,
            metadata=metadata,
            model_parameters=model_parameters,
            _parent=self._root_span,
        )
        try:
            gen_ctx.start()
            yield gen_ctx
        except BaseException:
            gen_ctx.set_status("error")
            raise
        finally:
            gen_ctx.end()


@dataclass
class SpanContext:
    """A span under the turn's root span."""

    name: str
    input: Optional[Any] = None
    metadata: Optional[dict] = None
    _parent: Any = field(default=None, repr=False)
    _span: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    def start(self) -> None:
        if self._parent is None:
            return
        try:
            self._start_time = time.time()
            self._span = self._parent.start_span(
                name=self.name,
                input=self.input,
                metadata=self.metadata,
            )
        except Exception as e:
            logger.warning(f"Failed to start span '{self.name}': {e}")
            self._span = None

    def end(self) -> None:
        if not self._span:
            return
        try:
            duration_ms = (time.time() - self._start_time) * 1000
            update_kwargs: dict[str, Any] = {
                "metadata": {"status": self._status, "duration_ms": round(duration_ms, 2)},
            }
            if self._output is not None:
                update_kwargs["output"] = self._output
            if self._status == "error":
                update_kwargs["level"] = "ERROR"
            self._span.update(**update_kwargs)
            self._span.end()
        except Exception as e:
            logger.warning(f"Failed to end span '{self.name}': {e}")

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status


@dataclass
class GenerationContext:
    """A model generation under the turn's root span."""

    name: str
    model: str
    input: Optional[Any] = None
    metadata: Optional[dict] = None
    model_parameters: Optional[dict] = None
    _parent: Any = field(default=None, repr=False)
    _generation: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    def start(self) -> None:
        if self._parent is None:
            return
        try:
            self._start_time = time.time()
            self._generation = self._parent.start_generation(
                name=self.name,
                model=self.model,
                input=self.input,
                metadata=self.metadata,
                model_parameters=self.model_parameters,
            )
        except Exception as e:
            logger.warning(f"Failed to start generation '{self.name}': {e}")
            self._generation = None

    def end(self) -> None:
        if not self._generation:
            return
        try:
            duration_ms = (time.time() - self._start_time) * 1000
            update_kwargs: dict[str, Any] = {
                "metadata": {"status": self._status, "duration_ms": round(duration_ms, 2)},
            }
            if self._output is not None:
                update_kwargs["output"] = self._output
            if self._status == "error":
                update_kwargs["level"] = "ERROR"
            self._generation.update(**update_kwargs)
            self._generation.end()
        except Exception as e:
            logger.warning(f"Failed to end generation '{self.name}': {e}")

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status
