"""
Process-wide Langfuse handle for chat turns.

Built once at server start from ``LangfuseConfig``. Tracing stays off when
the keys are missing or the server rejects them, and chat turns run the same
either way.
"""

import logging
from typing import Optional

from langfuse import Langfuse

from ..config import LangfuseConfig, config

logger = logging.getLogger(__name__)


class TracingClient:
    """Holds the Langfuse client, or the reason tracing is off."""

    def __init__(self, settings: Optional[LangfuseConfig] = None):
        settings = settings or config.langfuse
        self.host = settings.host
        self.error: Optional[str] = None
        self.client: Optional[Langfuse] = None

        if not settings.enabled:
            self.error = "Langfuse credentials not configured"
            return

        try:
            client = Langfuse(
                public_key=settings.public_key,
                secret_key=settings.secret_key,
                debug=settings.debug,
                **({"host": settings.host} if settings.host else {}),
            )
            if not client.auth_check():
                self.error = f"Langfuse auth_check() failed against {settings.host or 'default host'}"
            else:
                self.client = client
        except Exception as e:
            self.error = f"Langfuse unavailable: {e}"

        if self.error:
            logger.warning(f"Tracing disabled: {self.error}")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def flush(self) -> None:
        """Send a finished turn's observations."""
        if self.client is None:
            return
        try:
            self.client.flush()
        except Exception as e:
            logger.warning(f"Failed to flush turn traces: {e}")

    def shutdown(self) -> None:
        if self.client is None:
            return
        try:
            self.client.shutdown()
        except Exception as e:
            logger.warning(f"Error during tracing shutdown: {e}")
        self.client = None


_tracing_client: Optional[TracingClient] = None


def init_tracing_client(settings: Optional[LangfuseConfig] = None) -> TracingClient:
    """Create the shared client; called from the server lifespan."""
    global _tracing_client
    _tracing_client = TracingClient(settings)
    return _tracing_client


def get_tracing_client() -> Optional[TracingClient]:
    return _tracing_client


def shutdown_tracing() -> None:
    global _tracing_client
    if _tracing_client:
        _tracing_client.shutdown()
        _tracing_client = None
