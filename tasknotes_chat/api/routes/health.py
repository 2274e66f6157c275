"""Health check endpoints."""

import logging

from fastapi import APIRouter

from ... import __version__
from ...errors import StoreError
from ...tools import ToolRegistry
from ..dependencies import get_store
from ..schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check if the API server is running and its conversation store is reachable.",
)
def health_check() -> HealthResponse:
    """Return health status of the API server."""
    status, store = "healthy", "unavailable"
    try:
        conversation_store = get_store()
        conversation_store.list_history("__health__", limit=1)
        store = conversation_store.db_path
    except StoreError as e:
        logger.warning(f"Health check: conversation store unavailable: {e}")
        status = "unhealthy"
    return HealthResponse(
        status=status,
        version=__version__,
        store=store,
        tools=sorted(ToolRegistry.all_tools()),
    )
