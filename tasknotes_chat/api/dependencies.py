"""Shared FastAPI dependencies: the store, the orchestrator and the caller identity."""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from ..config import config
from ..orchestration import OpenAIStreamAdapter, TurnOrchestrator
from ..store import SQLiteConversationStore

logger = logging.getLogger(__name__)

_store: Optional[SQLiteConversationStore] = None
_adapter: Optional[OpenAIStreamAdapter] = None


def get_store() -> SQLiteConversationStore:
    """Get the process-wide conversation store, initialising it on first use."""
    global _store
    if _store is None:
        _store = SQLiteConversationStore(config.store.db_path)
        _store.init()
    return _store


def get_orchestrator(
    store: SQLiteConversationStore = Depends(get_store),
) -> TurnOrchestrator:
    global _adapter
    if _adapter is None:
        _adapter = OpenAIStreamAdapter()
    return TurnOrchestrator(store=store, adapter=_adapter)


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity, set by the authenticating proxy in front of this service."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()
