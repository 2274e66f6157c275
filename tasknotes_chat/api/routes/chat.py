"""
Streaming chat endpoints.

POST /api/chat/ask and /api/chat/agent answer one message as a
Server-Sent Events stream. The turn itself is a blocking generator; it is
pulled from a worker thread and closed as soon as the client goes away.
"""

import logging
from typing import AsyncIterator

import anyio
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from ...config import config
from ...orchestration import ChatTurn, TurnMode, TurnOrchestrator, encode_event
from ..dependencies import get_orchestrator, get_user_id
from ..schemas import ApiResponse, ChatRequest, ModelListData

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _event_stream(request: Request, turn: ChatTurn) -> AsyncIterator[str]:
    """Encode turn events as SSE records until the turn ends or the client leaves."""
    events = turn.events()
    try:
        async for event in iterate_in_threadpool(events):
            yield encode_event(event)
            if await request.is_disconnected():
                logger.info(f"[{turn.execution_id}] Client disconnected; stopping turn")
                break
    finally:
        # Blocking cleanup; must also run when a disconnect cancels the task.
        with anyio.CancelScope(shield=True):
            await run_in_threadpool(events.close)


def _start(
    mode: TurnMode,
    request: Request,
    body: ChatRequest,
    user_id: str,
    orchestrator: TurnOrchestrator,
) -> StreamingResponse:
    logger.info(
        f"{mode.value} request from {user_id}: {body.message[:100]}"
        + ("..." if len(body.message) > 100 else "")
    )
    # Raises ConversationNotFoundError before any bytes are streamed
    turn = orchestrator.start_turn(
        mode,
        user_id=user_id,
        message=body.message,
        model=body.model,
        conversation_id=body.conversation_id,
        context=body.context.to_context() if body.context else None,
    )
    return StreamingResponse(
        _event_stream(request, turn),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post(
    "/ask",
    summary="Ask",
    description="Answer a message directly with the chosen model, without tools.",
    response_class=StreamingResponse,
)
def ask(
    request: Request,
    body: ChatRequest,
    user_id: str = Depends(get_user_id),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    return _start(TurnMode.ASK, request, body, user_id, orchestrator)


@router.post(
    "/agent",
    summary="Agent",
    description=(
        "Answer a message with the agent: note lookup and search, web search, and "
        "collection search when a collection is active."
    ),
    response_class=StreamingResponse,
)
def agent(
    request: Request,
    body: ChatRequest,
    user_id: str = Depends(get_user_id),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    return _start(TurnMode.AGENT, request, body, user_id, orchestrator)


@router.get(
    "/models",
    response_model=ApiResponse[ModelListData],
    summary="List models",
)
def list_models() -> ApiResponse[ModelListData]:
    """Return the chat models a request may choose from."""
    return ApiResponse(
        data=ModelListData(
            models=config.model.allowed_models,
            default=config.model.default_model,
        )
    )
