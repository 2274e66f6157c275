"""Conversation management endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ...errors import ConversationNotFoundError
from ...store import SQLiteConversationStore
from ..dependencies import get_store, get_user_id
from ..schemas import (
    ApiResponse,
    ConversationDetailData,
    ConversationListData,
    ConversationOut,
    ConversationSummaryOut,
    CreateConversationRequest,
    MessageOut,
    MessagePageData,
    RenameConversationRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat/conversations")

# Upper bound for the messages returned alongside a single conversation
CONVERSATION_DETAIL_MESSAGE_LIMIT = 1000


@router.get(
    "",
    response_model=ApiResponse[ConversationListData],
    summary="List conversations",
)
def list_conversations(
    team_id: Optional[str] = Query(default=None, alias="teamId"),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_user_id),
    store: SQLiteConversationStore = Depends(get_store),
) -> ApiResponse[ConversationListData]:
    summaries, total = store.list_conversations(user_id, team_id=team_id, limit=limit, offset=offset)
    return ApiResponse(
        data=ConversationListData(
            conversations=[ConversationSummaryOut.from_summary(s) for s in summaries],
            total=total,
            limit=limit,
            offset=offset,
        )
    )


@router.post(
    "",
    response_model=ApiResponse[ConversationOut],
    status_code=201,
    summary="Create conversation",
)
def create_conversation(
    body: CreateConversationRequest,
    user_id: str = Depends(get_user_id),
    store: SQLiteConversationStore = Depends(get_store),
) -> ApiResponse[ConversationOut]:
    conversation = store.create_conversation(user_id, team_id=body.team_id, title=body.title)
    logger.info(f"Created conversation {conversation.id} for {user_id}")
    return ApiResponse(data=ConversationOut.from_conversation(conversation))


@router.get(
    "/{conversation_id}",
    response_model=ApiResponse[ConversationDetailData],
    summary="Get conversation with messages",
)
def get_conversation(
    conversation_id: str,
    user_id: str = Depends(get_user_id),
    store: SQLiteConversationStore = Depends(get_store),
) -> ApiResponse[ConversationDetailData]:
    conversation = store.load_conversation(conversation_id, user_id)
    if conversation is None:
        raise ConversationNotFoundError(conversation_id)
    page = store.get_messages(conversation_id, user_id, limit=CONVERSATION_DETAIL_MESSAGE_LIMIT)
    messages = page[0] if page else []
    return ApiResponse(
        data=ConversationDetailData(
            conversation=ConversationOut.from_conversation(conversation),
            messages=[MessageOut.from_message(m) for m in messages],
        )
    )


@router.patch(
    "/{conversation_id}",
    response_model=ApiResponse[ConversationOut],
    summary="Rename conversation",
)
def rename_conversation(
    conversation_id: str,
    body: RenameConversationRequest,
    user_id: str = Depends(get_user_id),
    store: SQLiteConversationStore = Depends(get_store),
) -> ApiResponse[ConversationOut]:
    conversation = store.rename_conversation(conversation_id, user_id, body.title)
    if conversation is None:
        raise ConversationNotFoundError(conversation_id)
    return ApiResponse(data=ConversationOut.from_conversation(conversation))


@router.delete(
    "/{conversation_id}",
    summary="Delete conversation",
)
def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(get_user_id),
    store: SQLiteConversationStore = Depends(get_store),
) -> JSONResponse:
    if not store.delete_conversation(conversation_id, user_id):
        raise ConversationNotFoundError(conversation_id)
    logger.info(f"Deleted conversation {conversation_id}")
    return JSONResponse({"success": True, "message": "Conversation deleted"})


@router.get(
    "/{conversation_id}/messages",
    response_model=ApiResponse[MessagePageData],
    summary="List messages",
)
def get_messages(
    conversation_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_user_id),
    store: SQLiteConversationStore = Depends(get_store),
) -> ApiResponse[MessagePageData]:
    page = store.get_messages(conversation_id, user_id, limit=limit, offset=offset)
    if page is None:
        raise ConversationNotFoundError(conversation_id)
    messages, total = page
    return ApiResponse(
        data=MessagePageData(
            messages=[MessageOut.from_message(m) for m in messages],
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(messages) < total,
        )
    )
