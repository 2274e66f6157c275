"""
Pydantic schemas for the chat API.

JSON keys are camelCase to match the web client; Python attributes stay
snake_case. Non-streaming responses use a ``{"success": ..., "data": ...}``
envelope.
"""

from datetime import datetime
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..config import config
from ..models import ChatContext, Conversation, ConversationSummary, Message

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatContextSchema(CamelModel):
    """What the client is looking at while sending the message."""

    route: Optional[str] = Field(default=None, max_length=2048)
    note_ids: list[str] = Field(default_factory=list, max_length=20)
    team_id: Optional[str] = None
    collection_id: Optional[str] = None

    def to_context(self) -> ChatContext:
        return ChatContext(
            route=self.route,
            note_ids=list(self.note_ids),
            team_id=self.team_id,
            collection_id=self.collection_id,
        )


class ChatRequest(CamelModel):
    """Request body for /api/chat/ask and /api/chat/agent."""

    conversation_id: Optional[str] = Field(
        default=None, description="Existing conversation; omit to start a new one"
    )
    message: str = Field(
        ...,
        min_length=1,
        max_length=config.chat.max_message_length,
        description="The user's message",
    )
    model: str = Field(
        default_factory=lambda: config.model.default_model,
        description="Chat model to answer with",
    )
    context: Optional[ChatContextSchema] = None

    @field_validator("model")
    @classmethod
    def model_must_be_allowed(cls, v: str) -> str:
        if v not in config.model.allowed_models:
            raise ValueError(
                f"Unsupported model '{v}'. Choose one of: {', '.join(config.model.allowed_models)}"
            )
        return v

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
        json_schema_extra={
            "example": {
                "message": "find the wifi password",
                "model": "gpt-4o-mini",
                "context": {"route": "/notes", "noteIds": []},
            }
        },
    )


class CreateConversationRequest(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    team_id: Optional[str] = None


class RenameConversationRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)


class ConversationOut(CamelModel):
    id: str
    user_id: str
    team_id: Optional[str] = None
    title: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationOut":
        return cls(
            id=conversation.id,
            user_id=conversation.user_id,
            team_id=conversation.team_id,
            title=conversation.title,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )


class ConversationSummaryOut(ConversationOut):
    message_count: int = 0
    last_message_preview: str = ""

    @classmethod
    def from_summary(cls, summary: ConversationSummary) -> "ConversationSummaryOut":
        return cls(
            id=summary.id,
            user_id=summary.user_id,
            team_id=summary.team_id,
            title=summary.title,
            created_at=summary.created_at,
            updated_at=summary.updated_at,
            message_count=summary.message_count,
            last_message_preview=summary.last_message_preview,
        )


class MessageOut(CamelModel):
    id: str
    conversation_id: str
    parent_id: Optional[str] = None
    role: Literal["user", "assistant"]
    content: str
    message_type: Literal["content", "tool_call"]
    metadata: dict[str, Any] = Field(default_factory=dict)
    order: int
    created_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            parent_id=message.parent_id,
            role=message.role.value,
            content=message.content,
            message_type=message.kind.value,
            metadata=message.metadata,
            order=message.order,
            created_at=message.created_at,
        )


class ConversationListData(CamelModel):
    conversations: list[ConversationSummaryOut]
    total: int
    limit: int
    offset: int


class ConversationDetailData(CamelModel):
    conversation: ConversationOut
    messages: list[MessageOut]


class MessagePageData(CamelModel):
    messages: list[MessageOut]
    total: int
    limit: int
    offset: int
    has_more: bool


class ModelListData(CamelModel):
    models: list[str]
    default: str


class ApiResponse(CamelModel, Generic[T]):
    """Envelope for non-streaming responses."""

    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Response body for /health endpoint."""

    status: Literal["healthy", "unhealthy"]
    version: str
    store: str
    tools: list[str]
