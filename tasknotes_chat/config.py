"""
Configuration management for the TaskNotes chat service.

Loads all configuration from environment variables with sensible defaults
for local development.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CHAT_MODELS = "o3-mini,gpt-4o,gpt-4o-mini,gpt-4.1,gpt-4.1-mini"


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class ModelConfig:
    """Configuration for the chat model endpoint."""
    base_url: str = os.getenv("CHAT_MODEL_BASE_URL", "https://api.openai.com/v1")
    api_key: str = os.getenv("CHAT_MODEL_API_KEY", os.getenv("OPENAI_API_KEY", ""))
    default_model: str = os.getenv("CHAT_DEFAULT_MODEL", "gpt-4o-mini")
    allowed_models: list[str] = field(
        default_factory=lambda: _split_csv(os.getenv("CHAT_MODELS", DEFAULT_CHAT_MODELS))
    )
    max_tokens: int = int(os.getenv("CHAT_MAX_TOKENS", "4096"))
    # Model rounds per agent turn; the last permitted round runs without tools.
    max_tool_rounds: int = int(os.getenv("CHAT_MAX_TOOL_ROUNDS", "8"))
    timeout: float = float(os.getenv("CHAT_MODEL_TIMEOUT", "120"))


@dataclass
class StoreConfig:
    """Configuration for the conversation store."""
    db_path: str = os.getenv("CHAT_DB_PATH", "tasknotes_chat.db")
    history_limit: int = int(os.getenv("CHAT_HISTORY_LIMIT", "20"))


@dataclass
class ChatConfig:
    """Limits applied while building prompts and titles."""
    title_max_length: int = int(os.getenv("CHAT_TITLE_MAX_LENGTH", "50"))
    max_message_length: int = int(os.getenv("CHAT_MAX_MESSAGE_LENGTH", "10000"))
    context_note_max_chars: int = int(os.getenv("CHAT_CONTEXT_NOTE_MAX_CHARS", "8000"))


@dataclass
class ToolConfig:
    """Configuration for tool backends."""
    searxng_endpoint: str = os.getenv("SEARXNG_ENDPOINT", "http://localhost:8080/search")
    meilisearch_url: str = os.getenv("MEILISEARCH_HOST", "http://localhost:7700")
    meilisearch_key: str = os.getenv("MEILI_MASTER_KEY", "")
    workspace_api_url: str = os.getenv("WORKSPACE_API_URL", "http://localhost:3000/api")
    workspace_api_token: str = os.getenv("WORKSPACE_API_TOKEN", "")
    vector_search_url: str = os.getenv("VECTOR_SEARCH_URL", "http://localhost:3000/api/internal/vector-search")
    timeout: int = int(os.getenv("TOOL_TIMEOUT", "15"))


@dataclass
class ServerConfig:
    """Configuration for the FastAPI server."""
    host: str = os.getenv("SERVER_HOST", "0.0.0.0")
    port: int = int(os.getenv("SERVER_PORT", "8000"))
    workers: int = int(os.getenv("SERVER_WORKERS", "1"))
    reload: bool = os.getenv("SERVER_RELOAD", "false").lower() == "true"
    cors_origins: list[str] = field(
        default_factory=lambda: _split_csv(os.getenv("CORS_ORIGINS", "*"))
    )


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = os.getenv("LANGFUSE_PUBLIC_KEY", "")
    secret_key: str = os.getenv("LANGFUSE_SECRET_KEY", "")
    host: str = os.getenv("LANGFUSE_HOST", "")
    debug: bool = os.getenv("LANGFUSE_DEBUG", "false").lower() == "true"

    @property
    def enabled(self) -> bool:
        """Auto-enable when both keys are configured."""
        return bool(self.public_key and self.secret_key)


@dataclass
class Config:
    """Main configuration container."""
    model: ModelConfig
    store: StoreConfig
    chat: ChatConfig
    tools: ToolConfig
    server: ServerConfig
    langfuse: LangfuseConfig
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def get_config() -> Config:
    """Get the application configuration."""
    return Config(
        model=ModelConfig(),
        store=StoreConfig(),
        chat=ChatConfig(),
        tools=ToolConfig(),
        server=ServerConfig(),
        langfuse=LangfuseConfig(),
    )


# Global config instance
config = get_config()
