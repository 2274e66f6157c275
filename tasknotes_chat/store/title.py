"""Conversation titles derived from the first user message."""

DEFAULT_TITLE_MAX_LENGTH = 50


def derive_title(message: str, max_length: int = DEFAULT_TITLE_MAX_LENGTH) -> str:
    """Truncate the message to ``max_length`` characters, marking truncation with '...'."""
    text = " ".join(message.split())
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."
