"""Tests for effective prompt construction."""

from datetime import datetime, timezone

from tasknotes_chat.models import Message, MessageKind, MessageRole
from tasknotes_chat.orchestration.prompt import (
    ASK_PROMPT,
    ContextNote,
    EffectivePrompt,
    build_context_notes_block,
    build_route_block,
)


def message(role, content, order):
    return Message(
        id=f"m{order}",
        conversation_id="c1",
        role=role,
        content=content,
        kind=MessageKind.CONTENT,
        metadata={},
        order=order,
        created_at=datetime.now(timezone.utc),
    )


class TestContextBlocks:
    """Tests for supplementary context blocks."""

    def test_notes_block_clips_long_bodies(self):
        """Each note body is clipped to the configured length."""
        block = build_context_notes_block(
            [ContextNote(id="n1", title="Long", content="x" * 20)], max_chars=5
        )

        assert block == "Context notes:\n\n### Long\nxxxxx..."

    def test_empty_inputs_give_empty_blocks(self):
        """No notes and no route contribute nothing."""
        assert build_context_notes_block([]) == ""
        assert build_route_block(None) == ""


class TestEffectivePrompt:
    """Tests for EffectivePrompt.to_messages."""

    def test_message_layout(self):
        """System first, then history, then the new user message."""
        prompt = EffectivePrompt(
            system=ASK_PROMPT,
            user_message="and now?",
            history=[
                message(MessageRole.USER, "hi", 0),
                message(MessageRole.ASSISTANT, "hello", 1),
            ],
            context_blocks=["", "User is currently viewing: /notes"],
        )

        messages = prompt.to_messages()

        assert messages[0]["role"] == "system"
        assert messages[0]["content"].endswith(
            "### Additional Context\n\nUser is currently viewing: /notes"
        )
        assert messages[1:] == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "and now?"},
        ]

    def test_no_blocks_keeps_system_prompt(self):
        """Without context the system prompt is unchanged."""
        messages = EffectivePrompt(system=ASK_PROMPT, user_message="hi").to_messages()

        assert messages[0]["content"] == ASK_PROMPT
