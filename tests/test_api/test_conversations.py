"""Tests for the conversation management endpoints."""

import pytest
from fastapi.testclient import TestClient

from tasknotes_chat.api.dependencies import get_store
from tasknotes_chat.api.main import app
from tasknotes_chat.models import MessageKind, MessageRole

client = TestClient(app)

HEADERS = {"X-User-Id": "user-1"}
OTHER_USER = {"X-User-Id": "user-2"}


@pytest.fixture(autouse=True)
def api_store(store):
    app.dependency_overrides[get_store] = lambda: store
    yield store
    app.dependency_overrides.clear()


class TestCreateAndList:
    """Tests for creating and listing conversations."""

    def test_create_returns_201(self):
        """Creating a conversation returns it in the envelope."""
        response = client.post(
            "/api/chat/conversations",
            json={"title": "Trip planning", "teamId": "team-1"},
            headers=HEADERS,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["title"] == "Trip planning"
        assert data["userId"] == "user-1"
        assert data["teamId"] == "team-1"
        assert "createdAt" in data

    def test_list_newest_first_with_preview(self, api_store):
        """Listing shows counts and previews, most recently updated first."""
        older = api_store.create_conversation("user-1")
        newer = api_store.create_conversation("user-1")
        api_store.append_message(older.id, MessageRole.USER, "latest words")

        response = client.get("/api/chat/conversations", headers=HEADERS)

        data = response.json()["data"]
        assert data["total"] == 2
        assert [c["id"] for c in data["conversations"]] == [older.id, newer.id]
        assert data["conversations"][0]["messageCount"] == 1
        assert data["conversations"][0]["lastMessagePreview"] == "latest words"

    def test_list_by_team(self, api_store):
        """teamId selects the team's conversations."""
        api_store.create_conversation("user-1")
        team = api_store.create_conversation("user-1", team_id="team-1")

        response = client.get("/api/chat/conversations?teamId=team-1", headers=HEADERS)

        assert [c["id"] for c in response.json()["data"]["conversations"]] == [team.id]

    def test_list_only_own(self, api_store):
        """Other users' conversations are not listed."""
        api_store.create_conversation("user-2")

        response = client.get("/api/chat/conversations", headers=HEADERS)

        assert response.json()["data"]["total"] == 0

    def test_invalid_limit_is_400(self):
        """Limits outside 1..100 are rejected."""
        response = client.get("/api/chat/conversations?limit=0", headers=HEADERS)

        assert response.status_code == 400


class TestSingleConversation:
    """Tests for reading, renaming and deleting one conversation."""

    def test_get_with_messages(self, api_store):
        """A conversation is returned with all of its messages in order."""
        conversation = api_store.create_conversation("user-1")
        api_store.append_message(conversation.id, MessageRole.USER, "find it")
        api_store.append_message(
            conversation.id,
            MessageRole.ASSISTANT,
            "Tool: search_notes",
            kind=MessageKind.TOOL_CALL,
            metadata={"tool_name": "search_notes"},
        )
        api_store.append_message(conversation.id, MessageRole.ASSISTANT, "found it")

        response = client.get(f"/api/chat/conversations/{conversation.id}", headers=HEADERS)

        data = response.json()["data"]
        assert data["conversation"]["id"] == conversation.id
        assert [(m["order"], m["messageType"]) for m in data["messages"]] == [
            (0, "content"),
            (1, "tool_call"),
            (2, "content"),
        ]
        assert data["messages"][1]["metadata"] == {"tool_name": "search_notes"}

    def test_get_other_users_conversation_is_404(self, api_store):
        """Someone else's conversation looks missing."""
        conversation = api_store.create_conversation("user-1")

        response = client.get(f"/api/chat/conversations/{conversation.id}", headers=OTHER_USER)

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_rename(self, api_store):
        """PATCH replaces the title."""
        conversation = api_store.create_conversation("user-1")

        response = client.patch(
            f"/api/chat/conversations/{conversation.id}",
            json={"title": "Budget"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Budget"

    def test_rename_empty_title_is_400(self, api_store):
        """A blank title is invalid."""
        conversation = api_store.create_conversation("user-1")

        response = client.patch(
            f"/api/chat/conversations/{conversation.id}",
            json={"title": ""},
            headers=HEADERS,
        )

        assert response.status_code == 400

    def test_delete(self, api_store):
        """DELETE removes the conversation; a second delete is 404."""
        conversation = api_store.create_conversation("user-1")

        response = client.delete(f"/api/chat/conversations/{conversation.id}", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["success"] is True

        again = client.delete(f"/api/chat/conversations/{conversation.id}", headers=HEADERS)
        assert again.status_code == 404


class TestMessagePaging:
    """Tests for GET /api/chat/conversations/{id}/messages."""

    def test_paging(self, api_store):
        """Pages report totals and whether more messages exist."""
        conversation = api_store.create_conversation("user-1")
        for i in range(5):
            api_store.append_message(conversation.id, MessageRole.USER, f"m{i}")

        first = client.get(
            f"/api/chat/conversations/{conversation.id}/messages?limit=2", headers=HEADERS
        ).json()["data"]
        last = client.get(
            f"/api/chat/conversations/{conversation.id}/messages?limit=2&offset=4",
            headers=HEADERS,
        ).json()["data"]

        assert [m["content"] for m in first["messages"]] == ["m0", "m1"]
        assert first["total"] == 5
        assert first["hasMore"] is True
        assert [m["content"] for m in last["messages"]] == ["m4"]
        assert last["hasMore"] is False

    def test_missing_conversation_is_404(self):
        """Paging an unknown conversation is 404."""
        response = client.get("/api/chat/conversations/missing/messages", headers=HEADERS)

        assert response.status_code == 404
