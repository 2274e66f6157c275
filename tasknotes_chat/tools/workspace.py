"""
HTTP client for the workspace API that owns notes.

Requests carry the caller's identity so the workspace applies its own access
rules; this service never reads note records directly.
"""

import logging
from typing import Any, Optional

import requests

from ..config import config
from .registry import ToolScope

logger = logging.getLogger(__name__)


class WorkspaceClient:
    """Thin wrapper over the workspace notes endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config.tools.workspace_api_url).rstrip("/")
        self.token = token if token is not None else config.tools.workspace_api_token
        self.timeout = timeout or config.tools.timeout
        self._session = session or requests.Session()

    def _headers(self, scope: ToolScope) -> dict[str, str]:
        headers = {"X-User-Id": scope.user_id}
        if scope.team_id:
            headers["X-Team-Id"] = scope.team_id
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get(self, path: str, scope: ToolScope, params: Optional[dict] = None) -> Any:
        response = self._session.get(
            f"{self.base_url}{path}",
            params=params,
            headers=self._headers(scope),
            timeout=self.timeout,
        )
        response.raise_for_status()
        body = response.json()
        # The workspace API wraps payloads as {"success": ..., "data": ...}
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def get_note(self, note_id: str, scope: ToolScope) -> Optional[dict]:
        """Fetch one note, or None when it is missing or not visible to the caller."""
        try:
            return self._get(f"/notes/{note_id}", scope)
        except requests.exceptions.HTTPError as e:
            if e.response is not None and e.response.status_code in (403, 404):
                return None
            raise

    def get_notes(self, note_ids: list[str], scope: ToolScope) -> list[dict]:
        """Fetch several notes, skipping ones that are missing."""
        notes = []
        for note_id in note_ids:
            note = self.get_note(note_id, scope)
            if note is not None:
                notes.append(note)
        return notes

    def list_notes(
        self,
        scope: ToolScope,
        parent_id: Optional[str] = None,
        limit: int = 50,
    ) -> list[dict]:
        params: dict[str, Any] = {"limit": limit}
        if scope.team_id:
            params["teamId"] = scope.team_id
        if parent_id is not None:
            params["parentId"] = parent_id
        return self._get("/notes", scope, params=params)

    def get_children(self, note_id: str, scope: ToolScope) -> list[dict]:
        """Unarchived child notes of a note, in their sibling order."""
        children = self.list_notes(scope, parent_id=note_id, limit=100)
        children = [c for c in children if not c.get("archived")]
        return sorted(children, key=lambda c: c.get("order") or 0)

    def get_notes_by_tag(self, tag_name: str, scope: ToolScope) -> list[dict]:
        params: dict[str, Any] = {"tag": tag_name}
        if scope.team_id:
            params["teamId"] = scope.team_id
        return self._get("/notes", scope, params=params)

    def get_recent_notes(self, scope: ToolScope, limit: int = 10) -> list[dict]:
        params: dict[str, Any] = {"limit": limit}
        if scope.team_id:
            params["teamId"] = scope.team_id
        return self._get("/notes/recent", scope, params=params)


_client: Optional[WorkspaceClient] = None


def get_workspace_client() -> WorkspaceClient:
    """Get the shared workspace client, creating it on first use."""
    global _client
    if _client is None:
        _client = WorkspaceClient()
    return _client
