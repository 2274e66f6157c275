"""
SQLite-backed conversation and message store.

Every message write runs inside a single ``BEGIN IMMEDIATE`` transaction whose
INSERT computes the next ``order`` value from the current maximum in the same
statement, so two turns appending to one conversation can never observe the
same maximum. A unique index on ``(conversation_id, "order")`` backs this up.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence
from uuid import uuid4

from ..errors import StoreError
from ..models import (
    Conversation,
    ConversationSummary,
    Message,
    MessageDraft,
    MessageKind,
    MessageRole,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    team_id TEXT,
    title TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    parent_id TEXT REFERENCES messages(id) ON DELETE SET NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    kind TEXT NOT NULL DEFAULT 'content',
    metadata TEXT,
    "order" INTEGER NOT NULL,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_messages_conversation_order
    ON messages(conversation_id, "order");
CREATE INDEX IF NOT EXISTS idx_conversations_owner_updated
    ON conversations(user_id, updated_at DESC);
"""

_CONVERSATION_COLUMNS = "id, user_id, team_id, title, created_at, updated_at"
_MESSAGE_COLUMNS = (
    'id, conversation_id, parent_id, role, content, kind, metadata, "order", created_at'
)

_INSERT_MESSAGE = (
    'INSERT INTO messages (id, conversation_id, parent_id, role, content, kind, metadata, "order", created_at) '
    'SELECT ?, ?, ?, ?, ?, ?, ?, COALESCE(MAX("order"), -1) + 1, ? '
    "FROM messages WHERE conversation_id = ?"
)


class SQLiteConversationStore:
    """SQLite repository for conversations and their ordered messages."""

    def __init__(self, db_path: str, busy_timeout: float = 30.0) -> None:
        path = Path(db_path)
        if not path.is_absolute():
            path = Path.cwd() / path
        self._db_path = str(path)
        self._busy_timeout = busy_timeout

    @property
    def db_path(self) -> str:
        return self._db_path

    def init(self) -> None:
        """Create the schema if it does not exist yet."""
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as connection:
            connection.execute("PRAGMA journal_mode = WAL;")
            connection.executescript(_SCHEMA)
        logger.info("Conversation database initialised at %s", self._db_path)

    # -- conversations -------------------------------------------------

    def create_conversation(
        self,
        user_id: str,
        team_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Conversation:
        conversation_id = str(uuid4())
        now = _utc_now()
        with self._transaction() as connection:
            connection.execute(
                f"INSERT INTO conversations ({_CONVERSATION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (conversation_id, user_id, team_id, title, now, now),
            )
        logger.debug("Created conversation %s for user %s", conversation_id, user_id)
        return Conversation(
            id=conversation_id,
            user_id=user_id,
            team_id=team_id,
            title=title,
            created_at=_parse_ts(now),
            updated_at=_parse_ts(now),
        )

    def load_conversation(self, conversation_id: str, user_id: str) -> Optional[Conversation]:
        """Return the conversation only if ``user_id`` owns it."""
        row = self._fetchone(
            f"SELECT {_CONVERSATION_COLUMNS} FROM conversations WHERE id = ? AND user_id = ?",
            (conversation_id, user_id),
        )
        return _row_to_conversation(row) if row else None

    def list_conversations(
        self,
        user_id: str,
        team_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ConversationSummary], int]:
        """List the caller's conversations, most recently updated first.

        Without a team, only personal (team-less) conversations are listed.
        """
        if team_id:
            scope, params = "c.user_id = ? AND c.team_id = ?", (user_id, team_id)
        else:
            scope, params = "c.user_id = ? AND c.team_id IS NULL", (user_id,)

        rows = self._fetchall(
            "SELECT c.id, c.user_id, c.team_id, c.title, c.created_at, c.updated_at, "
            "(SELECT COUNT(*) FROM messages m WHERE m.conversation_id = c.id) AS message_count, "
            "COALESCE((SELECT m.content FROM messages m WHERE m.conversation_id = c.id "
            "AND m.kind = 'content' ORDER BY m.\"order\" DESC LIMIT 1), '') AS last_message_preview "
            f"FROM conversations c WHERE {scope} "
            "ORDER BY c.updated_at DESC LIMIT ? OFFSET ?",
            (*params, limit, offset),
        )
        total_row = self._fetchone(
            f"SELECT COUNT(*) AS total FROM conversations c WHERE {scope}", params
        )
        summaries = [
            ConversationSummary(
                id=row["id"],
                user_id=row["user_id"],
                team_id=row["team_id"],
                title=row["title"],
                created_at=_parse_ts(row["created_at"]),
                updated_at=_parse_ts(row["updated_at"]),
                message_count=row["message_count"],
                last_message_preview=row["last_message_preview"][:200],
            )
            for row in rows
        ]
        return summaries, int(total_row["total"]) if total_row else 0

    def rename_conversation(
        self, conversation_id: str, user_id: str, title: str
    ) -> Optional[Conversation]:
        with self._transaction() as connection:
            cursor = connection.execute(
                "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                (title, _utc_now(), conversation_id, user_id),
            )
            if cursor.rowcount == 0:
                return None
        return self.load_conversation(conversation_id, user_id)

    def set_title_if_absent(self, conversation_id: str, title: str) -> bool:
        """Set the title unless one already exists. Returns True if it was set."""
        with self._transaction() as connection:
            cursor = connection.execute(
                "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ? AND title IS NULL",
                (title, _utc_now(), conversation_id),
            )
            return cursor.rowcount > 0

    def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        """Delete a conversation and, by cascade, its messages."""
        with self._transaction() as connection:
            cursor = connection.execute(
                "DELETE FROM conversations WHERE id = ? AND user_id = ?",
                (conversation_id, user_id),
            )
            return cursor.rowcount > 0

    # -- messages ------------------------------------------------------

    def append_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        kind: MessageKind = MessageKind.CONTENT,
        metadata: Optional[dict[str, Any]] = None,
        parent_id: Optional[str] = None,
    ) -> Message:
        draft = MessageDraft(
            role=role,
            content=content,
            kind=kind,
            metadata=metadata or {},
            parent_id=parent_id,
        )
        return self.append_messages(conversation_id, [draft])[0]

    def append_messages(
        self, conversation_id: str, drafts: Sequence[MessageDraft]
    ) -> list[Message]:
        """Append messages in one transaction, assigning consecutive orders.

        Either every draft is persisted or none is.
        """
        if not drafts:
            return []

        now = _utc_now()
        messages: list[Message] = []
        with self._transaction() as connection:
            for draft in drafts:
                message_id = str(uuid4())
                connection.execute(
                    _INSERT_MESSAGE,
                    (
                        message_id,
                        conversation_id,
                        draft.parent_id,
                        draft.role.value,
                        draft.content,
                        draft.kind.value,
                        json.dumps(draft.metadata) if draft.metadata else None,
                        now,
                        conversation_id,
                    ),
                )
                order = connection.execute(
                    'SELECT "order" FROM messages WHERE id = ?', (message_id,)
                ).fetchone()["order"]
                messages.append(
                    Message(
                        id=message_id,
                        conversation_id=conversation_id,
                        role=draft.role,
                        content=draft.content,
                        kind=draft.kind,
                        metadata=dict(draft.metadata),
                        order=order,
                        created_at=_parse_ts(now),
                        parent_id=draft.parent_id,
                    )
                )
            cursor = connection.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (now, conversation_id),
            )
            if cursor.rowcount == 0:
                raise StoreError(f"Conversation {conversation_id} does not exist")

        logger.debug(
            "Appended %d message(s) to %s (orders %s)",
            len(messages),
            conversation_id,
            [m.order for m in messages],
        )
        return messages

    def list_history(self, conversation_id: str, limit: int = 20) -> list[Message]:
        """Return the most recent ``limit`` content messages, oldest first."""
        rows = self._fetchall(
            f"SELECT {_MESSAGE_COLUMNS} FROM ("
            f"SELECT {_MESSAGE_COLUMNS} FROM messages "
            "WHERE conversation_id = ? AND kind = 'content' "
            'ORDER BY "order" DESC LIMIT ?'
            ') ORDER BY "order" ASC',
            (conversation_id, limit),
        )
        return [_row_to_message(row) for row in rows]

    def get_messages(
        self,
        conversation_id: str,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> Optional[tuple[list[Message], int]]:
        """Page through every message of an owned conversation.

        Returns None when the conversation is missing or not owned.
        """
        if self.load_conversation(conversation_id, user_id) is None:
            return None
        rows = self._fetchall(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE conversation_id = ? "
            'ORDER BY "order" ASC LIMIT ? OFFSET ?',
            (conversation_id, limit, offset),
        )
        total_row = self._fetchone(
            "SELECT COUNT(*) AS total FROM messages WHERE conversation_id = ?",
            (conversation_id,),
        )
        return [_row_to_message(row) for row in rows], int(total_row["total"])

    # -- plumbing ------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements in one write transaction, taking the write lock up front."""
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE")
            try:
                yield connection
            except BaseException:
                connection.execute("ROLLBACK")
                raise
            connection.execute("COMMIT")
        except sqlite3.Error as e:
            raise StoreError(f"Conversation store write failed: {e}") from e
        finally:
            connection.close()

    def _fetchall(self, query: str, params: tuple = ()) -> list[sqlite3.Row]:
        connection = self._connect()
        try:
            return connection.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Conversation store read failed: {e}") from e
        finally:
            connection.close()

    def _fetchone(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        connection = self._connect()
        try:
            return connection.execute(query, params).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Conversation store read failed: {e}") from e
        finally:
            connection.close()


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        user_id=row["user_id"],
        team_id=row["team_id"],
        title=row["title"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        parent_id=row["parent_id"],
        role=MessageRole(row["role"]),
        content=row["content"],
        kind=MessageKind(row["kind"]),
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
        order=row["order"],
        created_at=_parse_ts(row["created_at"]),
    )


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)
