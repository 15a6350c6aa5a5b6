"""
SQLite storage for conversations.
One row per conversation, one row per message. Message order is the
insertion sequence, so two messages stamped in the same instant still
come back in the order they were appended.
"""

import sqlite3
import logging
from pathlib import Path
from contextlib import contextmanager

from chatrelay.storage.models import DEFAULT_TITLE, Conversation, Message

logger = logging.getLogger(__name__)

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id TEXT NOT NULL,
    role TEXT NOT NULL,
    text TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    FOREIGN KEY (conversation_id) REFERENCES conversations(id)
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation
    ON messages(conversation_id);
"""


class SQLiteStore:
    """
    Thread-safe SQLite conversation store.

    Find-or-create is INSERT OR IGNORE against the conversations primary
    key, run in the same transaction as the message inserts, so two
    concurrent first requests for one id share a single conversation row.
    """

    def __init__(self, db_path: str):
        # Every operation opens its own connection, so an in-memory
        # database would be empty again on the next call.
        if str(db_path).strip() == ":memory:":
            raise ValueError("SQLite store needs a file path, not ':memory:'")
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(CREATE_TABLES)
        logger.info("SQLite store initialized at %s", self.db_path)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _ensure_conversation(conn: sqlite3.Connection, conversation_id: str, created_at: str):
        conn.execute(
            "INSERT OR IGNORE INTO conversations (id, created_at) VALUES (?, ?)",
            (conversation_id, created_at),
        )

    @staticmethod
    def _insert_message(conn: sqlite3.Connection, msg: Message):
        conn.execute(
            """INSERT INTO messages (conversation_id, role, text, timestamp)
               VALUES (?, ?, ?, ?)""",
            (msg.conversation_id, msg.role, msg.text, msg.timestamp),
        )

    def append_message(self, msg: Message):
        """Store a single message. Creates the conversation if needed."""
        with self._connect() as conn:
            self._ensure_conversation(conn, msg.conversation_id, msg.timestamp)
            self._insert_message(conn, msg)
        logger.debug("Stored message (role=%s, conv=%s)", msg.role, msg.conversation_id)

    def append_exchange(self, conversation_id: str, user_text: str, bot_text: str) -> tuple[Message, Message]:
        """
        Append one user message and its bot reply, in that order, in a
        single transaction. Creates the conversation if needed.
        """
        user_msg = Message(conversation_id=conversation_id, role="user", text=user_text)
        bot_msg = Message(conversation_id=conversation_id, role="bot", text=bot_text)
        with self._connect() as conn:
            self._ensure_conversation(conn, conversation_id, user_msg.timestamp)
            self._insert_message(conn, user_msg)
            self._insert_message(conn, bot_msg)
        logger.debug("Stored exchange in conversation %s", conversation_id)
        return user_msg, bot_msg

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Return the conversation with all messages in order, or None."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, created_at FROM conversations WHERE id = ?",
                (conversation_id,),
            ).fetchone()
            if row is None:
                return None
            rows = conn.execute(
                """SELECT conversation_id, role, text, timestamp FROM messages
                   WHERE conversation_id = ? ORDER BY seq""",
                (conversation_id,),
            ).fetchall()
        return Conversation(
            id=row["id"],
            created_at=row["created_at"],
            messages=[Message(**dict(r)) for r in rows],
        )

    def list_conversations(self) -> list[dict]:
        """
        Every conversation projected to {conversationId, title}, oldest first.
        Title is the first user message, or DEFAULT_TITLE.
        """
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT c.id,
                          (SELECT m.text FROM messages m
                           WHERE m.conversation_id = c.id AND m.role = 'user'
                           ORDER BY m.seq LIMIT 1) AS title
                   FROM conversations c
                   ORDER BY c.created_at, c.rowid"""
            ).fetchall()
        return [
            {"conversationId": r["id"], "title": r["title"] or DEFAULT_TITLE}
            for r in rows
        ]

    def export_all_json(self) -> list[dict]:
        """Every conversation as a full document, oldest first."""
        with self._connect() as conn:
            ids = [
                r["id"] for r in conn.execute(
                    "SELECT id FROM conversations ORDER BY created_at, rowid"
                ).fetchall()
            ]
        result = []
        for conv_id in ids:
            conv = self.get_conversation(conv_id)
            if conv is not None:
                result.append(conv.to_dict())
        return result

    def get_stats(self) -> dict:
        """Return counts of stored conversations and messages."""
        with self._connect() as conn:
            conv_count = conn.execute("SELECT COUNT(*) FROM conversations").fetchone()[0]
            msg_count = conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
            user_count = conn.execute("SELECT COUNT(*) FROM messages WHERE role='user'").fetchone()[0]
            bot_count = conn.execute("SELECT COUNT(*) FROM messages WHERE role='bot'").fetchone()[0]

        return {
            "conversations": conv_count,
            "messages": msg_count,
            "user_messages": user_count,
            "bot_messages": bot_count,
        }
