"""
Conversation storage for chatrelay.
"""
from chatrelay.storage.models import Conversation, Message
from chatrelay.storage.sqlite_store import SQLiteStore

__all__ = ["Conversation", "Message", "SQLiteStore"]
