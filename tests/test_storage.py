"""
Tests for SQLite storage.
Uses a temp database for each test.
"""

import threading

import pytest
from chatrelay.storage.sqlite_store import SQLiteStore
from chatrelay.storage.models import DEFAULT_TITLE, Conversation, Message


@pytest.fixture
def store(tmp_path):
    """Create a fresh SQLite store for each test."""
    db_path = str(tmp_path / "test.db")
    return SQLiteStore(db_path)


def test_message_defaults():
    """Message gets a timestamp by default."""
    msg = Message(conversation_id="abc", role="user", text="hello")
    assert msg.timestamp
    assert msg.to_dict() == {"role": "user", "text": "hello", "timestamp": msg.timestamp}


def test_conversation_title():
    conv = Conversation(id="c1", messages=[
        Message(conversation_id="c1", role="bot", text="greeting"),
        Message(conversation_id="c1", role="user", text="first question"),
        Message(conversation_id="c1", role="user", text="second question"),
    ])
    assert conv.title == "first question"
    assert Conversation(id="c2").title == DEFAULT_TITLE


def test_store_and_retrieve(store):
    store.append_message(Message(conversation_id="conv1", role="user", text="hello world"))

    conv = store.get_conversation("conv1")
    assert conv is not None
    assert len(conv.messages) == 1
    assert conv.messages[0].role == "user"
    assert conv.messages[0].text == "hello world"


def test_append_exchange_order(store):
    """Two exchanges come back user, bot, user, bot."""
    store.append_exchange("conv1", "hi", "hello!")
    store.append_exchange("conv1", "how are you?", "fine")

    conv = store.get_conversation("conv1")
    assert [m.role for m in conv.messages] == ["user", "bot", "user", "bot"]
    assert [m.text for m in conv.messages] == ["hi", "hello!", "how are you?", "fine"]


def test_order_survives_identical_timestamps(store):
    ts = "2026-01-01T00:00:00+00:00"
    for i in range(5):
        store.append_message(Message(conversation_id="c1", role="user", text=f"m{i}", timestamp=ts))

    conv = store.get_conversation("c1")
    assert [m.text for m in conv.messages] == ["m0", "m1", "m2", "m3", "m4"]


def test_get_missing_conversation(store):
    assert store.get_conversation("nope") is None


def test_separate_conversations(store):
    store.append_exchange("conv1", "msg1", "r1")
    store.append_exchange("conv2", "msg2", "r2")

    assert len(store.get_conversation("conv1").messages) == 2
    assert len(store.get_conversation("conv2").messages) == 2


def test_list_empty(store):
    assert store.list_conversations() == []


def test_list_titles(store):
    store.append_exchange("c1", "What is Python?", "A language.")
    store.append_exchange("c1", "Who made it?", "Guido.")
    store.append_exchange("c2", "Tell me a joke", "No.")

    history = store.list_conversations()
    assert history == [
        {"conversationId": "c1", "title": "What is Python?"},
        {"conversationId": "c2", "title": "Tell me a joke"},
    ]


def test_list_title_fallback(store):
    """A conversation with no user message gets the default title."""
    store.append_message(Message(conversation_id="c1", role="bot", text="unsolicited"))
    assert store.list_conversations() == [{"conversationId": "c1", "title": DEFAULT_TITLE}]


def test_concurrent_first_writes_share_one_conversation(store):
    """Racing first requests for the same id never create duplicate rows."""
    errors = []

    def worker(i):
        try:
            store.append_exchange("shared", f"q{i}", f"a{i}")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(store.list_conversations()) == 1
    conv = store.get_conversation("shared")
    assert len(conv.messages) == 16
    # Each exchange stays paired
    for user, bot in zip(conv.messages[::2], conv.messages[1::2]):
        assert user.role == "user" and bot.role == "bot"
        assert user.text[1:] == bot.text[1:]


def test_stats(store):
    store.append_exchange("c1", "a", "b")
    store.append_message(Message(conversation_id="c2", role="user", text="c"))

    stats = store.get_stats()
    assert stats["conversations"] == 2
    assert stats["messages"] == 3
    assert stats["user_messages"] == 2
    assert stats["bot_messages"] == 1


def test_export_json(store):
    store.append_exchange("c1", "hello", "hi")

    export = store.export_all_json()
    assert len(export) == 1
    assert export[0]["conversationId"] == "c1"
    assert [m["role"] for m in export[0]["messages"]] == ["user", "bot"]
    assert export[0]["messages"][0]["text"] == "hello"


def test_persistence_across_instances(tmp_path):
    db_path = str(tmp_path / "nested" / "chat.db")
    SQLiteStore(db_path).append_exchange("c1", "q", "a")

    reopened = SQLiteStore(db_path)
    assert len(reopened.get_conversation("c1").messages) == 2


def test_in_memory_path_rejected():
    with pytest.raises(ValueError, match="file path"):
        SQLiteStore(":memory:")
