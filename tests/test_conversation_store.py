"""
Tests for satsflow_core.conversation_store.
"""
from __future__ import annotations

import json

import pytest

from satsflow_core.conversation_store import JsonFileConversationStore
from satsflow_core.exceptions import PersistenceError
from satsflow_core.models import Conversation, Message


def test_write_and_load(tmp_path):
    store = JsonFileConversationStore(tmp_path / "conversations.json")
    convo = Conversation(
        id="1700000000000",
        title="Lightning",
        messages=[Message(role="user", content="hi", extra={"model": "m-1"})],
    )

    store.write_snapshot([convo])
    loaded = store.load()

    assert loaded == [convo]
    assert loaded[0].messages[0].extra == {"model": "m-1"}
    assert store.updated_at() is not None


def test_missing_file_loads_empty(tmp_path):
    store = JsonFileConversationStore(tmp_path / "nothing.json")
    assert store.load() == []
    assert store.updated_at() is None


def test_corrupt_file_loads_empty(tmp_path):
    path = tmp_path / "conversations.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileConversationStore(path).load() == []


def test_malformed_entries_are_skipped(tmp_path):
    path = tmp_path / "conversations.json"
    path.write_text(json.dumps([{"id": "1", "title": "ok"}, {"title": "no id"}, "junk"]), encoding="utf-8")

    loaded = JsonFileConversationStore(path).load()

    assert [c.id for c in loaded] == ["1"]


def test_write_replaces_whole_snapshot(tmp_path):
    store = JsonFileConversationStore(tmp_path / "conversations.json")
    store.write_snapshot([Conversation(id="1"), Conversation(id="2")])
    store.write_snapshot([Conversation(id="2")])

    assert [c.id for c in store.load()] == ["2"]
    assert not list(tmp_path.glob("*.tmp"))


def test_unwritable_location_raises_persistence_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonFileConversationStore(blocker / "conversations.json")

    with pytest.raises(PersistenceError):
        store.write_snapshot([Conversation(id="1")])
