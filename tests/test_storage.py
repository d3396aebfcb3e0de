"""
Contract tests for the message store backends.
"""
import json
from datetime import datetime, timedelta, timezone

import pytest

from corpchannel.schemas.message import MessageCreate, MessageType
from corpchannel.storage.base import StorageError, count_reactions, toggle_user_reaction
from corpchannel.storage.file import JsonFileMessageStore
from corpchannel.storage.memory import InMemoryMessageStore
from corpchannel.storage.sql import SqlMessageStore


class TickingClock:
    """Returns a strictly increasing UTC time on every call."""

    def __init__(self, start=datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture(params=["memory", "file", "database"])
def store(request, tmp_path):
    """A fresh store for each backend."""
    clock = TickingClock()
    if request.param == "memory":
        instance = InMemoryMessageStore(clock=clock)
    elif request.param == "file":
        instance = JsonFileMessageStore(tmp_path / "data", clock=clock)
    else:
        instance = SqlMessageStore(f"sqlite:///{tmp_path / 'channel.db'}", clock=clock)
    yield instance
    instance.close()


def post(store, content="hello", **kwargs):
    return store.create_message(MessageCreate(content=content, **kwargs))


class TestCreateMessage:
    """Tests for message creation."""

    def test_defaults(self, store):
        message = post(store, "Welcome to the channel")

        assert message.id
        assert message.content == "Welcome to the channel"
        assert message.message_type == MessageType.TEXT
        assert message.view_count == 0
        assert message.is_pinned == 0
        assert message.reaction_count == 0
        assert message.reactions == {}
        assert message.media_url is None
        assert message.media_filename is None
        assert message.created_at.tzinfo is not None

    def test_ids_are_unique(self, store):
        ids = {post(store, f"m{i}").id for i in range(5)}
        assert len(ids) == 5

    def test_media_fields_kept(self, store):
        message = post(
            store,
            "",
            message_type=MessageType.IMAGE,
            media_url="/uploads/1-2.png",
            media_filename="cat.png",
        )
        stored = store.get_message(message.id)

        assert stored.content == ""
        assert stored.message_type == MessageType.IMAGE
        assert stored.media_url == "/uploads/1-2.png"
        assert stored.media_filename == "cat.png"


class TestOrdering:
    """Tests for list and search ordering."""

    def test_list_oldest_first(self, store):
        first = post(store, "cat one")
        second = post(store, "cat two")
        third = post(store, "cat three")

        ids = [m.id for m in store.get_all_messages()]
        assert ids == [first.id, second.id, third.id]

    def test_search_newest_first(self, store):
        first = post(store, "cat one")
        second = post(store, "cat two")
        third = post(store, "cat three")

        ids = [m.id for m in store.search_messages("cat")]
        assert ids == [third.id, second.id, first.id]

    def test_empty_store(self, store):
        assert store.get_all_messages() == []
        assert store.search_messages("anything") == []


class TestViewCount:
    """Tests for view counting."""

    def test_increment_twice(self, store):
        message = post(store)
        store.increment_view_count(message.id)
        store.increment_view_count(message.id)

        assert store.get_message(message.id).view_count == 2

    def test_unknown_id_is_noop(self, store):
        message = post(store)
        store.increment_view_count("does-not-exist")

        assert store.get_message(message.id).view_count == 0
        assert len(store.get_all_messages()) == 1


class TestPin:
    """Tests for pin toggling."""

    def test_toggle_flips(self, store):
        message = post(store)
        store.toggle_pin(message.id)
        assert store.get_message(message.id).is_pinned == 1

        store.toggle_pin(message.id)
        assert store.get_message(message.id).is_pinned == 0

    def test_pins_are_independent(self, store):
        first = post(store, "one")
        second = post(store, "two")
        store.toggle_pin(first.id)
        store.toggle_pin(second.id)

        assert [m.is_pinned for m in store.get_all_messages()] == [1, 1]

    def test_unknown_id_is_noop(self, store):
        store.toggle_pin("does-not-exist")
        assert store.get_all_messages() == []


class TestReactions:
    """Tests for reaction toggling."""

    def test_toggle_is_its_own_inverse(self, store):
        message = post(store)
        store.toggle_reaction(message.id, "u1", "👍")
        assert store.get_message(message.id).reaction_count == 1

        store.toggle_reaction(message.id, "u1", "👍")
        stored = store.get_message(message.id)
        assert stored.reaction_count == 0
        assert stored.reactions == {}

    def test_two_users_same_emoji(self, store):
        message = post(store)
        store.toggle_reaction(message.id, "u1", "👍")
        store.toggle_reaction(message.id, "u2", "👍")

        stored = store.get_message(message.id)
        assert stored.reaction_count == 2
        assert sorted(stored.reactions["👍"]) == ["u1", "u2"]

    def test_count_spans_emoji(self, store):
        message = post(store)
        store.toggle_reaction(message.id, "u1", "👍")
        store.toggle_reaction(message.id, "u1", "🔥")
        store.toggle_reaction(message.id, "u2", "🔥")

        stored = store.get_message(message.id)
        assert stored.reaction_count == 3
        assert set(stored.reactions) == {"👍", "🔥"}

    def test_defaults(self, store):
        message = post(store)
        store.toggle_reaction(message.id)
        store.toggle_reaction(message.id, "", "")

        stored = store.get_message(message.id)
        # Second call resolves to the same anonymous/heart pair and removes it
        assert stored.reactions == {}

        store.toggle_reaction(message.id, None, None)
        assert store.get_message(message.id).reactions == {"❤️": ["anonymous"]}

    def test_identity_is_opaque(self, store):
        message = post(store)
        identity = "user_a1b2c3 with spaces/and:symbols"
        store.toggle_reaction(message.id, identity, "👍")

        assert store.get_message(message.id).reactions == {"👍": [identity]}

    def test_unknown_id_is_noop(self, store):
        store.toggle_reaction("does-not-exist", "u1", "👍")
        assert store.get_all_messages() == []


class TestDelete:
    """Tests for deletion."""

    def test_delete_removes(self, store):
        keep = post(store, "keep")
        drop = post(store, "drop")
        store.delete_message(drop.id)

        assert [m.id for m in store.get_all_messages()] == [keep.id]
        assert store.get_message(drop.id) is None

    def test_delete_twice_is_noop(self, store):
        message = post(store)
        store.delete_message(message.id)
        store.delete_message(message.id)

        assert store.get_all_messages() == []


class TestSearch:
    """Tests for search matching."""

    def test_case_insensitive_content(self, store):
        cats = post(store, "Cats are great")
        post(store, "I prefer my dog")

        assert [m.id for m in store.search_messages("cat")] == [cats.id]
        assert [m.id for m in store.search_messages("CAT")] == [cats.id]

    def test_matches_media_filename(self, store):
        report = post(
            store,
            "",
            message_type=MessageType.FILE,
            media_url="/uploads/1-2.pdf",
            media_filename="Q3-Report.pdf",
        )
        post(store, "unrelated")

        assert [m.id for m in store.search_messages("report")] == [report.id]

    def test_case_insensitive_non_ascii(self, store):
        office = post(store, "Ёлка в ОФИСЕ, Café")
        post(store, "plain ascii")

        assert [m.id for m in store.search_messages("офисе")] == [office.id]
        assert [m.id for m in store.search_messages("CAFÉ")] == [office.id]

    def test_wildcard_characters_are_literal(self, store):
        post(store, "50% off")
        post(store, "500 items")

        assert [m.content for m in store.search_messages("0%")] == ["50% off"]


class TestReturnedCopies:
    """Returned messages never alias stored state."""

    def test_mutating_result_does_not_change_store(self, store):
        message = post(store)
        message.view_count = 99
        message.reactions["👍"] = ["u1"]

        stored = store.get_message(message.id)
        assert stored.view_count == 0
        assert stored.reactions == {}


class TestUsers:
    """Tests for the user record operations."""

    def test_create_and_lookup(self, store):
        user = store.create_user({"username": "admin", "role": "owner"})

        assert user["id"]
        assert store.get_user(user["id"])["username"] == "admin"
        assert store.get_user_by_username("admin")["role"] == "owner"

    def test_missing_user(self, store):
        assert store.get_user("nope") is None
        assert store.get_user_by_username("nobody") is None


class TestHealth:
    def test_healthy(self, store):
        assert store.is_healthy() is True
        post(store)
        assert store.count_messages() == 1


class TestJsonFileStore:
    """Behaviour specific to the JSON-file backend."""

    def test_creates_empty_documents(self, tmp_path):
        data_dir = tmp_path / "data"
        JsonFileMessageStore(data_dir)

        assert json.loads((data_dir / "messages.json").read_text()) == {}
        assert json.loads((data_dir / "users.json").read_text()) == {}

    def test_persists_across_instances(self, tmp_path):
        data_dir = tmp_path / "data"
        first = JsonFileMessageStore(data_dir)
        message = first.create_message(MessageCreate(content="persist me"))
        first.toggle_reaction(message.id, "u1", "👍")

        second = JsonFileMessageStore(data_dir)
        stored = second.get_message(message.id)
        assert stored.content == "persist me"
        assert stored.reactions == {"👍": ["u1"]}

    def test_document_uses_wire_field_names(self, tmp_path):
        data_dir = tmp_path / "data"
        store = JsonFileMessageStore(data_dir)
        message = store.create_message(MessageCreate(content="hi"))

        raw = json.loads((data_dir / "messages.json").read_text(encoding="utf-8"))
        record = raw[message.id]
        assert record["messageType"] == "text"
        assert record["viewCount"] == 0
        assert record["isPinned"] == 0
        assert record["reactions"] == {}
        assert "createdAt" in record

    def test_reads_string_encoded_reactions(self, tmp_path):
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        legacy = {
            "m1": {
                "id": "m1",
                "content": "legacy",
                "messageType": "text",
                "mediaUrl": None,
                "mediaFilename": None,
                "viewCount": 3,
                "isPinned": 1,
                "reactionCount": 1,
                "userReactions": "[]",
                "reactions": '{"👍": ["u1"]}',
                "createdAt": "2025-01-15T10:00:00.000Z",
            }
        }
        (data_dir / "messages.json").write_text(json.dumps(legacy), encoding="utf-8")

        store = JsonFileMessageStore(data_dir)
        stored = store.get_message("m1")
        assert stored.reactions == {"👍": ["u1"]}
        assert stored.view_count == 3

        store.toggle_reaction("m1", "u1", "👍")
        assert store.get_message("m1").reaction_count == 0

    def test_corrupt_document_raises(self, tmp_path):
        data_dir = tmp_path / "data"
        store = JsonFileMessageStore(data_dir)
        (data_dir / "messages.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError):
            store.get_all_messages()
        assert store.is_healthy() is False

    def test_no_temp_files_left_behind(self, tmp_path):
        data_dir = tmp_path / "data"
        store = JsonFileMessageStore(data_dir)
        message = store.create_message(MessageCreate(content="x"))
        store.increment_view_count(message.id)

        assert sorted(p.name for p in data_dir.iterdir()) == ["messages.json", "users.json"]


class TestReactionHelpers:
    def test_toggle_does_not_mutate_input(self):
        original = {"👍": ["u1"]}
        updated = toggle_user_reaction(original, "u2", "👍")

        assert original == {"👍": ["u1"]}
        assert updated == {"👍": ["u1", "u2"]}

    def test_count(self):
        assert count_reactions({}) == 0
        assert count_reactions({"a": ["1", "2"], "b": ["3"]}) == 3


class TestSqlTimestamps:
    """Creation times survive the SQLite round trip whatever the clock's offset."""

    def test_offset_clock_reads_back_same_instant(self, tmp_path):
        plus_five = timezone(timedelta(hours=5))
        clock = TickingClock(start=datetime(2025, 1, 15, 12, 0, tzinfo=plus_five))
        store = SqlMessageStore(f"sqlite:///{tmp_path / 'channel.db'}", clock=clock)
        try:
            message = store.create_message(MessageCreate(content="hello"))
            stored = store.get_message(message.id)

            assert stored.created_at == datetime(2025, 1, 15, 7, 0, 1, tzinfo=timezone.utc)
            assert stored.created_at == message.created_at
        finally:
            store.close()
