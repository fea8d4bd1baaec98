"""
Balance - Chat history cache tests.

Created by Balance Terminal contributors
"""

from balance.chat_history import ChatHistoryCache
from balance.constants import CHAT_HISTORY_STORAGE_KEY, STORED_MESSAGES_STORAGE_KEY
from balance.local_storage import LocalStorage


class TestRecentChats:
    """Bounded most-recently-active index."""

    def test_new_conversation(self, storage):
        cache = ChatHistoryCache(storage)
        entry = cache.touch("Bob", "hello", is_own_message=False)
        assert entry.username == "bob"
        assert entry.last_message == "hello"
        assert entry.unread_count == 1
        assert [e.username for e in cache.recent()] == ["bob"]

    def test_cap_keeps_most_recent(self, storage):
        cache = ChatHistoryCache(storage)
        for i in range(25):
            cache.touch(f"user{i}", "hi", is_own_message=False)

        recent = cache.recent()
        assert len(recent) == 20
        assert recent[0].username == "user24"
        assert recent[-1].username == "user5"
        assert "user0" not in {e.username for e in recent}

    def test_touch_moves_to_front(self, storage):
        cache = ChatHistoryCache(storage)
        for name in ("a", "b", "c"):
            cache.touch(name, "hi", is_own_message=True)
        cache.touch("a", "again", is_own_message=True)
        assert [e.username for e in cache.recent()] == ["a", "c", "b"]

    def test_one_entry_per_peer(self, storage):
        cache = ChatHistoryCache(storage)
        first = cache.touch("bob", "one", is_own_message=False)
        second = cache.touch("BOB", "two", is_own_message=False)
        assert first.id == second.id
        assert len(cache.recent()) == 1

    def test_unread_counts(self, storage):
        cache = ChatHistoryCache(storage)
        cache.touch("bob", "1", is_own_message=False)
        cache.touch("bob", "2", is_own_message=False)
        cache.touch("carol", "3", is_own_message=False)
        assert cache.recent()[1].unread_count == 2
        assert cache.unread_total() == 3

    def test_own_message_resets_unread(self, storage):
        cache = ChatHistoryCache(storage)
        cache.touch("bob", "1", is_own_message=False)
        entry = cache.touch("bob", "reply", is_own_message=True)
        assert entry.unread_count == 0

    def test_mark_read_keeps_position(self, storage):
        cache = ChatHistoryCache(storage)
        cache.touch("bob", "1", is_own_message=False)
        cache.touch("carol", "2", is_own_message=False)
        cache.mark_read("bob")

        recent = cache.recent()
        assert [e.username for e in recent] == ["carol", "bob"]
        assert recent[1].unread_count == 0
        assert recent[0].unread_count == 1

    def test_mark_read_unknown_peer(self, storage):
        ChatHistoryCache(storage).mark_read("nobody")
        assert CHAT_HISTORY_STORAGE_KEY not in storage

    def test_snippet_truncation(self, storage):
        cache = ChatHistoryCache(storage)
        entry = cache.touch("bob", "x" * 60, is_own_message=True)
        assert entry.last_message == "x" * 50 + "..."

        entry = cache.touch("bob", "y" * 50, is_own_message=True)
        assert entry.last_message == "y" * 50

    def test_persisted_across_instances(self, temp_dir):
        path = temp_dir / "local_storage.json"
        ChatHistoryCache(LocalStorage(path)).touch("bob", "hello", is_own_message=False)

        reloaded = ChatHistoryCache(LocalStorage(path))
        assert reloaded.recent()[0].username == "bob"
        assert reloaded.recent()[0].unread_count == 1

    def test_malformed_storage_is_ignored(self, storage):
        storage.set(CHAT_HISTORY_STORAGE_KEY, [{"username": "broken"}, "junk"])
        cache = ChatHistoryCache(storage)
        assert cache.recent() == []
        cache.touch("bob", "hi", is_own_message=True)
        assert len(cache.recent()) == 1

    def test_clear(self, storage):
        cache = ChatHistoryCache(storage)
        cache.touch("bob", "hi", is_own_message=True)
        cache.store_message("bob", "hi", is_own_message=True)
        cache.clear()
        assert cache.recent() == []
        assert STORED_MESSAGES_STORAGE_KEY not in storage


class TestStoredMessages:
    """Offline message log."""

    def test_store_and_filter(self, storage):
        cache = ChatHistoryCache(storage)
        cache.store_message("bob", "to bob", is_own_message=True)
        cache.store_message("carol", "to carol", is_own_message=True)
        cache.store_message("Bob", "from bob", is_own_message=False)

        messages = cache.stored_messages("bob")
        assert [m.message for m in messages] == ["to bob", "from bob"]
        assert [m.is_own_message for m in messages] == [True, False]

    def test_log_is_capped(self, storage):
        cache = ChatHistoryCache(storage, max_stored_messages=5)
        for i in range(8):
            cache.store_message("bob", str(i), is_own_message=True)
        assert [m.message for m in cache.stored_messages("bob")] == ["3", "4", "5", "6", "7"]

    def test_zero_limit_keeps_nothing(self, storage):
        cache = ChatHistoryCache(storage, max_stored_messages=0)
        cache.store_message("bob", "hello", is_own_message=True)
        assert cache.stored_messages("bob") == []
