"""
Balance - Local chat history cache.

Created by Balance Terminal contributors
Version: 1.0.0

A bounded most-recently-active index of conversations for the sidebar,
plus a local log of recent messages for offline viewing.

Both are derived, advisory UI state: they are hand-maintained on every
local send/receive, may drift from the message store, and can be
discarded or rebuilt at any time without losing data.
"""

import logging
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from .constants import (
    CHAT_HISTORY_LIMIT,
    CHAT_HISTORY_STORAGE_KEY,
    CHAT_SNIPPET_LENGTH,
    STORED_MESSAGE_LIMIT,
    STORED_MESSAGES_STORAGE_KEY,
)
from .local_storage import LocalStorage
from .utils import new_id, normalize_username, truncate_snippet, utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class ChatHistoryEntry:
    """One conversation in the recent-chats list."""

    id: str
    username: str
    last_message: str
    timestamp: str
    unread_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatHistoryEntry":
        return cls(
            id=data["id"],
            username=data["username"],
            last_message=data["last_message"],
            timestamp=data["timestamp"],
            unread_count=int(data.get("unread_count", 0)),
        )


@dataclass
class StoredMessage:
    """A message kept in the local offline log."""

    id: str
    username: str
    message: str
    timestamp: str
    is_own_message: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ChatHistoryCache:
    """
    Bounded recent-conversation index, most recently touched first.

    Entries are keyed by lowercase peer username; touching an entry moves it
    to the front and the least recently touched entries beyond
    ``max_entries`` are evicted.

    Args:
        storage: Local storage the index is persisted in
        max_entries: Maximum number of conversations kept
        snippet_length: Characters of the last message kept in an entry
        max_stored_messages: Size of the offline message log
    """

    def __init__(
        self,
        storage: LocalStorage,
        max_entries: int = CHAT_HISTORY_LIMIT,
        snippet_length: int = CHAT_SNIPPET_LENGTH,
        max_stored_messages: int = STORED_MESSAGE_LIMIT,
    ):
        self.storage = storage
        self.max_entries = max_entries
        self.snippet_length = snippet_length
        self.max_stored_messages = max_stored_messages

    def _load(self) -> "OrderedDict[str, ChatHistoryEntry]":
        entries: "OrderedDict[str, ChatHistoryEntry]" = OrderedDict()
        raw = self.storage.get(CHAT_HISTORY_STORAGE_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed chat history in local storage")
            return entries
        for item in raw:
            try:
                entry = ChatHistoryEntry.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed chat history entry: {e}")
                continue
            entries.setdefault(normalize_username(entry.username), entry)
        return entries

    def _save(self, entries: "OrderedDict[str, ChatHistoryEntry]") -> None:
        self.storage.set(CHAT_HISTORY_STORAGE_KEY, [entry.to_dict() for entry in entries.values()])

    def recent(self) -> List[ChatHistoryEntry]:
        """Recent conversations, most recently active first."""
        return list(self._load().values())[: self.max_entries]

    def touch(self, peer_username: str, message: str, is_own_message: bool) -> ChatHistoryEntry:
        """
        Record activity in the conversation with ``peer_username``.

        Creates the entry or moves it to the front. Incoming messages bump
        the unread count; sending a message resets it, since the user is
        evidently looking at the conversation.

        Returns:
            The updated entry
        """
        key = normalize_username(peer_username)
        entries = self._load()
        previous = entries.pop(key, None)

        if is_own_message:
            unread = 0
        else:
            unread = (previous.unread_count if previous else 0) + 1

        entry = ChatHistoryEntry(
            id=previous.id if previous else new_id(),
            username=key,
            last_message=truncate_snippet(message, self.snippet_length),
            timestamp=utc_now_iso(),
            unread_count=unread,
        )
        entries[key] = entry
        entries.move_to_end(key, last=False)

        while len(entries) > self.max_entries:
            evicted, _ = entries.popitem(last=True)
            logger.debug(f"Chat history evicted {evicted} (size={len(entries)})")

        self._save(entries)
        return entry

    def mark_read(self, peer_username: str) -> None:
        """Zero the unread count of a conversation without changing its position."""
        key = normalize_username(peer_username)
        entries = self._load()
        entry = entries.get(key)
        if entry is None or entry.unread_count == 0:
            return
        entry.unread_count = 0
        self._save(entries)

    def unread_total(self) -> int:
        """Sum of unread counts across recent conversations."""
        return sum(entry.unread_count for entry in self.recent())

    def clear(self) -> None:
        """Drop the conversation index and the offline message log."""
        self.storage.remove(CHAT_HISTORY_STORAGE_KEY)
        self.storage.remove(STORED_MESSAGES_STORAGE_KEY)
        logger.info("Chat history cleared")

    def store_message(self, peer_username: str, message: str, is_own_message: bool) -> StoredMessage:
        """Append a message to the offline log, keeping only the newest ones."""
        raw = self.storage.get(STORED_MESSAGES_STORAGE_KEY, [])
        if not isinstance(raw, list):
            raw = []

        stored = StoredMessage(
            id=new_id(),
            username=normalize_username(peer_username),
            message=message,
            timestamp=utc_now_iso(),
            is_own_message=is_own_message,
        )
        raw.append(stored.to_dict())
        keep = max(self.max_stored_messages, 0)
        self.storage.set(STORED_MESSAGES_STORAGE_KEY, raw[len(raw) - keep :])
        return stored

    def stored_messages(self, peer_username: str) -> List[StoredMessage]:
        """Offline log entries for one conversation, oldest first."""
        key = normalize_username(peer_username)
        raw = self.storage.get(STORED_MESSAGES_STORAGE_KEY, [])
        if not isinstance(raw, list):
            return []
        messages = []
        for item in raw:
            try:
                if normalize_username(item["username"]) == key:
                    messages.append(StoredMessage(**item))
            except (KeyError, TypeError) as e:
                logger.debug(f"Skipping malformed stored message: {e}")
        return messages
