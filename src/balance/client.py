"""
Balance - Client facade.

Created by Balance Terminal contributors

Wires the record store, local storage, session, user directory, message
store and chat history cache together for one client instance, and keeps
the chat history cache in step with local sends and opened conversations.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from argon2 import PasswordHasher

from .chat_history import ChatHistoryCache
from .codec import decode_any
from .config import Config
from .constants import PLAINTEXT_EXTENSION
from .directory import UserDirectory, make_password_hasher
from .file_transfer import FileArtifact, attachment_from_path, attachment_snippet
from .identity import UserIdentity
from .local_storage import LocalStorage
from .message import Message, MessageStore, MessageType, SendReceipt
from .session import Session
from .store import RecordStore, SQLiteRecordStore
from .utils import strip_extension

logger = logging.getLogger(__name__)


class BalanceClient:
    """One running Balance client.

    Args:
        store: Record store shared with other clients
        storage: This client's local storage
        hasher: Password hasher for the directory
        history_limit: Recent-chat cap
        snippet_length: Sidebar snippet length
        stored_message_limit: Offline log size
    """

    def __init__(
        self,
        store: RecordStore,
        storage: LocalStorage,
        hasher: Optional[PasswordHasher] = None,
        history_limit: Optional[int] = None,
        snippet_length: Optional[int] = None,
        stored_message_limit: Optional[int] = None,
    ):
        self.store = store
        self.storage = storage
        self.session = Session(storage)
        self.directory = UserDirectory(store, self.session, hasher)
        self.messages = MessageStore(store, self.directory)

        cache_options = {}
        if history_limit is not None:
            cache_options["max_entries"] = history_limit
        if snippet_length is not None:
            cache_options["snippet_length"] = snippet_length
        if stored_message_limit is not None:
            cache_options["max_stored_messages"] = stored_message_limit
        self.chat_history = ChatHistoryCache(storage, **cache_options)

    @classmethod
    def from_config(cls, config: Config) -> "BalanceClient":
        """Build a client from configuration."""
        store = SQLiteRecordStore(config.resolve_path("database"))
        storage = LocalStorage(config.resolve_path("local_storage"))
        hasher = make_password_hasher(
            time_cost=config.get("security", "time_cost"),
            memory_cost=config.get("security", "memory_cost"),
            parallelism=config.get("security", "parallelism"),
        )
        return cls(
            store,
            storage,
            hasher,
            history_limit=config.get("chat", "history_limit"),
            snippet_length=config.get("chat", "snippet_length"),
            stored_message_limit=config.get("chat", "stored_message_limit"),
        )

    @property
    def user(self) -> Optional[UserIdentity]:
        return self.session.user

    async def register(self, username: str, password: str) -> UserIdentity:
        return await self.directory.register(username, password)

    async def login(self, username: str, password: str) -> UserIdentity:
        return await self.directory.login(username, password)

    def logout(self) -> None:
        self.directory.logout()

    async def send_message(
        self,
        to_username: str,
        content: str,
        message_type: Union[MessageType, str] = MessageType.CHAT,
    ) -> SendReceipt:
        """Send a message and record it in the local chat history."""
        receipt = await self.messages.send(self.session, to_username, content, message_type)
        snippet = attachment_snippet(content)
        self.chat_history.touch(receipt.to_username, snippet, is_own_message=True)
        self.chat_history.store_message(receipt.to_username, snippet, is_own_message=True)
        return receipt

    async def send_attachment(self, to_username: str, path: Union[str, Path]) -> SendReceipt:
        """Send an envelope file as a chat attachment."""
        path = Path(path)
        body = attachment_from_path(path)
        logger.info(f"Sending attachment {path.name} to {to_username}")
        return await self.send_message(to_username, body, MessageType.CHAT)

    async def open_conversation(self, peer_username: str) -> List[Message]:
        """Load the chat with a peer and clear its unread badge."""
        history = await self.messages.history_between(self.session, peer_username)
        self.chat_history.mark_read(peer_username)
        return history

    async def inbox(self) -> List[Tuple[str, Message]]:
        """Unread messages, newest first, paired with the sender's username."""
        unread = await self.messages.unread_for(self.session)
        names = {}
        result = []
        for message in unread:
            if message.from_user_id not in names:
                sender = await self.directory.find_by_id(message.from_user_id)
                names[message.from_user_id] = sender.username if sender else message.from_user_id
            result.append((names[message.from_user_id], message))
        return result

    async def receive(self, peer_username: str, message: Message) -> None:
        """Mirror an incoming message into the local chat history."""
        snippet = attachment_snippet(message.content)
        self.chat_history.touch(peer_username, snippet, is_own_message=False)
        self.chat_history.store_message(peer_username, snippet, is_own_message=False)

    async def fetch_attachment(self, peer_username: str, filename: str) -> FileArtifact:
        """Find an attachment in the chat with a peer and decrypt it to ``.txt``."""
        envelope = await self.messages.find_attachment_by_name(
            self.session, filename, peer_username
        )
        plaintext = decode_any(envelope)
        return FileArtifact(strip_extension(filename) + PLAINTEXT_EXTENSION, plaintext.encode("utf-8"))

    def close(self) -> None:
        self.store.close()
