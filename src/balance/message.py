"""
Balance - Message storage and retrieval.

Created by Balance Terminal contributors
Version: 1.0.0

Handles sending messages between users, unread tracking, conversation
history and file attachments embedded in chat messages.

Ordering:
- unread listings are newest first (mail-style triage)
- chat history is oldest first (conversational reading)

There is no push delivery; callers re-fetch history after sending.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .constants import CHAT_SESSIONS_TABLE, MESSAGE_TYPE_CHAT, MESSAGE_TYPE_MAIL, MESSAGES_TABLE
from .directory import UserDirectory
from .errors import ErrorCode, MessageError, ValidationError
from .file_transfer import Attachment, parse_attachment
from .identity import UserIdentity
from .session import Session
from .store import And, Eq, IsNull, Or, RecordStore
from .utils import strip_extension, utc_now_iso

logger = logging.getLogger(__name__)


class MessageType(Enum):
    """Kinds of message.

    ``MAIL`` is asynchronous and unread-tracked, ``CHAT`` is conversational.
    """

    CHAT = MESSAGE_TYPE_CHAT
    MAIL = MESSAGE_TYPE_MAIL


class Message:
    """Represents a stored message."""

    def __init__(
        self,
        message_id: str,
        from_user_id: str,
        to_user_id: str,
        content: str,
        message_type: MessageType,
        created_at: str,
        read_at: Optional[str] = None,
    ):
        self.id = message_id
        self.from_user_id = from_user_id
        self.to_user_id = to_user_id
        self.content = content
        self.message_type = message_type
        self.created_at = created_at
        self.read_at = read_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to dictionary for storage."""
        return {
            "id": self.id,
            "from_user_id": self.from_user_id,
            "to_user_id": self.to_user_id,
            "content": self.content,
            "message_type": self.message_type.value,
            "read_at": self.read_at,
            "created_at": self.created_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Message":
        """Create message from a store record."""
        return Message(
            message_id=data["id"],
            from_user_id=data["from_user_id"],
            to_user_id=data["to_user_id"],
            content=data["content"],
            message_type=MessageType(data["message_type"]),
            created_at=data["created_at"],
            read_at=data.get("read_at"),
        )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    @property
    def attachment(self) -> Optional[Attachment]:
        """The embedded file, if this message carries one."""
        return parse_attachment(self.content)

    def __repr__(self) -> str:
        return f"<Message {self.id} {self.message_type.value}>"


@dataclass(frozen=True)
class SendReceipt:
    """Acknowledgement of a stored message."""

    message_id: str
    to_username: str
    created_at: str


@dataclass
class ChatSession:
    """A conversation between two users; one per unordered pair."""

    id: str
    user1_id: str
    user2_id: str
    created_at: str
    last_message_at: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ChatSession":
        return ChatSession(
            id=data["id"],
            user1_id=data["user1_id"],
            user2_id=data["user2_id"],
            created_at=data["created_at"],
            last_message_at=data.get("last_message_at"),
        )


def _between(left_column: str, right_column: str, a: str, b: str) -> Or:
    """Filter matching rows that connect ``a`` and ``b`` in either direction."""
    return Or(
        And(Eq(left_column, a), Eq(right_column, b)),
        And(Eq(left_column, b), Eq(right_column, a)),
    )


class MessageStore:
    """Sends and retrieves messages through the record store.

    Args:
        store: Record store holding the messages table
        directory: User directory used to resolve usernames
    """

    def __init__(self, store: RecordStore, directory: UserDirectory):
        self.store = store
        self.directory = directory

    async def _resolve_peer(self, username: str) -> UserIdentity:
        peer = await self.directory.find_by_username(username)
        if peer is None:
            raise MessageError(
                ErrorCode.E401_RECIPIENT_NOT_FOUND,
                f"User {username} not found",
                {"username": username},
            )
        return peer

    async def send(
        self,
        session: Session,
        to_username: str,
        content: str,
        message_type: Union[MessageType, str] = MessageType.CHAT,
    ) -> SendReceipt:
        """
        Store a message from the session user to ``to_username``.

        Sending is not deduplicated: two identical calls store two messages.

        Raises:
            AuthError: Nobody is logged in (NotLoggedIn)
            ValidationError: Empty content or unknown message type
            MessageError: Recipient does not exist (RecipientNotFound)
            StoreError: Backend failure
        """
        sender = session.require_user()
        try:
            message_type = MessageType(message_type)
        except ValueError as e:
            raise ValidationError(
                ErrorCode.E002_INVALID_ARGUMENT, f"Unknown message type: {message_type}"
            ) from e
        if not content or not content.strip():
            raise ValidationError(ErrorCode.E102_EMPTY_INPUT, "Message must not be empty")

        recipient = await self._resolve_peer(to_username)

        record = await self.store.insert_async(
            MESSAGES_TABLE,
            {
                "from_user_id": sender.id,
                "to_user_id": recipient.id,
                "content": content,
                "message_type": message_type.value,
            },
        )

        if message_type is MessageType.CHAT:
            await self.store.update_async(
                CHAT_SESSIONS_TABLE,
                {"last_message_at": record["created_at"]},
                _between("user1_id", "user2_id", sender.id, recipient.id),
            )

        logger.info(f"Message {record['id']} sent to {recipient.username} ({message_type.value})")
        return SendReceipt(record["id"], recipient.username, record["created_at"])

    async def unread_for(self, session: Session) -> List[Message]:
        """Unread messages addressed to the session user, newest first."""
        user = session.require_user()
        rows = await self.store.select_async(
            MESSAGES_TABLE,
            And(Eq("to_user_id", user.id), IsNull("read_at")),
            order_by="created_at",
            descending=True,
        )
        return [Message.from_dict(row) for row in rows]

    async def mark_read(self, message_id: str) -> bool:
        """
        Set ``read_at`` on a message if it is still unread.

        Idempotent: a second call leaves the first timestamp in place.

        Returns:
            True if this call marked the message, False if it was already
            read or does not exist
        """
        changed = await self.store.update_async(
            MESSAGES_TABLE,
            {"read_at": utc_now_iso()},
            And(Eq("id", message_id), IsNull("read_at")),
        )
        if changed:
            logger.debug(f"Message {message_id} marked as read")
        return changed > 0

    async def history_between(self, session: Session, peer_username: str) -> List[Message]:
        """
        Chat messages exchanged between the session user and a peer, oldest first.

        Raises:
            AuthError: Nobody is logged in
            MessageError: Peer does not exist
        """
        user = session.require_user()
        peer = await self._resolve_peer(peer_username)
        rows = await self.store.select_async(
            MESSAGES_TABLE,
            And(
                _between("from_user_id", "to_user_id", user.id, peer.id),
                Eq("message_type", MessageType.CHAT.value),
            ),
            order_by="created_at",
        )
        return [Message.from_dict(row) for row in rows]

    async def find_attachment_by_name(
        self, session: Session, filename: str, peer_username: str
    ) -> str:
        """
        Find an attachment in the chat with a peer and return its envelope.

        ``filename`` is matched against the attachment's name without its
        extension (``notes`` finds ``notes.balance``); a full name also
        matches. The most recent match wins.

        Raises:
            ValidationError: Empty filename
            MessageError: No such attachment (NotFound)
        """
        wanted = (filename or "").strip()
        if not wanted:
            raise ValidationError(
                ErrorCode.E102_EMPTY_INPUT, "Usage: filename without the .balance extension"
            )

        history = await self.history_between(session, peer_username)
        for message in reversed(history):
            attachment = message.attachment
            if attachment is None:
                continue
            if attachment.base_name == wanted or attachment.filename == wanted:
                logger.debug(f"Found attachment {attachment.filename} in message {message.id}")
                return attachment.envelope

        raise MessageError(
            ErrorCode.E402_ATTACHMENT_NOT_FOUND,
            f"File {strip_extension(wanted)} not found in chat history",
            {"filename": wanted, "peer": peer_username},
        )

    async def open_chat_session(self, session: Session, peer_username: str) -> ChatSession:
        """
        Get the chat session with a peer, creating it on first use.

        Raises:
            AuthError: Nobody is logged in
            MessageError: Peer does not exist
        """
        user = session.require_user()
        peer = await self._resolve_peer(peer_username)

        existing = await self.store.fetch_one_async(
            CHAT_SESSIONS_TABLE, _between("user1_id", "user2_id", user.id, peer.id)
        )
        if existing is not None:
            return ChatSession.from_dict(existing)

        record = await self.store.insert_async(
            CHAT_SESSIONS_TABLE, {"user1_id": user.id, "user2_id": peer.id}
        )
        logger.info(f"Chat session {record['id']} opened with {peer.username}")
        return ChatSession.from_dict(record)
