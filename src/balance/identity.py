"""
Balance - User identity records.

Created by Balance Terminal contributors

A ``UserIdentity`` mirrors one row of the users table. The password hash
travels with the record only as far as the directory needs it; the
public dictionary form (used for the persisted session) leaves it out.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class UserIdentity:
    """Represents a registered terminal user."""

    def __init__(
        self,
        user_id: str,
        username: str,
        created_at: str,
        last_seen: Optional[str] = None,
        password_hash: Optional[str] = None,
    ):
        self.id = user_id
        self.username = username
        self.created_at = created_at
        self.last_seen = last_seen
        self.password_hash = password_hash

    def to_dict(self) -> Dict[str, Any]:
        """Export the public fields (no password hash)."""
        return {
            "id": self.id,
            "username": self.username,
            "created_at": self.created_at,
            "last_seen": self.last_seen,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "UserIdentity":
        """Create an identity from a record or a persisted dictionary."""
        return UserIdentity(
            user_id=data["id"],
            username=data["username"],
            created_at=data["created_at"],
            last_seen=data.get("last_seen"),
            password_hash=data.get("password_hash"),
        )

    def public(self) -> "UserIdentity":
        """Copy of this identity without the password hash."""
        return UserIdentity(self.id, self.username, self.created_at, self.last_seen)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UserIdentity):
            return NotImplemented
        return self.id == other.id and self.username == other.username

    def __hash__(self) -> int:
        return hash((self.id, self.username))

    def __repr__(self) -> str:
        return f"<UserIdentity {self.username}>"
