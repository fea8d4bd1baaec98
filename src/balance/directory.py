"""
Balance - User directory.

Created by Balance Terminal contributors
Version: 1.0.0

Registration, login and lookup of terminal users against the record store.

Security notes:
- Passwords are hashed with Argon2id (salted, memory-hard) via argon2-cffi
- Verification uses the library's constant-time comparison
- Username uniqueness is enforced by the store's UNIQUE constraint; the
  lookup before insert only avoids a pointless hash computation
"""

import logging
from typing import Any, Dict, Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from .constants import (
    ARGON2_MEMORY_COST,
    ARGON2_PARALLELISM,
    ARGON2_TIME_COST,
    MIN_PASSWORD_LENGTH,
    USERS_TABLE,
)
from .errors import AuthError, DuplicateRecordError, ErrorCode, ValidationError
from .identity import UserIdentity
from .session import Session
from .store import Eq, RecordStore
from .utils import normalize_username, utc_now_iso, validate_username

logger = logging.getLogger(__name__)

_PUBLIC_COLUMNS = ("id", "username", "created_at", "last_seen")


def make_password_hasher(
    time_cost: int = ARGON2_TIME_COST,
    memory_cost: int = ARGON2_MEMORY_COST,
    parallelism: int = ARGON2_PARALLELISM,
) -> PasswordHasher:
    """Build the Argon2id hasher used for account passwords."""
    return PasswordHasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)


class UserDirectory:
    """Manages user accounts and the active session.

    Args:
        store: Record store holding the users table
        session: Session the directory logs users into
        hasher: Argon2 password hasher (defaults to the standard parameters)
    """

    def __init__(
        self,
        store: RecordStore,
        session: Session,
        hasher: Optional[PasswordHasher] = None,
    ):
        self.store = store
        self.session = session
        self.hasher = hasher or make_password_hasher()

    def _validated_username(self, username: str) -> str:
        normalized = normalize_username(username or "")
        if not validate_username(normalized):
            raise ValidationError(
                ErrorCode.E103_INVALID_USERNAME,
                "Username must be 1-64 characters without spaces",
                {"username": username},
            )
        return normalized

    async def _find_record(self, username: str) -> Optional[Dict[str, Any]]:
        return await self.store.fetch_one_async(USERS_TABLE, Eq("username", username))

    async def register(self, username: str, password: str) -> UserIdentity:
        """
        Create an account and log into it.

        Args:
            username: Desired username (case-insensitive)
            password: Plain text password

        Returns:
            The new identity, now the active session

        Raises:
            ValidationError: Malformed username or empty password
            AuthError: Username already taken (DuplicateUsername)
            StoreError: Backend failure
        """
        normalized = self._validated_username(username)
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(ErrorCode.E104_INVALID_PASSWORD, "Password must not be empty")

        if await self._find_record(normalized) is not None:
            raise AuthError(
                ErrorCode.E203_DUPLICATE_USERNAME,
                "Username already exists",
                {"username": normalized},
            )

        password_hash = self.hasher.hash(password)

        try:
            record = await self.store.insert_async(
                USERS_TABLE, {"username": normalized, "password_hash": password_hash}
            )
        except DuplicateRecordError as e:
            # Lost a race with a concurrent registration of the same name
            raise AuthError(
                ErrorCode.E203_DUPLICATE_USERNAME,
                "Username already exists",
                {"username": normalized},
            ) from e

        user = UserIdentity.from_dict(record)
        await self.session.activate(user)
        logger.info(f"User registered: {normalized}")
        return user.public()

    async def login(self, username: str, password: str) -> UserIdentity:
        """
        Verify credentials and log in.

        Raises:
            AuthError: Unknown user (NotFound) or wrong password (BadPassword)
            StoreError: Backend failure
        """
        normalized = normalize_username(username or "")
        record = await self._find_record(normalized) if normalized else None
        if record is None:
            raise AuthError(ErrorCode.E201_USER_NOT_FOUND, "User not found", {"username": normalized})

        try:
            self.hasher.verify(record["password_hash"], password or "")
        except VerificationError as e:
            raise AuthError(ErrorCode.E202_BAD_PASSWORD, "Invalid password") from e
        except InvalidHashError as e:
            logger.warning(f"Stored password hash for {normalized} is not a valid Argon2 hash")
            raise AuthError(ErrorCode.E202_BAD_PASSWORD, "Invalid password") from e

        values = {"last_seen": utc_now_iso()}
        if self.hasher.check_needs_rehash(record["password_hash"]):
            values["password_hash"] = self.hasher.hash(password)
            logger.info(f"Rehashing password for {normalized} with current parameters")

        await self.store.update_async(USERS_TABLE, values, Eq("id", record["id"]))
        record.update(values)

        user = UserIdentity.from_dict(record)
        await self.session.activate(user)
        logger.info(f"User logged in: {normalized}")
        return user.public()

    def current_session(self) -> Optional[UserIdentity]:
        """The logged-in identity, or None."""
        return self.session.user

    def logout(self) -> None:
        """Clear the active session."""
        self.session.clear()

    async def find_by_username(self, username: str) -> Optional[UserIdentity]:
        """
        Look up a user without exposing the password hash.

        Returns:
            The identity, or None if no such user exists

        Raises:
            StoreError: Backend failure (never reported as "not found")
        """
        normalized = normalize_username(username or "")
        if not normalized:
            return None
        record = await self.store.fetch_one_async(
            USERS_TABLE, Eq("username", normalized), columns=_PUBLIC_COLUMNS
        )
        return UserIdentity.from_dict(record) if record else None

    async def find_by_id(self, user_id: str) -> Optional[UserIdentity]:
        """Look up a user by id without exposing the password hash."""
        record = await self.store.fetch_one_async(
            USERS_TABLE, Eq("id", user_id), columns=_PUBLIC_COLUMNS
        )
        return UserIdentity.from_dict(record) if record else None
