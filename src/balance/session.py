"""
Balance - Session context.

Created by Balance Terminal contributors
Version: 1.0.0

Holds the identity of the logged-in user for one running client. The
session is an explicit object handed to the directory and message store
rather than process-wide state, so separate clients (and tests) never
share it.

Lifecycle:
- populated on successful login or registration
- restored lazily from local storage on first access
- cleared on logout
"""

import logging
from typing import Optional

from .constants import SESSION_STORAGE_KEY
from .errors import AuthError, ErrorCode
from .identity import UserIdentity
from .local_storage import LocalStorage

logger = logging.getLogger(__name__)


class Session:
    """The active user of a client instance.

    Attributes:
        storage: Local storage used to persist the session across restarts
    """

    def __init__(self, storage: Optional[LocalStorage] = None):
        self.storage = storage or LocalStorage()
        self._user: Optional[UserIdentity] = None
        self._restored = False

    @property
    def user(self) -> Optional[UserIdentity]:
        """The logged-in identity, restoring it from storage if needed."""
        if self._user is None and not self._restored:
            self.restore()
        return self._user

    @property
    def is_logged_in(self) -> bool:
        return self.user is not None

    def require_user(self) -> UserIdentity:
        """Return the logged-in identity.

        Raises:
            AuthError: If nobody is logged in
        """
        user = self.user
        if user is None:
            raise AuthError(
                ErrorCode.E204_NOT_LOGGED_IN, "You must be logged in to perform this action"
            )
        return user

    def restore(self) -> Optional[UserIdentity]:
        """Load the persisted identity, if any."""
        self._restored = True
        data = self.storage.get(SESSION_STORAGE_KEY)
        if not data:
            return None
        try:
            self._user = UserIdentity.from_dict(data)
        except (KeyError, TypeError) as e:
            logger.warning(f"Discarding malformed persisted session: {e}")
            self.storage.remove(SESSION_STORAGE_KEY)
            return None
        logger.info(f"Session restored: {self._user.username}")
        return self._user

    async def activate(self, user: UserIdentity) -> None:
        """Make ``user`` the active identity and persist it."""
        public = user.public()
        await self.storage.set_async(SESSION_STORAGE_KEY, public.to_dict())
        self._user = public
        self._restored = True
        logger.info(f"Session active: {public.username}")

    def clear(self) -> None:
        """Forget the active identity in memory and in storage."""
        if self._user is not None:
            logger.info(f"Session cleared: {self._user.username}")
        self._user = None
        self._restored = True
        self.storage.remove(SESSION_STORAGE_KEY)
