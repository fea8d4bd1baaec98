"""
Balance - Terminal core for envelope files and user messaging

Reversible text and image envelopes (.balance / .causality), a user
directory with Argon2id passwords, chat and mail messaging with
in-chat file attachments, and a local recent-chats cache.

Author: Balance Terminal contributors
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Balance Terminal contributors"
__license__ = "MIT"

# Import core modules for easy access
from .codec import (
    ENHANCED,
    STANDARD,
    EnhancedCodec,
    EnvelopeVariant,
    StandardCodec,
    classify,
    decode_any,
)
from .config import Config
from .constants import APP_NAME, VERSION
from .errors import (
    AuthError,
    BalanceError,
    ConfigError,
    DecryptionError,
    DuplicateRecordError,
    ErrorCode,
    FormatError,
    MessageError,
    StorageError,
    StoreError,
    ValidationError,
)

__all__ = [
    "APP_NAME",
    "ENHANCED",
    "STANDARD",
    "VERSION",
    "AuthError",
    "BalanceError",
    "Config",
    "ConfigError",
    "DecryptionError",
    "DuplicateRecordError",
    "EnhancedCodec",
    "EnvelopeVariant",
    "ErrorCode",
    "FormatError",
    "MessageError",
    "StandardCodec",
    "StorageError",
    "StoreError",
    "ValidationError",
    "classify",
    "decode_any",
    "__author__",
    "__license__",
    "__version__",
]
