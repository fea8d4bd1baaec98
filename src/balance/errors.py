"""
Balance - Custom Exception Classes and Error Codes

This module defines all custom exceptions and error codes used throughout
the Balance core. Each error has a unique code for logging and debugging,
and a short ``reason`` suitable for showing to an end user.

Author: Balance Terminal contributors
Version: 1.0.0
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Enumeration of all Balance error codes."""

    # General Errors (E001-E099)
    E001_UNKNOWN_ERROR = "E001"
    E002_INVALID_ARGUMENT = "E002"
    E003_FILE_NOT_FOUND = "E003"
    E005_OPERATION_FAILED = "E005"

    # Validation Errors (E100-E199)
    E100_VALIDATION_ERROR = "E100"
    E101_INVALID_FILE_TYPE = "E101"
    E102_EMPTY_INPUT = "E102"
    E103_INVALID_USERNAME = "E103"
    E104_INVALID_PASSWORD = "E104"

    # Auth Errors (E200-E299)
    E200_AUTH_ERROR = "E200"
    E201_USER_NOT_FOUND = "E201"
    E202_BAD_PASSWORD = "E202"
    E203_DUPLICATE_USERNAME = "E203"
    E204_NOT_LOGGED_IN = "E204"

    # Codec Errors (E300-E399)
    E300_CODEC_ERROR = "E300"
    E301_ENCODE_FAILED = "E301"
    E302_DECRYPTION_FAILED = "E302"
    E303_INVALID_FORMAT = "E303"

    # Message Errors (E400-E499)
    E400_MESSAGE_ERROR = "E400"
    E401_RECIPIENT_NOT_FOUND = "E401"
    E402_ATTACHMENT_NOT_FOUND = "E402"

    # Record Store Errors (E500-E599)
    E500_STORE_ERROR = "E500"
    E501_STORE_UNAVAILABLE = "E501"
    E502_DUPLICATE_RECORD = "E502"
    E503_QUERY_FAILED = "E503"

    # Local Storage Errors (E600-E699)
    E600_STORAGE_ERROR = "E600"
    E601_STORAGE_LOAD_FAILED = "E601"
    E602_STORAGE_SAVE_FAILED = "E602"

    # Config Errors (E700-E799)
    E700_CONFIG_ERROR = "E700"
    E701_CONFIG_LOAD_FAILED = "E701"
    E702_CONFIG_SAVE_FAILED = "E702"
    E704_CONFIG_PARSE_ERROR = "E704"


# Short user-facing reasons for codes that callers match on
_REASONS = {
    ErrorCode.E101_INVALID_FILE_TYPE: "InvalidFileType",
    ErrorCode.E102_EMPTY_INPUT: "EmptyInput",
    ErrorCode.E201_USER_NOT_FOUND: "NotFound",
    ErrorCode.E202_BAD_PASSWORD: "BadPassword",
    ErrorCode.E203_DUPLICATE_USERNAME: "DuplicateUsername",
    ErrorCode.E204_NOT_LOGGED_IN: "NotLoggedIn",
    ErrorCode.E303_INVALID_FORMAT: "InvalidFormat",
    ErrorCode.E401_RECIPIENT_NOT_FOUND: "RecipientNotFound",
    ErrorCode.E402_ATTACHMENT_NOT_FOUND: "NotFound",
}


class BalanceError(Exception):
    """Base exception class for all Balance errors.

    All custom exceptions in Balance inherit from this class.
    Provides standardized error handling and logging.

    Attributes:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        details: Additional error details (optional)
    """

    def __init__(self, code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize a Balance error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            details: Additional error context (optional)
        """
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    @property
    def reason(self) -> str:
        """Short machine-friendly reason, e.g. ``"BadPassword"``."""
        return _REASONS.get(self.code, self.code.name.split("_", 1)[1].title().replace("_", ""))

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization.

        Returns:
            Dictionary containing error information
        """
        return {
            "code": self.code.value,
            "reason": self.reason,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(BalanceError):
    """Exception raised for bad input: wrong extension, empty payload, bad username.

    Recovered locally and shown as a hint; never fatal.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E100_VALIDATION_ERROR,
        message: str = "Invalid input",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class AuthError(BalanceError):
    """Exception raised for authentication failures.

    This includes unknown users, wrong passwords, duplicate registrations
    and operations attempted without an active session.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E200_AUTH_ERROR,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class DecryptionError(BalanceError):
    """Exception raised when an envelope cannot be decoded.

    The message is a short reason; the underlying exception is chained
    but never shown to the end user.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E302_DECRYPTION_FAILED,
        message: str = "Decryption failed - invalid file or corrupted data",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class FormatError(DecryptionError):
    """Exception raised when an envelope carries the wrong or no tag line."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E303_INVALID_FORMAT,
        message: str = "Invalid envelope format",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class MessageError(BalanceError):
    """Exception raised for message store failures that are not infra errors."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E400_MESSAGE_ERROR,
        message: str = "Message operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class StoreError(BalanceError):
    """Exception raised for record store (backend) failures.

    Distinct from AuthError so callers can tell infra failure from
    auth failure. Never retried automatically.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E500_STORE_ERROR,
        message: str = "Record store operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class DuplicateRecordError(StoreError):
    """Exception raised when an insert violates a uniqueness constraint."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E502_DUPLICATE_RECORD,
        message: str = "Record already exists",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class StorageError(BalanceError):
    """Exception raised for local key/value storage failures."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E600_STORAGE_ERROR,
        message: str = "Local storage operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ConfigError(BalanceError):
    """Exception raised for configuration failures.

    This includes loading, parsing, and validating configuration files.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E700_CONFIG_ERROR,
        message: str = "Configuration operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)
