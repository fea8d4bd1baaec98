"""
Balance - Global Constants and Configuration Values

This module defines all constants used throughout the Balance terminal core.
Envelope tags, file extensions and storage keys are part of the on-disk
formats and must not change between releases.

Author: Balance Terminal contributors
Version: 1.0.0
"""

# Version Information
VERSION = "1.0.0"
APP_NAME = "Balance"
AUTHOR = "Balance Terminal contributors"

# Envelope Format
STANDARD_TAG = "BALANCE_ENCRYPTED_FILE_V1"
ENHANCED_TAG = "CAUSALITY_ENCRYPTED_FILE_V2"
STANDARD_KEY = "balance_secret_key_2024"
ENHANCED_KEY = "causality_quantum_key_2024"

# File Extensions
PLAINTEXT_EXTENSION = ".txt"
STANDARD_EXTENSION = ".balance"
ENHANCED_EXTENSION = ".causality"
ENVELOPE_EXTENSIONS = (STANDARD_EXTENSION, ENHANCED_EXTENSION)
IMAGE_FORMATS = ("png", "jpg", "jpeg", "gif", "bmp", "webp", "ico", "svg")

# In-chat attachment marker
ATTACHMENT_PREFIX = "[FILE: "
ATTACHMENT_SUFFIX = "]"
ATTACHMENT_SNIPPET_PREFIX = "📎 "

# User Limits
MAX_USERNAME_LENGTH = 64
MIN_PASSWORD_LENGTH = 1

# Message Types
MESSAGE_TYPE_CHAT = "chat"
MESSAGE_TYPE_MAIL = "mail"

# Chat History Cache
CHAT_HISTORY_LIMIT = 20
CHAT_SNIPPET_LENGTH = 50
CHAT_SNIPPET_SUFFIX = "..."
STORED_MESSAGE_LIMIT = 1000

# Password Hashing (Argon2id)
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # 64 MB
ARGON2_PARALLELISM = 4

# Record Store Tables
USERS_TABLE = "terminal_users"
MESSAGES_TABLE = "messages"
CHAT_SESSIONS_TABLE = "chat_sessions"

# Local Storage Keys
SESSION_STORAGE_KEY = "currentUser"
CHAT_HISTORY_STORAGE_KEY = "balance_chat_history"
STORED_MESSAGES_STORAGE_KEY = "balance_stored_messages"

# File Paths
DEFAULT_DATA_DIR = "~/.balance"
DATABASE_FILENAME = "balance.db"
LOCAL_STORAGE_FILENAME = "local_storage.json"
DOWNLOADS_DIR = "downloads"
CONFIG_FILENAME = "config.toml"
LOGS_DIR = "logs"
LOG_FILENAME = "balance.log"

# Logging Configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5
