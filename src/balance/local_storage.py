"""
Balance - Local key/value storage.

Created by Balance Terminal contributors

Durable client-side state (the logged-in session, the chat history index,
the offline message log) lives in a single JSON document on disk. Writes
are atomic (temp file + rename). A corrupted file is treated as empty.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles

from .errors import ErrorCode, StorageError

logger = logging.getLogger(__name__)


class LocalStorage:
    """JSON-file backed key/value store.

    Args:
        storage_file: Path to the JSON document, or None for a
            process-local store that is never written to disk
    """

    def __init__(self, storage_file: Optional[Union[str, Path]] = None):
        self.storage_file = str(storage_file) if storage_file is not None else None
        self._data: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        """Load the document from file."""
        if self.storage_file is None or not os.path.exists(self.storage_file):
            return
        try:
            with open(self.storage_file, encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                self._data = data
                logger.debug(f"Loaded {len(self._data)} keys from {self.storage_file}")
            else:
                logger.warning(f"Ignoring non-object local storage file: {self.storage_file}")
        except OSError as e:
            logger.error(f"Failed to read local storage file: {e}")
            raise StorageError(
                ErrorCode.E601_STORAGE_LOAD_FAILED,
                f"Cannot load local storage: {e}",
                {"path": self.storage_file},
            ) from e
        except json.JSONDecodeError as e:
            logger.error(f"Corrupted local storage file: {e}")
            # Don't raise - start empty if file is corrupted
            logger.warning("Starting with empty local storage due to corrupted file")

    def _serialize(self) -> str:
        return json.dumps(self._data, indent=2, ensure_ascii=False)

    def _save(self) -> None:
        """Write the document synchronously."""
        if self.storage_file is None:
            return
        try:
            Path(self.storage_file).parent.mkdir(parents=True, exist_ok=True)
            temp_file = f"{self.storage_file}.tmp"
            with open(temp_file, "w", encoding="utf-8") as f:
                f.write(self._serialize())
            # Atomic rename
            os.replace(temp_file, self.storage_file)
        except OSError as e:
            logger.error(f"Failed to save local storage: {e}")
            raise StorageError(
                ErrorCode.E602_STORAGE_SAVE_FAILED,
                f"Cannot save local storage: {e}",
                {"path": self.storage_file},
            ) from e

    async def _save_async(self) -> None:
        """Write the document asynchronously."""
        if self.storage_file is None:
            return
        try:
            Path(self.storage_file).parent.mkdir(parents=True, exist_ok=True)
            temp_file = f"{self.storage_file}.tmp"
            async with aiofiles.open(temp_file, "w", encoding="utf-8") as f:
                await f.write(self._serialize())
            os.replace(temp_file, self.storage_file)
        except OSError as e:
            logger.error(f"Failed to save local storage (async): {e}")
            raise StorageError(
                ErrorCode.E602_STORAGE_SAVE_FAILED,
                f"Cannot save local storage: {e}",
                {"path": self.storage_file},
            ) from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a stored value."""
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value and persist."""
        self._data[key] = value
        self._save()

    async def set_async(self, key: str, value: Any) -> None:
        """Store a value and persist without blocking the event loop on I/O."""
        self._data[key] = value
        await self._save_async()

    def remove(self, key: str) -> None:
        """Remove a key if present and persist."""
        if key in self._data:
            del self._data[key]
            self._save()

    def clear(self) -> None:
        """Remove every key."""
        self._data.clear()
        self._save()

    def __contains__(self, key: str) -> bool:
        return key in self._data
