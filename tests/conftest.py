"""
Pytest configuration and fixtures for Balance tests.

Created by Balance Terminal contributors

Provides common fixtures and test utilities for unit and integration tests.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

from balance.client import BalanceClient
from balance.directory import UserDirectory, make_password_hasher
from balance.local_storage import LocalStorage
from balance.message import MessageStore
from balance.session import Session
from balance.store import SQLiteRecordStore


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test data.

    Yields:
        Path: Temporary directory path

    Cleanup:
        Automatically removes directory after test
    """
    tmp = Path(tempfile.mkdtemp(prefix="balance_test_"))
    try:
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def fast_hasher():
    """Argon2 hasher with minimal cost so tests stay quick."""
    return make_password_hasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def record_store() -> Generator[SQLiteRecordStore, None, None]:
    """In-memory record store shared by everything in one test."""
    store = SQLiteRecordStore()
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def storage() -> LocalStorage:
    """Process-local storage that never touches disk."""
    return LocalStorage()


@pytest.fixture
def session(storage: LocalStorage) -> Session:
    return Session(storage)


@pytest.fixture
def directory(record_store, session, fast_hasher) -> UserDirectory:
    return UserDirectory(record_store, session, fast_hasher)


@pytest.fixture
def messages(record_store, directory) -> MessageStore:
    return MessageStore(record_store, directory)


@pytest.fixture
def make_client(record_store, fast_hasher) -> Callable[[], BalanceClient]:
    """
    Factory for clients sharing one record store.

    Each client has its own local storage and session, like two browsers
    talking to the same backend.
    """

    def factory() -> BalanceClient:
        return BalanceClient(record_store, LocalStorage(), fast_hasher)

    return factory


@pytest.fixture
def sample_text() -> str:
    """Multi-line UTF-8 text with non-ASCII characters."""
    return "Dear diary,\nÜber café ☕ and 日本語.\n\nThe end.\n"


# Pytest marks
def pytest_configure(config):
    """
    Configure pytest markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# Test collection hooks
def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to add markers based on test location.

    Args:
        config: Pytest configuration
        items: List of collected test items
    """
    for item in items:
        # Add unit marker to tests in unit/ directory
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Add integration marker to integration test modules
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
