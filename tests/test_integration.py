"""
Balance - Integration tests.

Created by Balance Terminal contributors

End-to-end integration tests for complete workflows.
"""

import pytest

from balance.client import BalanceClient
from balance.codec import EnvelopeVariant
from balance.config import Config
from balance.directory import make_password_hasher
from balance.file_transfer import decrypt_file, encrypt_file
from balance.local_storage import LocalStorage
from balance.message import MessageType
from balance.store import SQLiteRecordStore


def _client(temp_dir, name):
    """A client with its own local storage on a shared database file."""
    return BalanceClient(
        SQLiteRecordStore(temp_dir / "balance.db"),
        LocalStorage(temp_dir / f"{name}_storage.json"),
        make_password_hasher(time_cost=1, memory_cost=8, parallelism=1),
    )


@pytest.mark.asyncio
async def test_account_lifecycle(temp_dir):
    """Test registration, restart with restored session, logout and login."""
    client = _client(temp_dir, "alice")
    user = await client.register("alice", "secret")
    client.close()

    # Restart: session comes back from local storage
    restarted = _client(temp_dir, "alice")
    assert restarted.user == user

    restarted.logout()
    restarted.close()

    again = _client(temp_dir, "alice")
    assert again.user is None
    logged_in = await again.login("alice", "secret")
    assert logged_in.id == user.id
    again.close()


@pytest.mark.asyncio
async def test_mail_and_chat_workflow(temp_dir):
    """Test sending mail and chat, reading the inbox and the conversation."""
    alice = _client(temp_dir, "alice")
    bob = _client(temp_dir, "bob")
    try:
        await alice.register("alice", "pw")
        await bob.register("bob", "pw")

        await alice.send_message("bob", "Weekly report attached soon", MessageType.MAIL)
        await alice.send_message("bob", "A")
        await bob.send_message("alice", "B")
        await alice.send_message("bob", "C")

        inbox = await bob.inbox()
        assert [m.content for _, m in inbox] == ["C", "A", "Weekly report attached soon"]

        for sender, message in inbox:
            await bob.messages.mark_read(message.id)
            await bob.receive(sender, message)
        assert await bob.inbox() == []

        history = await bob.open_conversation("alice")
        assert [m.content for m in history] == ["A", "B", "C"]
        assert bob.chat_history.recent()[0].unread_count == 0
    finally:
        alice.close()
        bob.close()


@pytest.mark.asyncio
async def test_file_exchange_workflow(temp_dir, sample_text):
    """Test encrypting a file, sending it in chat and downloading it."""
    alice = _client(temp_dir, "alice")
    bob = _client(temp_dir, "bob")
    try:
        await alice.register("alice", "pw")
        await bob.register("bob", "pw")

        encrypted = encrypt_file("plan.txt", sample_text.encode("utf-8"), EnvelopeVariant.ENHANCED)
        path = encrypted.save(temp_dir / "outbox")
        await alice.send_attachment("bob", path)

        downloaded = await bob.fetch_attachment("alice", "plan")
        saved = downloaded.save(temp_dir / "downloads")
        assert saved.name == "plan.txt"
        assert saved.read_text(encoding="utf-8") == sample_text

        # The same envelope also decrypts through the file path
        assert decrypt_file(path.name, path.read_bytes()).content == downloaded.content
    finally:
        alice.close()
        bob.close()


def test_client_from_config_file(temp_dir):
    """Test building a client from a TOML configuration file."""
    config_path = temp_dir / "config.toml"
    config_path.write_text(
        f'[storage]\ndata_dir = "{temp_dir.as_posix()}"\n\n[chat]\nsnippet_length = 10\n',
        encoding="utf-8",
    )

    client = BalanceClient.from_config(Config(config_path))
    try:
        entry = client.chat_history.touch("bob", "a fairly long message", is_own_message=True)
        assert entry.last_message == "a fairly l..."
    finally:
        client.close()

    assert (temp_dir / "local_storage.json").exists()
