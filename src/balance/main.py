"""
Balance - Main entry point for the command-line client.

Created by Balance Terminal contributors
"""

import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .client import BalanceClient
from .codec import EnvelopeVariant, envelope_info
from .config import Config
from .constants import (
    CONFIG_FILENAME,
    IMAGE_FORMATS,
    LOG_BACKUP_COUNT,
    LOG_DATE_FORMAT,
    LOG_FILENAME,
    LOG_FORMAT,
    LOG_MAX_BYTES,
    LOGS_DIR,
)
from .errors import BalanceError
from .file_transfer import FileArtifact, decrypt_image, decrypt_path, encrypt_image, encrypt_path
from .message import MessageType
from .utils import format_timestamp, truncate_snippet

logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 8

console = Console()
err_console = Console(stderr=True)


def setup_logging(config: Config, debug: bool = False) -> None:
    """Configure the ``balance`` logger from the ``[logging]`` section.

    Console output goes through rich; file output is a rotating log under
    ``<data_dir>/logs``.
    """
    level_name = "DEBUG" if debug else str(config.get("logging", "level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger("balance")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    if config.get("logging", "console_logging", True):
        console_handler = RichHandler(console=err_console, show_path=debug, rich_tracebacks=debug)
        console_handler.setLevel(level if debug else max(level, logging.WARNING))
        root.addHandler(console_handler)

    if config.get("logging", "file_logging", True):
        log_dir = config.data_dir / LOGS_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILENAME,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        file_handler.setLevel(level)
        root.addHandler(file_handler)


def _output_dir(args, config: Config) -> Path:
    return Path(args.output).expanduser() if args.output else config.resolve_path("download_dir")


def _write(artifact: FileArtifact, directory: Path) -> None:
    path = artifact.save(directory)
    console.print(f"[green]Saved[/green] {path}")


def _variant(args) -> EnvelopeVariant:
    return EnvelopeVariant.ENHANCED if args.enhanced else EnvelopeVariant.STANDARD


def _ask_password(args) -> str:
    if args.password is not None:
        return args.password
    return console.input("Password: ", password=True)


# --- File commands ---


def cmd_encrypt(args, config: Config) -> None:
    _write(encrypt_path(args.file, _variant(args)), _output_dir(args, config))


def cmd_decrypt(args, config: Config) -> None:
    _write(decrypt_path(args.file), _output_dir(args, config))


def cmd_encrypt_image(args, config: Config) -> None:
    path = Path(args.file)
    _write(encrypt_image(path.name, path.read_bytes(), _variant(args)), _output_dir(args, config))


def cmd_decrypt_image(args, config: Config) -> None:
    path = Path(args.file)
    artifact = decrypt_image(path.name, path.read_bytes(), args.format)
    _write(artifact, _output_dir(args, config))


def cmd_info(args, config: Config) -> None:
    text = Path(args.file).read_text(encoding="utf-8", errors="replace")
    info = envelope_info(text)
    if not info.valid:
        console.print(f"{args.file}: [red]not a Balance envelope[/red]")
        return
    console.print(f"{args.file}: [cyan]{info.variant.value}[/cyan] envelope")
    if info.timestamp:
        console.print(f"Encrypted at: {format_timestamp(info.timestamp)}")


# --- Account and message commands ---


async def cmd_register(args, client: BalanceClient) -> None:
    user = await client.register(args.username, _ask_password(args))
    console.print(f"[green]Registered and logged in as[/green] {user.username}")


async def cmd_login(args, client: BalanceClient) -> None:
    user = await client.login(args.username, _ask_password(args))
    console.print(f"[green]Logged in as[/green] {user.username}")


async def cmd_logout(args, client: BalanceClient) -> None:
    client.logout()
    console.print("Logged out")


async def cmd_whoami(args, client: BalanceClient) -> None:
    user = client.user
    if user is None:
        console.print("Not logged in")
    else:
        console.print(f"{user.username} (since {format_timestamp(user.created_at)})")


async def cmd_send(args, client: BalanceClient) -> None:
    message_type = MessageType.MAIL if args.mail else MessageType.CHAT
    receipt = await client.send_message(args.username, " ".join(args.message), message_type)
    console.print(f"Message sent to {receipt.to_username}")


async def cmd_inbox(args, client: BalanceClient) -> None:
    unread = await client.inbox()
    if not unread:
        console.print("No unread messages")
        return

    table = Table(title=f"Unread messages ({len(unread)})")
    table.add_column("Time", style="dim")
    table.add_column("From", style="cyan")
    table.add_column("Type")
    table.add_column("Message")
    table.add_column("ID", style="dim", no_wrap=True)
    for sender, message in unread:
        table.add_row(
            format_timestamp(message.created_at),
            escape(sender),
            message.message_type.value,
            escape(truncate_snippet(message.content, 60)),
            message.id[:SHORT_ID_LENGTH],
        )
    console.print(table)

    if args.mark_read:
        # Oldest first so each conversation ends on its newest message
        for sender, message in reversed(unread):
            await client.messages.mark_read(message.id)
            await client.receive(sender, message)
        for sender in {sender for sender, _ in unread}:
            client.chat_history.mark_read(sender)


async def cmd_read(args, client: BalanceClient) -> None:
    client.session.require_user()
    # Accept the short id shown by ``inbox``
    matches = [m.id for _, m in await client.inbox() if m.id.startswith(args.message_id)]
    message_id = matches[0] if len(matches) == 1 else args.message_id
    if await client.messages.mark_read(message_id):
        console.print(f"Message {message_id} marked as read")
    else:
        console.print(f"Message {args.message_id} was already read or does not exist")


async def cmd_history(args, client: BalanceClient) -> None:
    me = client.session.require_user()
    history = await client.open_conversation(args.username)
    if not history:
        console.print(f"No messages with {args.username}")
        return
    for message in history:
        who = "you" if message.from_user_id == me.id else args.username
        attachment = message.attachment
        body = f"[FILE: {attachment.filename}]" if attachment else message.content
        console.print(
            f"[dim]{format_timestamp(message.created_at)}[/dim] [cyan]{escape(who)}[/cyan]: {escape(body)}"
        )


async def cmd_attach(args, client: BalanceClient) -> None:
    receipt = await client.send_attachment(args.username, args.file)
    console.print(f"File {Path(args.file).name} sent to {receipt.to_username}")


async def cmd_fetch(args, client: BalanceClient) -> None:
    artifact = await client.fetch_attachment(args.username, args.filename)
    _write(artifact, _output_dir(args, client_config(args)))


async def cmd_recent(args, client: BalanceClient) -> None:
    entries = client.chat_history.recent()
    if not entries:
        console.print("No recent chats")
        return

    table = Table(title="Recent chats")
    table.add_column("User", style="cyan")
    table.add_column("Last message")
    table.add_column("Time", style="dim")
    table.add_column("Unread", justify="right")
    for entry in entries:
        table.add_row(
            entry.username,
            escape(entry.last_message),
            format_timestamp(entry.timestamp),
            str(entry.unread_count) if entry.unread_count else "",
        )
    console.print(table)


FILE_COMMANDS = {
    "encrypt": cmd_encrypt,
    "decrypt": cmd_decrypt,
    "encrypt-image": cmd_encrypt_image,
    "decrypt-image": cmd_decrypt_image,
    "info": cmd_info,
}

CLIENT_COMMANDS = {
    "register": cmd_register,
    "login": cmd_login,
    "logout": cmd_logout,
    "whoami": cmd_whoami,
    "send": cmd_send,
    "inbox": cmd_inbox,
    "read": cmd_read,
    "history": cmd_history,
    "attach": cmd_attach,
    "fetch": cmd_fetch,
    "recent": cmd_recent,
}


def client_config(args) -> Config:
    """Configuration for this invocation (cached on ``args``)."""
    if getattr(args, "_config", None) is None:
        if args.config:
            config_path = Path(args.config).expanduser()
        elif args.data_dir:
            config_path = Path(args.data_dir).expanduser() / CONFIG_FILENAME
        else:
            config_path = None
        args._config = Config(config_path)
        if args.data_dir:
            args._config.set("storage", "data_dir", args.data_dir)
    return args._config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="balance",
        description="Balance - Terminal for envelope files and user messaging",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  balance encrypt notes.txt             # notes.txt -> notes.balance
  balance encrypt --enhanced notes.txt  # notes.txt -> notes.causality
  balance decrypt notes.balance         # notes.balance -> notes.txt
  balance register alice                # create an account
  balance send bob hello there          # chat message to bob
  balance attach bob notes.balance      # send an envelope file
  balance fetch alice notes             # download notes.balance as notes.txt
        """,
    )
    parser.add_argument("--version", action="version", version=f"Balance {__version__}")
    parser.add_argument("--config", type=str, default=None, help="Path to config.toml")
    parser.add_argument(
        "--data-dir", type=str, default=None, help="Data directory (default: ~/.balance)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    def output_option(p):
        p.add_argument("-o", "--output", default=None, help="Output directory")

    p = sub.add_parser("encrypt", help="Encrypt a .txt file")
    p.add_argument("file")
    p.add_argument("--enhanced", action="store_true", help="Produce a .causality envelope")
    output_option(p)

    p = sub.add_parser("decrypt", help="Decrypt a .balance or .causality file")
    p.add_argument("file")
    output_option(p)

    p = sub.add_parser("encrypt-image", help="Encrypt an image file")
    p.add_argument("file")
    p.add_argument("--enhanced", action="store_true", help="Produce a .causality envelope")
    output_option(p)

    p = sub.add_parser("decrypt-image", help="Decrypt an image envelope")
    p.add_argument("file")
    p.add_argument("--format", default="png", choices=IMAGE_FORMATS, help="Original image format")
    output_option(p)

    p = sub.add_parser("info", help="Show envelope header information")
    p.add_argument("file")

    for name, text in (("register", "Create an account"), ("login", "Log in")):
        p = sub.add_parser(name, help=text)
        p.add_argument("username")
        p.add_argument("--password", default=None, help="Password (prompted if omitted)")

    sub.add_parser("logout", help="Log out")
    sub.add_parser("whoami", help="Show the logged-in user")

    p = sub.add_parser("send", help="Send a message")
    p.add_argument("username")
    p.add_argument("message", nargs="+")
    p.add_argument("--mail", action="store_true", help="Send as mail instead of chat")

    p = sub.add_parser("inbox", help="List unread messages")
    p.add_argument("--mark-read", action="store_true", help="Mark listed messages as read")

    p = sub.add_parser("read", help="Mark one message as read")
    p.add_argument("message_id")

    p = sub.add_parser("history", help="Show the chat with a user")
    p.add_argument("username")

    p = sub.add_parser("attach", help="Send an envelope file to a user")
    p.add_argument("username")
    p.add_argument("file")

    p = sub.add_parser("fetch", help="Download an attachment as .txt")
    p.add_argument("username")
    p.add_argument("filename", help="Attachment name without the extension")
    output_option(p)

    sub.add_parser("recent", help="List recent chats")

    return parser


async def run_client_command(args, config: Config) -> None:
    client = BalanceClient.from_config(config)
    try:
        await CLIENT_COMMANDS[args.command](args, client)
    finally:
        client.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the Balance CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = client_config(args)
        setup_logging(config, args.debug)

        if args.command in FILE_COMMANDS:
            FILE_COMMANDS[args.command](args, config)
        else:
            asyncio.run(run_client_command(args, config))
    except BalanceError as e:
        logger.debug(f"Command {args.command} failed: {e}")
        err_console.print(f"[red]{e.reason}:[/red] {escape(e.message)}")
        return 1
    except OSError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
