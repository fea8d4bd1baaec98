"""
Balance - File round-trip and chat attachments

This module wraps the envelope codec for whole files: text files are
turned into ``.balance``/``.causality`` envelopes and back, images go
through the byte path of the codec, and envelopes can be embedded in chat
messages as ``[FILE: name]`` attachments.

Produced files are returned as ``FileArtifact`` objects; nothing touches
the filesystem until ``FileArtifact.save`` is called, so a failed
operation never leaves a partial download behind.

Author: Balance Terminal contributors
Version: 1.0.0
"""

import base64
import binascii
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .codec import EnvelopeVariant, codec_for, decode_any, decode_any_bytes
from .constants import (
    ATTACHMENT_PREFIX,
    ATTACHMENT_SNIPPET_PREFIX,
    ATTACHMENT_SUFFIX,
    ENVELOPE_EXTENSIONS,
    IMAGE_FORMATS,
    PLAINTEXT_EXTENSION,
)
from .errors import DecryptionError, ErrorCode, ValidationError
from .utils import has_extension, replace_extension, sanitize_filename, strip_extension

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class FileArtifact:
    """A produced file ready to be handed to the user.

    Attributes:
        filename: Suggested download name
        content: File bytes
        media_type: MIME type of the content
    """

    filename: str
    content: bytes
    media_type: str = "text/plain"

    def save(self, directory: PathLike) -> Path:
        """Write the artifact into ``directory`` atomically.

        Args:
            directory: Destination directory (created if missing)

        Returns:
            Path of the written file
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / sanitize_filename(self.filename)

        fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".balance-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(self.content)
            os.replace(temp_path, target)
        except OSError:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise

        logger.info(f"Saved {self.filename} ({len(self.content)} bytes) to {directory}")
        return target

    def to_data_url(self) -> str:
        """Render the content as a ``data:`` URL (used by the image viewer)."""
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


@dataclass(frozen=True)
class Attachment:
    """An envelope carried inside a chat message."""

    filename: str
    envelope: str

    @property
    def base_name(self) -> str:
        return strip_extension(self.filename)


def _require_content(filename: str, data: bytes) -> None:
    if not data:
        raise ValidationError(
            ErrorCode.E102_EMPTY_INPUT, f"{filename} is empty", {"filename": filename}
        )


def _read_text(filename: str, data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError(
            ErrorCode.E101_INVALID_FILE_TYPE,
            f"{filename} is not a UTF-8 text file",
            {"filename": filename},
        ) from e


def _unwrap_base64_payload(data: bytes) -> bytes:
    # Older image envelopes carry base64 text of the image instead of the raw bytes
    try:
        return base64.b64decode(data, validate=True) if data else data
    except (binascii.Error, ValueError):
        return data


def _image_media_type(image_format: str) -> str:
    fmt = image_format.lower().lstrip(".")
    if fmt == "svg":
        return "image/svg+xml"
    if fmt == "jpg":
        return "image/jpeg"
    if fmt == "ico":
        return "image/x-icon"
    return f"image/{fmt}"


def encrypt_file(
    filename: str, data: bytes, variant: EnvelopeVariant = EnvelopeVariant.STANDARD
) -> FileArtifact:
    """Turn a ``.txt`` file into an envelope file.

    Args:
        filename: Source file name, must end with ``.txt``
        data: Source file bytes (UTF-8 text)
        variant: Envelope variant to produce

    Returns:
        Artifact named ``<stem>.balance`` or ``<stem>.causality``

    Raises:
        ValidationError: Wrong extension, empty file, or non-text content
    """
    if not has_extension(filename, PLAINTEXT_EXTENSION):
        raise ValidationError(
            ErrorCode.E101_INVALID_FILE_TYPE,
            f"Only {PLAINTEXT_EXTENSION} files can be encrypted",
            {"filename": filename},
        )
    _require_content(filename, data)

    codec = codec_for(variant)
    envelope = codec.encode(_read_text(filename, data))
    output_name = replace_extension(filename, codec.extension)

    logger.info(f"Encrypted {filename} -> {output_name} ({variant.value})")
    return FileArtifact(output_name, envelope.encode("utf-8"))


def decrypt_file(filename: str, data: bytes) -> FileArtifact:
    """Turn a ``.balance``/``.causality`` file back into ``.txt``.

    The variant is detected from the tag line, not the extension.

    Raises:
        ValidationError: Wrong extension or empty file
        FormatError: Unknown tag line
        DecryptionError: Corrupted payload
    """
    if not has_extension(filename, *ENVELOPE_EXTENSIONS):
        raise ValidationError(
            ErrorCode.E101_INVALID_FILE_TYPE,
            f"Only {' or '.join(ENVELOPE_EXTENSIONS)} files can be decrypted",
            {"filename": filename},
        )
    _require_content(filename, data)

    try:
        envelope = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError(
            ErrorCode.E302_DECRYPTION_FAILED,
            "Decryption failed - invalid file or corrupted data",
            {"filename": filename},
        ) from e

    plaintext = decode_any(envelope)
    output_name = replace_extension(filename, PLAINTEXT_EXTENSION)

    logger.info(f"Decrypted {filename} -> {output_name}")
    return FileArtifact(output_name, plaintext.encode("utf-8"))


def encrypt_image(
    filename: str, data: bytes, variant: EnvelopeVariant = EnvelopeVariant.STANDARD
) -> FileArtifact:
    """Wrap image bytes into an envelope file.

    The image bytes go through the codec's byte path, so the envelope holds
    exactly one base64 layer of the image under the XOR framing.

    Raises:
        ValidationError: Unsupported image extension or empty file
    """
    if not has_extension(filename, *(f".{fmt}" for fmt in IMAGE_FORMATS)):
        raise ValidationError(
            ErrorCode.E101_INVALID_FILE_TYPE,
            "Please select a file with one of these extensions: "
            + ", ".join(f".{fmt}" for fmt in IMAGE_FORMATS),
            {"filename": filename},
        )
    _require_content(filename, data)

    codec = codec_for(variant)
    envelope = codec.encode_bytes(data)
    output_name = replace_extension(filename, codec.extension)

    logger.info(f"Encrypted image {filename} -> {output_name} ({variant.value})")
    return FileArtifact(output_name, envelope.encode("utf-8"))


def decrypt_image(filename: str, data: bytes, image_format: str = "png") -> FileArtifact:
    """Recover image bytes from an envelope file.

    Args:
        filename: Envelope file name (``.balance`` or ``.causality``)
        data: Envelope file bytes
        image_format: Format the image had before encryption; the envelope
            does not record it

    Returns:
        Artifact named ``<stem>.<image_format>`` holding the raw image bytes
    """
    image_format = image_format.lower().lstrip(".")
    if image_format not in IMAGE_FORMATS:
        raise ValidationError(
            ErrorCode.E002_INVALID_ARGUMENT,
            f"Unsupported image format: {image_format}",
            {"image_format": image_format},
        )
    if not has_extension(filename, *ENVELOPE_EXTENSIONS):
        raise ValidationError(
            ErrorCode.E101_INVALID_FILE_TYPE,
            "Please select a .balance or .causality file.",
            {"filename": filename},
        )
    _require_content(filename, data)

    try:
        envelope = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError(
            ErrorCode.E302_DECRYPTION_FAILED,
            "Failed to decrypt the image file. Please check the file format.",
            {"filename": filename},
        ) from e

    image_bytes = _unwrap_base64_payload(decode_any_bytes(envelope))
    output_name = replace_extension(filename, f".{image_format}")

    logger.info(f"Decrypted image {filename} -> {output_name}")
    return FileArtifact(output_name, image_bytes, _image_media_type(image_format))


def encrypt_path(path: PathLike, variant: EnvelopeVariant = EnvelopeVariant.STANDARD) -> FileArtifact:
    """Read a ``.txt`` file from disk and encrypt it."""
    path = Path(path)
    return encrypt_file(path.name, path.read_bytes(), variant)


def decrypt_path(path: PathLike) -> FileArtifact:
    """Read an envelope file from disk and decrypt it."""
    path = Path(path)
    return decrypt_file(path.name, path.read_bytes())


def format_attachment(filename: str, envelope: str) -> str:
    """Build the chat message body for an envelope attachment.

    Raises:
        ValidationError: If ``filename`` is not an envelope file
    """
    _require_attachable(filename)
    return f"{ATTACHMENT_PREFIX}{filename}{ATTACHMENT_SUFFIX}\n{envelope}"


def _require_attachable(filename: str) -> None:
    if not has_extension(filename, *ENVELOPE_EXTENSIONS):
        raise ValidationError(
            ErrorCode.E101_INVALID_FILE_TYPE,
            f"Only {' or '.join(ENVELOPE_EXTENSIONS)} files can be sent",
            {"filename": filename},
        )


def attachment_from_path(path: PathLike) -> str:
    """Read an envelope file from disk and build its attachment message body.

    Raises:
        ValidationError: If the file is not an envelope file or not text
    """
    path = Path(path)
    _require_attachable(path.name)
    data = path.read_bytes()
    _require_content(path.name, data)
    return format_attachment(path.name, _read_text(path.name, data))


def attachment_snippet(content: str) -> str:
    """Short display text for a message: ``📎 name`` for attachments."""
    attachment = parse_attachment(content)
    if attachment is None:
        return content
    return f"{ATTACHMENT_SNIPPET_PREFIX}{attachment.filename}"


def parse_attachment(content: str) -> Optional[Attachment]:
    """Split an attachment message into header filename and envelope body.

    Only the first newline separates header from body; the envelope keeps
    its own line structure.

    Returns:
        Attachment, or None if ``content`` does not carry the file marker
    """
    if not content.startswith(ATTACHMENT_PREFIX):
        return None

    header, _, body = content.partition("\n")
    header = header.rstrip("\r")
    if not header.endswith(ATTACHMENT_SUFFIX):
        return None

    filename = header[len(ATTACHMENT_PREFIX) : -len(ATTACHMENT_SUFFIX)].strip()
    if not filename:
        return None
    return Attachment(filename, body)
