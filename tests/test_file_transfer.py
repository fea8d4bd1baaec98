"""
Balance - File envelope pipeline tests.

Created by Balance Terminal contributors

Tests text and image encryption, attachments and artifact saving.
"""

import base64

import pytest

from balance.codec import ENHANCED, STANDARD, EnvelopeVariant, classify
from balance.constants import ENHANCED_TAG, STANDARD_TAG
from balance.errors import DecryptionError, ErrorCode, FormatError, ValidationError
from balance.file_transfer import (
    FileArtifact,
    decrypt_file,
    decrypt_image,
    decrypt_path,
    encrypt_file,
    encrypt_image,
    attachment_from_path,
    attachment_snippet,
    encrypt_path,
    format_attachment,
    parse_attachment,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\xff\xfe"


class TestTextFiles:
    """``.txt`` <-> envelope conversion."""

    def test_encrypt_standard(self, sample_text):
        artifact = encrypt_file("notes.txt", sample_text.encode("utf-8"))
        assert artifact.filename == "notes.balance"
        assert artifact.content.decode("utf-8").startswith(STANDARD_TAG + "\n")

    def test_encrypt_enhanced(self, sample_text):
        artifact = encrypt_file("notes.txt", sample_text.encode("utf-8"), EnvelopeVariant.ENHANCED)
        assert artifact.filename == "notes.causality"
        assert artifact.content.decode("utf-8").startswith(ENHANCED_TAG + "\n")

    def test_decrypt_restores_original(self, sample_text):
        for variant in EnvelopeVariant:
            encrypted = encrypt_file("notes.txt", sample_text.encode("utf-8"), variant)
            decrypted = decrypt_file(encrypted.filename, encrypted.content)
            assert decrypted.filename == "notes.txt"
            assert decrypted.content.decode("utf-8") == sample_text

    def test_only_txt_can_be_encrypted(self):
        with pytest.raises(ValidationError) as exc_info:
            encrypt_file("notes.md", b"hello")
        assert exc_info.value.code == ErrorCode.E101_INVALID_FILE_TYPE
        assert exc_info.value.reason == "InvalidFileType"

    def test_extension_check_ignores_case(self):
        assert encrypt_file("NOTES.TXT", b"hello").filename == "NOTES.balance"

    def test_empty_file(self):
        with pytest.raises(ValidationError) as exc_info:
            encrypt_file("notes.txt", b"")
        assert exc_info.value.reason == "EmptyInput"

    def test_binary_txt_is_rejected(self):
        with pytest.raises(ValidationError):
            encrypt_file("notes.txt", b"\xff\xfe\xfa")

    def test_only_envelopes_can_be_decrypted(self):
        with pytest.raises(ValidationError):
            decrypt_file("notes.txt", b"hello")

    def test_variant_detected_from_tag_not_extension(self):
        envelope = ENHANCED.encode("mislabelled").encode("utf-8")
        assert decrypt_file("notes.balance", envelope).content == b"mislabelled"

    def test_invalid_tag(self):
        with pytest.raises(FormatError) as exc_info:
            decrypt_file("notes.balance", b"NOT_A_TAG\nAAAA")
        assert exc_info.value.reason == "InvalidFormat"

    def test_corrupted_envelope(self):
        with pytest.raises(DecryptionError):
            decrypt_file("notes.balance", f"{STANDARD_TAG}\n%%%%".encode("utf-8"))

    def test_path_helpers(self, temp_dir, sample_text):
        source = temp_dir / "diary.txt"
        source.write_text(sample_text, encoding="utf-8")

        encrypted = encrypt_path(source)
        saved = encrypted.save(temp_dir / "out")
        assert saved.name == "diary.balance"

        decrypted = decrypt_path(saved)
        assert decrypted.content.decode("utf-8") == sample_text


class TestImages:
    """Image envelopes."""

    def test_image_round_trip(self):
        encrypted = encrypt_image("photo.png", PNG_BYTES)
        assert encrypted.filename == "photo.balance"

        decrypted = decrypt_image(encrypted.filename, encrypted.content, "png")
        assert decrypted.filename == "photo.png"
        assert decrypted.content == PNG_BYTES
        assert decrypted.media_type == "image/png"

    def test_enhanced_image(self):
        encrypted = encrypt_image("photo.jpg", PNG_BYTES, EnvelopeVariant.ENHANCED)
        assert encrypted.filename == "photo.causality"
        decrypted = decrypt_image(encrypted.filename, encrypted.content, "jpg")
        assert decrypted.content == PNG_BYTES
        assert decrypted.media_type == "image/jpeg"

    def test_single_base64_layer(self):
        encrypted = encrypt_image("photo.png", PNG_BYTES)
        envelope = encrypted.content.decode("utf-8")
        assert envelope == STANDARD.encode_bytes(PNG_BYTES)

    def test_unsupported_extension(self):
        with pytest.raises(ValidationError):
            encrypt_image("photo.tiff", PNG_BYTES)

    def test_unsupported_output_format(self):
        encrypted = encrypt_image("photo.png", PNG_BYTES)
        with pytest.raises(ValidationError):
            decrypt_image(encrypted.filename, encrypted.content, "tiff")

    def test_data_url(self):
        decrypted = decrypt_image(*_encrypted_png())
        url = decrypted.to_data_url()
        assert url.startswith("data:image/png;base64,")
        assert base64.b64decode(url.split(",", 1)[1]) == PNG_BYTES

    def test_svg_media_type(self):
        encrypted = encrypt_image("icon.svg", b"<svg/>")
        decrypted = decrypt_image(encrypted.filename, encrypted.content, "svg")
        assert decrypted.media_type == "image/svg+xml"

    def test_base64_text_payload(self):
        """Test envelopes holding base64 text of the image decode to the image bytes."""
        envelope = STANDARD.encode(base64.b64encode(PNG_BYTES).decode("ascii"))
        decrypted = decrypt_image("old.balance", envelope.encode("utf-8"), "png")
        assert decrypted.content == PNG_BYTES


def _encrypted_png():
    encrypted = encrypt_image("photo.png", PNG_BYTES)
    return encrypted.filename, encrypted.content, "png"


class TestAttachments:
    """In-chat attachment messages."""

    def test_format_and_parse(self):
        envelope = ENHANCED.encode("line one\nline two")
        content = format_attachment("report.causality", envelope)
        assert content.startswith("[FILE: report.causality]\n")

        attachment = parse_attachment(content)
        assert attachment.filename == "report.causality"
        assert attachment.base_name == "report"
        assert attachment.envelope == envelope
        assert classify(attachment.envelope) is EnvelopeVariant.ENHANCED

    def test_only_envelopes_can_be_attached(self):
        with pytest.raises(ValidationError):
            format_attachment("notes.txt", "plain text")

    def test_plain_messages_are_not_attachments(self):
        assert parse_attachment("hello there") is None
        assert parse_attachment("[FILE: ]\nbody") is None
        assert parse_attachment("[FILE: broken\nbody") is None

    def test_attachment_from_path(self, temp_dir):
        path = encrypt_file("notes.txt", b"hello").save(temp_dir)
        content = attachment_from_path(path)
        assert parse_attachment(content).envelope == path.read_text(encoding="utf-8")

    def test_attachment_from_binary_path(self, temp_dir):
        photo = temp_dir / "photo.png"
        photo.write_bytes(PNG_BYTES)
        with pytest.raises(ValidationError) as exc_info:
            attachment_from_path(photo)
        assert exc_info.value.code == ErrorCode.E101_INVALID_FILE_TYPE

        garbled = temp_dir / "garbled.balance"
        garbled.write_bytes(PNG_BYTES)
        with pytest.raises(ValidationError):
            attachment_from_path(garbled)

    def test_attachment_snippet(self):
        content = format_attachment("report.balance", STANDARD.encode("x"))
        assert attachment_snippet(content) == "📎 report.balance"
        assert attachment_snippet("hello") == "hello"


class TestFileArtifact:
    """Saving produced files."""

    def test_save_creates_directory(self, temp_dir):
        artifact = FileArtifact("notes.txt", b"content")
        path = artifact.save(temp_dir / "nested" / "downloads")
        assert path.read_bytes() == b"content"
        assert path.name == "notes.txt"

    def test_save_overwrites(self, temp_dir):
        FileArtifact("notes.txt", b"old").save(temp_dir)
        path = FileArtifact("notes.txt", b"new").save(temp_dir)
        assert path.read_bytes() == b"new"
        assert [p.name for p in temp_dir.iterdir()] == ["notes.txt"]

    def test_save_sanitizes_name(self, temp_dir):
        path = FileArtifact("../evil.txt", b"x").save(temp_dir)
        assert path.parent == temp_dir
