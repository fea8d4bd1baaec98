"""
Balance - Envelope codec tests.

Created by Balance Terminal contributors
"""

import pytest

from balance.codec import (
    ENHANCED,
    STANDARD,
    EnhancedCodec,
    EnvelopeVariant,
    StandardCodec,
    classify,
    codec_for,
    codec_for_extension,
    decode_any,
    decode_any_bytes,
    envelope_info,
    rolling_hash,
    utc_timestamp,
)
from balance.constants import ENHANCED_TAG, STANDARD_TAG
from balance.errors import DecryptionError, FormatError


def fixed_clock():
    return "2024-05-01T12:00:00.000Z"


class TestRollingHash:
    """Key derivation for the enhanced variant."""

    def test_known_values(self):
        assert rolling_hash("") == "0"
        assert rolling_hash("a") == "2p"
        assert rolling_hash("ab") == "2e9"

    def test_long_input_wraps_to_32_bits(self):
        value = int(rolling_hash("causality_quantum_key_2024"), 36)
        assert value <= 2**31


class TestStandardCodec:
    """``.balance`` envelopes."""

    def test_known_envelope(self):
        assert STANDARD.encode("hi") == f"{STANDARD_TAG}\nAyYHXA=="

    def test_empty_payload(self):
        assert STANDARD.encode("") == f"{STANDARD_TAG}\n"
        assert STANDARD.decode(f"{STANDARD_TAG}\n") == ""

    def test_round_trip_preserves_text(self, sample_text):
        assert STANDARD.decode(STANDARD.encode(sample_text)) == sample_text

    def test_encoding_is_deterministic(self, sample_text):
        assert STANDARD.encode(sample_text) == STANDARD.encode(sample_text)

    def test_first_line_is_tag(self):
        lines = STANDARD.encode("payload").split("\n")
        assert lines[0] == STANDARD_TAG
        assert len(lines) == 2

    def test_bytes_path_matches_text_path(self):
        assert STANDARD.encode_bytes("hi".encode("utf-8")) == STANDARD.encode("hi")

    def test_arbitrary_bytes_round_trip(self):
        data = bytes(range(256))
        assert STANDARD.decode_bytes(STANDARD.encode_bytes(data)) == data

    def test_rejects_enhanced_envelope(self):
        envelope = ENHANCED.encode("x")
        with pytest.raises(FormatError):
            STANDARD.decode(envelope)

    def test_rejects_plain_text(self):
        with pytest.raises(FormatError):
            STANDARD.decode("just some text")

    def test_corrupted_payload(self):
        with pytest.raises(DecryptionError) as exc_info:
            STANDARD.decode(f"{STANDARD_TAG}\n!!!not base64!!!")
        assert not isinstance(exc_info.value, FormatError)

    def test_tolerates_crlf_tag_line(self):
        envelope = STANDARD.encode("windows").replace("\n", "\r\n", 1)
        assert STANDARD.decode(envelope) == "windows"

    def test_tag_must_match_exactly(self):
        envelope = STANDARD.encode("x").replace(STANDARD_TAG, STANDARD_TAG + " ", 1)
        assert not STANDARD.is_envelope(envelope)

    def test_key_changes_payload(self):
        other = StandardCodec(key="another_key")
        assert other.encode("secret") != STANDARD.encode("secret")
        assert other.decode(other.encode("secret")) == "secret"


class TestEnhancedCodec:
    """``.causality`` envelopes."""

    def test_known_envelope(self):
        codec = EnhancedCodec(key="a", clock=fixed_clock)
        assert codec.encode("hi") == f"{ENHANCED_TAG}\n{fixed_clock()}\nVDlcTg=="

    def test_round_trip_preserves_text(self, sample_text):
        assert ENHANCED.decode(ENHANCED.encode(sample_text)) == sample_text

    def test_timestamp_line(self):
        codec = EnhancedCodec(clock=fixed_clock)
        envelope = codec.encode("x")
        assert envelope.split("\n")[1] == fixed_clock()
        assert codec.timestamp_of(envelope) == fixed_clock()

    def test_timestamp_is_not_validated(self):
        envelope = EnhancedCodec(clock=lambda: "not a time").encode("still fine")
        assert ENHANCED.decode(envelope) == "still fine"

    def test_missing_timestamp_line(self):
        with pytest.raises(FormatError):
            ENHANCED.decode(ENHANCED_TAG)

    def test_rejects_standard_envelope(self):
        with pytest.raises(FormatError):
            ENHANCED.decode(STANDARD.encode("x"))

    def test_payload_differs_from_standard(self):
        standard_payload = STANDARD.encode("same text").split("\n")[-1]
        enhanced_payload = ENHANCED.encode("same text").split("\n")[-1]
        assert standard_payload != enhanced_payload

    def test_utc_timestamp_format(self):
        stamp = utc_timestamp()
        assert stamp.endswith("Z")
        assert "T" in stamp
        assert len(stamp.split(".")[-1]) == 4  # milliseconds plus Z


class TestDetection:
    """Classification and auto-detecting decode."""

    def test_classify(self):
        assert classify(STANDARD.encode("a")) is EnvelopeVariant.STANDARD
        assert classify(ENHANCED.encode("a")) is EnvelopeVariant.ENHANCED
        assert classify("hello") is None
        assert classify("") is None

    def test_decode_any(self, sample_text):
        assert decode_any(STANDARD.encode(sample_text)) == sample_text
        assert decode_any(ENHANCED.encode(sample_text)) == sample_text

    def test_decode_any_unknown_tag(self):
        with pytest.raises(FormatError):
            decode_any("UNKNOWN_TAG\nAAAA")

    def test_decode_any_bytes(self):
        data = b"\x89PNG\r\n\x1a\n\x00\xff"
        assert decode_any_bytes(ENHANCED.encode_bytes(data)) == data

    def test_envelope_info(self):
        codec = EnhancedCodec(clock=fixed_clock)
        info = envelope_info(codec.encode("x"))
        assert info.valid
        assert info.variant is EnvelopeVariant.ENHANCED
        assert info.timestamp == fixed_clock()

        info = envelope_info(STANDARD.encode("x"))
        assert info.valid
        assert info.variant is EnvelopeVariant.STANDARD
        assert info.timestamp is None

        assert not envelope_info("plain").valid

    def test_codec_lookup(self):
        assert codec_for(EnvelopeVariant.STANDARD) is STANDARD
        assert codec_for(EnvelopeVariant.ENHANCED) is ENHANCED
        assert codec_for_extension("notes.BALANCE") is STANDARD
        assert codec_for_extension("notes.causality") is ENHANCED
        assert codec_for_extension("notes.txt") is None
