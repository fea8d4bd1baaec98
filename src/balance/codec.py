"""
Balance - Reversible envelope codec.

Created by Balance Terminal contributors

Implements the two text envelope formats used for ``.balance`` and
``.causality`` files:

- Standard: ``TAG\\n<base64(xor(base64(payload), key))>``
- Enhanced: ``TAG\\n<ISO timestamp>\\n<base64(offset(xor(base64(payload), hashed key)))>``

Both are obfuscation with fixed keys embedded here, identical for every user
and file. They are NOT encryption and must not be treated as a security
boundary. The formats are kept bit-for-bit compatible with existing files.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from .constants import (
    ENHANCED_EXTENSION,
    ENHANCED_KEY,
    ENHANCED_TAG,
    STANDARD_EXTENSION,
    STANDARD_KEY,
    STANDARD_TAG,
)
from .errors import DecryptionError, ErrorCode, FormatError

logger = logging.getLogger(__name__)

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


class EnvelopeVariant(Enum):
    """Closed set of envelope formats."""

    STANDARD = "standard"
    ENHANCED = "enhanced"


@dataclass(frozen=True)
class EnvelopeInfo:
    """Header information read from an envelope without decoding it."""

    valid: bool
    variant: Optional[EnvelopeVariant] = None
    timestamp: Optional[str] = None


def utc_timestamp() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.sssZ``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def rolling_hash(text: str) -> str:
    """Fold ``text`` into a base-36 string with a signed 32-bit ``h*31 + c`` hash.

    Args:
        text: Input string

    Returns:
        Base-36 rendering of the absolute hash value
    """
    h = 0
    for char in text:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 1 << 32
    return _to_base36(abs(h))


def _split_lines(text: str):
    lines = text.split("\n")
    lines[0] = lines[0].rstrip("\r")
    return lines


def _b64decode_strict(data: str) -> bytes:
    # Payload may be wrapped over several lines; whitespace is framing only
    compact = "".join(data.split())
    return base64.b64decode(compact, validate=True)


class EnvelopeCodec:
    """Base class for the envelope variants.

    Subclasses provide the tag, key schedule and per-byte transform.
    ``encode``/``decode`` work on text (UTF-8); ``encode_bytes``/``decode_bytes``
    work on raw bytes such as image data and skip the text transcode.
    """

    variant: EnvelopeVariant
    tag: str
    extension: str

    def __init__(self, key: str):
        self._key = self._derive_key(key).encode("ascii")

    def _derive_key(self, key: str) -> str:
        return key

    def _header_lines(self):
        return [self.tag]

    def _transform(self, data: bytes) -> bytes:
        raise NotImplementedError

    def _untransform(self, data: bytes) -> bytes:
        raise NotImplementedError

    def _payload_start(self) -> int:
        return 1

    def is_envelope(self, text: str) -> bool:
        """Check whether ``text`` starts with this variant's exact tag line."""
        if not isinstance(text, str) or not text:
            return False
        return _split_lines(text)[0] == self.tag

    def encode_bytes(self, data: bytes) -> str:
        """Wrap raw bytes into an envelope.

        Args:
            data: Payload bytes

        Returns:
            Envelope text
        """
        inner = base64.b64encode(data)
        framed = base64.b64encode(self._transform(inner)).decode("ascii")
        logger.debug(f"Encoded {self.variant.value} envelope: payload_len={len(data)}")
        return "\n".join(self._header_lines() + [framed])

    def encode(self, text: str) -> str:
        """Wrap a text payload into an envelope."""
        return self.encode_bytes(text.encode("utf-8"))

    def decode_bytes(self, envelope: str) -> bytes:
        """Unwrap an envelope into raw bytes.

        Args:
            envelope: Envelope text

        Returns:
            Payload bytes

        Raises:
            FormatError: If the tag line does not match this variant
            DecryptionError: If the payload is corrupted
        """
        if not isinstance(envelope, str) or not self.is_envelope(envelope):
            raise FormatError(
                ErrorCode.E303_INVALID_FORMAT,
                f"Invalid {self.extension} file format",
                {"expected_tag": self.tag},
            )

        lines = _split_lines(envelope)
        start = self._payload_start()
        if len(lines) < start:
            raise FormatError(
                ErrorCode.E303_INVALID_FORMAT,
                f"Invalid {self.extension} file format: truncated header",
                {"expected_tag": self.tag},
            )

        try:
            framed = _b64decode_strict("\n".join(lines[start:]))
            inner = self._untransform(framed)
            data = base64.b64decode(inner, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.debug(f"Failed to decode {self.variant.value} envelope: {e}")
            raise DecryptionError(
                ErrorCode.E302_DECRYPTION_FAILED,
                "Decryption failed - invalid file or corrupted data",
                {"variant": self.variant.value},
            ) from e

        logger.debug(f"Decoded {self.variant.value} envelope: payload_len={len(data)}")
        return data

    def decode(self, envelope: str) -> str:
        """Unwrap an envelope into its text payload.

        Raises:
            FormatError: If the tag line does not match this variant
            DecryptionError: If the payload is corrupted or not valid UTF-8
        """
        data = self.decode_bytes(envelope)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError(
                ErrorCode.E302_DECRYPTION_FAILED,
                "Decryption failed - payload is not valid text",
                {"variant": self.variant.value},
            ) from e


class StandardCodec(EnvelopeCodec):
    """``.balance`` envelope: plain repeating-key XOR."""

    variant = EnvelopeVariant.STANDARD
    tag = STANDARD_TAG
    extension = STANDARD_EXTENSION

    def __init__(self, key: str = STANDARD_KEY):
        super().__init__(key)

    def _transform(self, data: bytes) -> bytes:
        key = self._key
        return bytes(b ^ key[i % len(key)] for i, b in enumerate(data))

    # XOR is its own inverse
    _untransform = _transform


class EnhancedCodec(EnvelopeCodec):
    """``.causality`` envelope: hashed key, XOR then a cyclic ``(i % 3) + 1`` offset.

    The second header line records when the envelope was produced. It is
    informational only and never checked on decode.
    """

    variant = EnvelopeVariant.ENHANCED
    tag = ENHANCED_TAG
    extension = ENHANCED_EXTENSION

    def __init__(self, key: str = ENHANCED_KEY, clock: Optional[Callable[[], str]] = None):
        super().__init__(key)
        self._clock = clock or utc_timestamp

    def _derive_key(self, key: str) -> str:
        return rolling_hash(key)

    def _header_lines(self):
        return [self.tag, self._clock()]

    def _payload_start(self) -> int:
        return 2

    def _transform(self, data: bytes) -> bytes:
        key = self._key
        return bytes((b ^ key[i % len(key)]) + (i % 3) + 1 for i, b in enumerate(data))

    def _untransform(self, data: bytes) -> bytes:
        key = self._key
        out = bytearray()
        for i, b in enumerate(data):
            shifted = b - ((i % 3) + 1)
            if shifted < 0:
                raise ValueError(f"byte {i} below offset")
            out.append(shifted ^ key[i % len(key)])
        return bytes(out)

    def timestamp_of(self, envelope: str) -> Optional[str]:
        """Return the creation timestamp line, or None if not an enhanced envelope."""
        if not self.is_envelope(envelope):
            return None
        lines = _split_lines(envelope)
        return lines[1].rstrip("\r") if len(lines) > 1 else None


STANDARD = StandardCodec()
ENHANCED = EnhancedCodec()

_CODECS = {
    EnvelopeVariant.STANDARD: STANDARD,
    EnvelopeVariant.ENHANCED: ENHANCED,
}


def codec_for(variant: EnvelopeVariant) -> EnvelopeCodec:
    """Get the codec instance for a variant."""
    return _CODECS[variant]


def codec_for_extension(filename: str) -> Optional[EnvelopeCodec]:
    """Pick the codec matching a file's envelope extension, if any."""
    lowered = filename.lower()
    for codec in _CODECS.values():
        if lowered.endswith(codec.extension):
            return codec
    return None


def classify(text: str) -> Optional[EnvelopeVariant]:
    """Classify envelope text by its tag line.

    Standard is checked first, then enhanced.

    Returns:
        The matching variant, or None for anything else
    """
    for variant, codec in _CODECS.items():
        if codec.is_envelope(text):
            return variant
    return None


def envelope_info(text: str) -> EnvelopeInfo:
    """Read variant and (for enhanced envelopes) timestamp from the header."""
    variant = classify(text)
    if variant is None:
        return EnvelopeInfo(valid=False)
    timestamp = ENHANCED.timestamp_of(text) if variant is EnvelopeVariant.ENHANCED else None
    return EnvelopeInfo(valid=True, variant=variant, timestamp=timestamp)


def _detect(envelope: str) -> EnvelopeCodec:
    variant = classify(envelope)
    if variant is None:
        raise FormatError(
            ErrorCode.E303_INVALID_FORMAT,
            "Invalid file format - not a .balance or .causality envelope",
        )
    return codec_for(variant)


def decode_any(envelope: str) -> str:
    """Auto-detect the variant and decode a text envelope.

    Raises:
        FormatError: If the text carries neither tag
        DecryptionError: If the payload is corrupted
    """
    return _detect(envelope).decode(envelope)


def decode_any_bytes(envelope: str) -> bytes:
    """Auto-detect the variant and decode a byte envelope."""
    return _detect(envelope).decode_bytes(envelope)
