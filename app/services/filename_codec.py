"""
Listing Image Service - Filename Codec
Canonical listing image names: img.<userIdHex>.<listingCode>.<NN><.ext>

The same grammar is used by the upload intake (to name new files) and by
the directory auditor (to classify existing ones). There is no version
marker in the name, so both sides must agree on it exactly.
"""
import re
import string
import time
from dataclasses import dataclass
from typing import Optional


USER_ID_HEX_WIDTH = 7
MIN_SEQUENCE = 1
MAX_SEQUENCE = 99

FILENAME_PATTERN = re.compile(
    r"^img\.([0-9a-f]{7})\.([a-z0-9]+)\.(\d{2})(\.[a-z]+)$",
    re.IGNORECASE | re.ASCII,
)
LISTING_CODE_PATTERN = re.compile(r"^[a-z0-9]+$", re.IGNORECASE | re.ASCII)
EXTENSION_PATTERN = re.compile(r"^\.[a-z]+$", re.ASCII)

_HEX_CHARS = frozenset("0123456789abcdef")
_BASE36_ALPHABET = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class DecodedName:
    """Components recovered from a canonical image filename."""
    user_id_hex: str
    listing_code: str
    sequence_number: int
    extension: str


def format_user_id_hex(user_id_raw) -> str:
    """
    Encode a user identifier as the 7-character filename segment.

    Every character outside lowercase [0-9a-f] is dropped, the rest is
    left-padded with zeros and cut to the first 7 characters. This is lossy:
    distinct user ids can map to the same segment (e.g. "42" and "x42"), and
    uppercase hex digits are dropped rather than folded. Existing files on
    disk depend on this exact encoding, so don't replace it with a hash
    without migrating them.
    """
    kept = "".join(ch for ch in str(user_id_raw) if ch in _HEX_CHARS)
    return kept.rjust(USER_ID_HEX_WIDTH, "0")[:USER_ID_HEX_WIDTH]


def extension_of(original_file_name: Optional[str]) -> str:
    """Lowercased final extension of a file name, with its leading dot."""
    if not original_file_name:
        return ""
    base = original_file_name.replace("\\", "/").rsplit("/", 1)[-1]
    dot = base.rfind(".")
    # ".bashrc"-style names have no extension
    if dot <= 0:
        return ""
    return base[dot:].lower()


def is_valid_listing_code(listing_code: Optional[str]) -> bool:
    """Listing codes must stay inside the filename grammar."""
    if not isinstance(listing_code, str):
        return False
    return bool(LISTING_CODE_PATTERN.fullmatch(listing_code))


def generate_listing_code(now: Optional[float] = None) -> str:
    """
    Generate a listing code from the current time.

    The millisecond timestamp written in base 36, e.g. "m2k1x9a0".
    Codes generated in the same millisecond collide.
    """
    millis = int((time.time() if now is None else now) * 1000)
    if millis <= 0:
        return "0"
    digits = []
    while millis:
        millis, rem = divmod(millis, 36)
        digits.append(_BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def compose_name(user_id_hex: str, listing_code: str, sequence_number: int, extension: str) -> str:
    """Assemble a filename from already-encoded parts."""
    if not MIN_SEQUENCE <= sequence_number <= MAX_SEQUENCE:
        raise ValueError(
            f"Sequence number {sequence_number} outside {MIN_SEQUENCE}..{MAX_SEQUENCE}"
        )
    return f"img.{user_id_hex}.{listing_code}.{sequence_number:02d}{extension}"


def encode(
    user_id_raw,
    listing_code: str,
    sequence_number: int,
    original_file_name: Optional[str],
    fallback_extension: Optional[str] = None
) -> str:
    """
    Build the canonical filename for one listing image.

    Args:
        user_id_raw: User identifier (any type, stringified)
        listing_code: Listing code the image belongs to
        sequence_number: 1-based position of the image, 1..99
        original_file_name: Name supplied by the client, used for the extension
        fallback_extension: Extension to use when the original name has no
            alphabetic one (e.g. derived from the MIME type)

    Returns:
        Filename like "img.0000042.abc123.01.jpg"

    Raises:
        ValueError: sequence number outside 1..99
    """
    extension = extension_of(original_file_name)
    if fallback_extension and not EXTENSION_PATTERN.fullmatch(extension):
        extension = fallback_extension.lower()

    return compose_name(format_user_id_hex(user_id_raw), listing_code, sequence_number, extension)


def decode(filename) -> Optional[DecodedName]:
    """Parse a canonical filename; None for anything outside the grammar."""
    if not isinstance(filename, str):
        return None
    match = FILENAME_PATTERN.fullmatch(filename)
    if not match:
        return None
    return DecodedName(
        user_id_hex=match.group(1),
        listing_code=match.group(2),
        sequence_number=int(match.group(3)),
        extension=match.group(4).lower(),
    )
