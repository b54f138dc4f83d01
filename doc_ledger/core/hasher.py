"""
Content hashing.

Derives the content identifier used as the storage key for a document.
"""

import hashlib
import re

CONTENT_ID_LENGTH = 64

_CONTENT_ID_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def hash_bytes(buffer: bytes) -> str:
    """Compute the content identifier of a byte buffer.

    SHA-256, lowercase hexadecimal. Identical bytes always give the same
    identifier, on any machine.
    """
    return hashlib.sha256(buffer).hexdigest()


def is_content_id(value: str) -> bool:
    """Check that a string has the shape of a content identifier."""
    return isinstance(value, str) and bool(_CONTENT_ID_PATTERN.match(value))
