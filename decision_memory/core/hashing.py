"""Content hashing for duplicate-injection suppression.

Provides a cheap 32-bit djb2 digest.  It is used only for "was this exact text
already emitted in this session" checks, so collisions are tolerable and no
cryptographic property is required.
"""

from __future__ import annotations

from decision_memory.core.errors import InvalidInputError

_DJB2_SEED = 5381
_UINT32 = 0xFFFFFFFF


def compute_content_hash(content: str) -> str:
    """Compute the djb2 digest of *content* as lowercase hex.

    The accumulator wraps as a signed 32-bit integer and the hex form is
    taken from its absolute value.

    Args:
        content: Text to hash.  Must be a non-empty ``str``.

    Returns:
        Hex digest string.

    Raises:
        InvalidInputError: If *content* is empty or not a string.
    """
    if not isinstance(content, str) or not content:
        raise InvalidInputError("Content must be a non-empty string")

    h = _DJB2_SEED
    for ch in content:
        h = ((h << 5) + h + ord(ch)) & _UINT32

    if h & 0x80000000:
        h -= 0x100000000
    return format(abs(h), "x")
