"""
=============================================================================
SHORT CODE HASHER
=============================================================================

Turns a submitted URL into a short Base62 code.

The mapping is a pure function of the URL bytes: the same URL always gets
the same code, so repeating a shorten request is idempotent from the
client's point of view and no counter or random source is needed.

=============================================================================
THE ALGORITHM
=============================================================================

    URL bytes ──► djb2 ──► 64-bit integer ──► Base62 (low 7 digits) ──► code

STEP 1: djb2
────────────
Dan Bernstein's string hash:

    acc = 5381
    for b in data:
        acc = acc * 33 + b        (mod 2**64)

Python integers never overflow, so the wraparound is applied explicitly
with a 64-bit mask after every step.

STEP 2: Base62
──────────────
    alphabet = 0-9 A-Z a-z       (digits, uppercase, lowercase)

    value = 5381
    5381 % 62 = 49  → 'n'        value = 86
      86 % 62 = 24  → 'O'        value = 1
       1 % 62 = 1   → '1'        value = 0  (stop)

    code = "1On"                 (most-significant digit first)

At most 7 digits are produced. A 64-bit value needs up to 11 Base62
digits, so the high-order ones are dropped and the code keeps the
low-order end of the hash. Short values give short codes; there is
no zero padding.

=============================================================================
COLLISIONS
=============================================================================

62**7 is about 3.5 trillion codes, but djb2 is not collision resistant.
Two URLs can land on the same code; the store keeps whichever was
written first (see store.py).

=============================================================================
"""

from typing import Union


BASE62_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"

MAX_CODE_LENGTH = 7

DJB2_SEED = 5381
DJB2_MULTIPLIER = 33

_MASK_64 = (1 << 64) - 1


def djb2(data: bytes) -> int:
    """
    Compute the 64-bit djb2 hash of a byte string.

    Args:
        data: Bytes to hash.

    Returns:
        Unsigned 64-bit hash value.
    """
    acc = DJB2_SEED
    for byte in data:
        acc = (acc * DJB2_MULTIPLIER + byte) & _MASK_64
    return acc


def encode_base62(value: int, max_length: int = MAX_CODE_LENGTH) -> str:
    """
    Encode the low-order digits of a non-negative integer in Base62.

    Digits are produced least-significant first and the loop stops after
    ``max_length`` of them, so anything above 62**max_length is discarded.

    Examples:
        encode_base62(0)        → "0"
        encode_base62(61)       → "z"
        encode_base62(62)       → "10"
        encode_base62(62 ** 7)  → "0000000"

    Raises:
        ValueError: If value is negative.
    """
    if value < 0:
        raise ValueError(f"Cannot encode negative value: {value}")

    digits = []
    while value > 0 and len(digits) < max_length:
        value, remainder = divmod(value, 62)
        digits.append(BASE62_ALPHABET[remainder])

    if not digits:
        return BASE62_ALPHABET[0]

    return "".join(reversed(digits))


def hash_url(url: Union[bytes, str]) -> str:
    """
    Derive the short code for a URL.

    Strings are hashed as their UTF-8 encoding.

    Example:
        hash_url("https://www.theobeers.com/")  → "k902KW0"
    """
    if isinstance(url, str):
        url = url.encode("utf-8")
    return encode_base62(djb2(url))


def is_short_code(value: str) -> bool:
    """Check whether a string has the shape of a generated code."""
    return 0 < len(value) <= MAX_CODE_LENGTH and all(c in BASE62_ALPHABET for c in value)
