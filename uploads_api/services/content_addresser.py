# uploads_api/services/content_addresser.py
"""
Content addressing for uploads.

Uploads are named and deduplicated by the SHA-1 of their bytes. Short URLs
(upload://<code>.<ext>) carry the same SHA-1 re-encoded in base62, so a
short code always decodes back to the exact hash it was built from.
"""

import hashlib
from typing import BinaryIO

SHA1_LENGTH = 40
CHUNK_SIZE = 64 * 1024

BASE62_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
_BASE62_INDEX = {char: i for i, char in enumerate(BASE62_ALPHABET)}


def digest(stream: BinaryIO) -> str:
    """
    Compute the SHA-1 hex digest of a binary stream.

    Reads from the current position to EOF exactly once.
    """
    sha1 = hashlib.sha1()
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        sha1.update(chunk)
    return sha1.hexdigest()


def digest_bytes(data: bytes) -> str:
    """Compute the SHA-1 hex digest of in-memory bytes."""
    return hashlib.sha1(data).hexdigest()


def encode_base62(number: int) -> str:
    if number < 0:
        raise ValueError("base62 encodes non-negative integers only")
    if number == 0:
        return BASE62_ALPHABET[0]

    chars = []
    while number:
        number, remainder = divmod(number, 62)
        chars.append(BASE62_ALPHABET[remainder])
    return "".join(reversed(chars))


def decode_base62(encoded: str) -> int:
    if not encoded:
        raise ValueError("empty base62 string")

    number = 0
    for char in encoded:
        try:
            number = number * 62 + _BASE62_INDEX[char]
        except KeyError:
            raise ValueError(f"invalid base62 character: {char!r}") from None
    return number


def base62_sha1(sha1: str) -> str:
    """Encode a hex SHA-1 as the base62 code used in short URLs."""
    return encode_base62(int(sha1, 16))


def sha1_from_base62_encoded(encoded: str) -> str | None:
    """
    Decode a short URL code back to a 40-char hex SHA-1.

    Returns None when the code is not valid base62 or decodes to a number
    wider than a SHA-1.
    """
    try:
        sha1 = format(decode_base62(encoded), "x")
    except ValueError:
        return None

    if len(sha1) > SHA1_LENGTH:
        return None
    return sha1.rjust(SHA1_LENGTH, "0")


def short_url_basename(sha1: str, extension: str | None) -> str:
    basename = base62_sha1(sha1)
    if extension:
        basename = f"{basename}.{extension}"
    return basename
