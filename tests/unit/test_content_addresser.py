"""Tests for SHA-1 digests and base62 short URL codes."""

import io

import pytest

from uploads_api.services.content_addresser import (
    base62_sha1,
    decode_base62,
    digest,
    digest_bytes,
    encode_base62,
    sha1_from_base62_encoded,
    short_url_basename,
)

HELLO_SHA1 = "aaf4c61ddcc5e8a2dabede0f3b482cd9aea9434d"


class TestDigest:
    def test_stream_digest_matches_bytes_digest(self):
        assert digest(io.BytesIO(b"hello")) == HELLO_SHA1
        assert digest_bytes(b"hello") == HELLO_SHA1

    def test_reads_across_chunks(self):
        data = b"x" * (200 * 1024 + 7)
        assert digest(io.BytesIO(data)) == digest_bytes(data)


class TestBase62:
    def test_alphabet_order(self):
        assert encode_base62(0) == "0"
        assert encode_base62(10) == "a"
        assert encode_base62(36) == "A"
        assert encode_base62(61) == "Z"
        assert encode_base62(62) == "10"

    def test_decode_rejects_foreign_characters(self):
        with pytest.raises(ValueError):
            decode_base62("abc-")

    def test_sha1_round_trip(self):
        assert sha1_from_base62_encoded(base62_sha1(HELLO_SHA1)) == HELLO_SHA1

    def test_leading_zeros_are_restored(self):
        sha1 = "0" * 39 + "1"
        assert base62_sha1(sha1) == "1"
        assert sha1_from_base62_encoded("1") == sha1

    def test_invalid_code_is_none(self):
        assert sha1_from_base62_encoded("not/base62") is None
        assert sha1_from_base62_encoded("") is None

    def test_code_wider_than_sha1_is_none(self):
        assert sha1_from_base62_encoded(encode_base62(16 ** 40)) is None


class TestShortUrlBasename:
    def test_with_extension(self):
        assert short_url_basename(HELLO_SHA1, "png") == f"{base62_sha1(HELLO_SHA1)}.png"

    def test_without_extension(self):
        assert short_url_basename(HELLO_SHA1, None) == base62_sha1(HELLO_SHA1)
