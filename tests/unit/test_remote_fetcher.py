"""
Unit tests for remote URL fetching.

Covers:
- Streaming into the staged file
- Byte cap from Content-Length and while streaming
- Redirect following with per-hop private address checks
- HTTP errors
- Staging file cleanup
"""

import socket
from unittest.mock import patch

import httpx
import pytest

from uploads_api.services.remote_fetcher import (
    RemoteFetcher,
    RemoteFetchError,
    RemoteFileTooLarge,
    _check_ssrf,
    _is_private_ip,
    filename_from_url,
    staging_file,
)

PUBLIC_IP = "93.184.216.34"


def _fake_getaddrinfo(private_hosts=()):
    def resolve(host, port, *args, **kwargs):
        ip = "10.0.0.5" if host in private_hosts else PUBLIC_IP
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (ip, 0))]

    return resolve


@pytest.fixture(autouse=True)
def public_dns():
    with patch(
        "uploads_api.services.remote_fetcher.socket.getaddrinfo",
        side_effect=_fake_getaddrinfo(private_hosts=("internal.example",)),
    ) as resolver:
        yield resolver


def _fetcher(settings, handler):
    return RemoteFetcher(settings, transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Address checks
# ---------------------------------------------------------------------------


class TestAddressChecks:
    def test_private_ranges(self):
        assert _is_private_ip("127.0.0.1")
        assert _is_private_ip("10.1.2.3")
        assert _is_private_ip("169.254.169.254")
        assert not _is_private_ip(PUBLIC_IP)
        assert not _is_private_ip("not-an-ip")

    def test_rejects_non_http_scheme(self):
        with pytest.raises(RemoteFetchError, match="scheme"):
            _check_ssrf("file:///etc/passwd")

    def test_rejects_private_host(self):
        with pytest.raises(RemoteFetchError, match="SSRF blocked"):
            _check_ssrf("http://internal.example/secret")

    def test_public_host_passes(self):
        _check_ssrf("https://files.example.com/cat.png")


# ---------------------------------------------------------------------------
# download
# ---------------------------------------------------------------------------


class TestDownload:
    def test_streams_body_to_destination(self, settings, tmp_path):
        dest = tmp_path / "staged"
        fetcher = _fetcher(settings, lambda request: httpx.Response(200, content=b"hello"))

        assert fetcher.download("https://files.example.com/a.txt", dest) == 5
        assert dest.read_bytes() == b"hello"

    def test_declared_length_over_cap(self, settings, tmp_path):
        dest = tmp_path / "staged"
        fetcher = _fetcher(settings, lambda request: httpx.Response(200, content=b"x" * 100))

        with pytest.raises(RemoteFileTooLarge):
            fetcher.download("https://files.example.com/big.bin", dest, max_bytes=10)
        assert not dest.exists()

    def test_streamed_body_over_cap(self, settings, tmp_path):
        dest = tmp_path / "staged"

        def handler(request):
            # Iterator content is sent chunked, without Content-Length
            return httpx.Response(200, content=iter([b"x" * 8, b"x" * 8]))

        with pytest.raises(RemoteFileTooLarge):
            _fetcher(settings, handler).download("https://files.example.com/big.bin", dest, max_bytes=10)
        assert not dest.exists()

    def test_follows_redirects(self, settings, tmp_path):
        dest = tmp_path / "staged"

        def handler(request):
            if request.url.path == "/start":
                return httpx.Response(302, headers={"Location": "https://cdn.example.com/final.png"})
            return httpx.Response(200, content=b"final")

        _fetcher(settings, handler).download("https://files.example.com/start", dest)
        assert dest.read_bytes() == b"final"

    def test_redirect_to_private_host_blocked(self, settings, tmp_path):
        dest = tmp_path / "staged"

        def handler(request):
            if request.url.host == "files.example.com":
                return httpx.Response(302, headers={"Location": "http://internal.example/latest/meta-data"})
            return httpx.Response(200, content=b"secret")

        with pytest.raises(RemoteFetchError, match="SSRF blocked"):
            _fetcher(settings, handler).download("https://files.example.com/start", dest)
        assert not dest.exists()

    def test_too_many_redirects(self, make_settings, tmp_path):
        settings = make_settings(REMOTE_FETCH_MAX_REDIRECTS=2)

        def handler(request):
            return httpx.Response(302, headers={"Location": "https://files.example.com/loop"})

        with pytest.raises(RemoteFetchError):
            _fetcher(settings, handler).download("https://files.example.com/loop", tmp_path / "staged")

    def test_http_error_status(self, settings, tmp_path):
        dest = tmp_path / "staged"
        fetcher = _fetcher(settings, lambda request: httpx.Response(404))

        with pytest.raises(RemoteFetchError):
            fetcher.download("https://files.example.com/missing.png", dest)
        assert not dest.exists()

    def test_default_cap_follows_settings(self, make_settings, tmp_path):
        settings = make_settings(MAX_IMAGE_SIZE_KB=1, MAX_ATTACHMENT_SIZE_KB=1)
        fetcher = _fetcher(settings, lambda request: httpx.Response(200, content=b"x" * 2048))

        with pytest.raises(RemoteFileTooLarge):
            fetcher.download("https://files.example.com/big.bin", tmp_path / "staged")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestFilenameFromUrl:
    def test_basename_without_query(self):
        assert filename_from_url("https://x.com/a/cat.png?size=large") == "cat.png"

    def test_percent_decoding(self):
        assert filename_from_url("https://x.com/a/my%20cat.png") == "my cat.png"


class TestStagingFile:
    def test_removed_after_use(self):
        with staging_file("uploads-test") as path:
            path.write_bytes(b"data")
            assert path.exists()
        assert not path.exists()

    def test_removed_on_error(self):
        with pytest.raises(RuntimeError):
            with staging_file("uploads-test") as path:
                raise RuntimeError("boom")
        assert not path.exists()
