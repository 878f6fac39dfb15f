# uploads_api/services/remote_fetcher.py
"""
Remote URL fetching for API-created uploads.

Streams a remote file into a request-scoped temporary file, following
redirects and enforcing the byte cap chunk by chunk so a hostile server
cannot make us buffer more than the cap. Every redirect hop is checked
against private/internal address ranges.

Usage:
    with staging_file("uploads-avatar") as path:
        size = RemoteFetcher(settings).download(url, path)
"""

import ipaddress
import logging
import socket
import tempfile
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional
from urllib.parse import unquote, urlparse

import httpx

from uploads_api.config import Settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
USER_AGENT = "Uploads-Fetcher/1.0"


class RemoteFetchError(Exception):
    """The remote file could not be fetched."""


class RemoteFileTooLarge(RemoteFetchError):
    """The remote file exceeded the byte cap."""


def _is_private_ip(ip_str: str) -> bool:
    """Check if an IP address is in a private/reserved range."""
    try:
        addr = ipaddress.ip_address(ip_str)
        return addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved
    except ValueError:
        return False


def _check_ssrf(url: str) -> None:
    """Block requests to private/internal IP addresses."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise RemoteFetchError(f"Unsupported URL scheme: {parsed.scheme!r}")

    hostname = parsed.hostname
    if not hostname:
        raise RemoteFetchError(f"URL has no host: {url}")

    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return  # DNS resolution failure will be caught by httpx

    for info in infos:
        ip = info[4][0]
        if _is_private_ip(ip):
            raise RemoteFetchError(f"SSRF blocked: {hostname} resolves to private IP {ip}")


def filename_from_url(url: str) -> str:
    """Basename of the URL path, e.g. 'cat.png' for https://x.com/a/cat.png?s=1."""
    return unquote(PurePosixPath(urlparse(url).path).name)


@contextmanager
def staging_file(prefix: str = "uploads") -> Iterator[Path]:
    """
    Yield a fresh temporary file path, deleted on every exit path.
    """
    handle = tempfile.NamedTemporaryFile(prefix=f"{prefix}-", delete=False)
    handle.close()
    path = Path(handle.name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


class RemoteFetcher:
    """Download a remote URL into a local file with a hard size cap."""

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self._transport = transport

    def _guard_request(self, request: httpx.Request) -> None:
        _check_ssrf(str(request.url))

    def download(self, url: str, destination: Path, max_bytes: Optional[int] = None) -> int:
        """
        Stream `url` into `destination`.

        Args:
            url: Remote URL (http/https)
            destination: File to write; truncated first
            max_bytes: Byte cap (defaults to the larger of the image and
                attachment limits)

        Returns:
            Number of bytes written

        Raises:
            RemoteFileTooLarge: The body exceeded max_bytes (fetch aborted)
            RemoteFetchError: Any network, HTTP or policy failure
        """
        if max_bytes is None:
            max_bytes = self.settings.max_remote_fetch_bytes

        written = 0
        try:
            with httpx.Client(
                timeout=self.settings.REMOTE_FETCH_TIMEOUT_SECONDS,
                follow_redirects=True,
                max_redirects=self.settings.REMOTE_FETCH_MAX_REDIRECTS,
                headers={"User-Agent": USER_AGENT},
                event_hooks={"request": [self._guard_request]},
                transport=self._transport,
            ) as client:
                with client.stream("GET", url) as response:
                    response.raise_for_status()

                    declared = response.headers.get("Content-Length")
                    if declared and declared.isdigit() and int(declared) > max_bytes:
                        raise RemoteFileTooLarge(
                            f"{url} declares {declared} bytes, limit is {max_bytes}"
                        )

                    with open(destination, "wb") as out:
                        for chunk in response.iter_bytes(CHUNK_SIZE):
                            written += len(chunk)
                            if written > max_bytes:
                                raise RemoteFileTooLarge(
                                    f"{url} exceeded {max_bytes} bytes while streaming"
                                )
                            out.write(chunk)
        except RemoteFetchError:
            destination.unlink(missing_ok=True)
            raise
        except (httpx.HTTPError, OSError) as e:
            destination.unlink(missing_ok=True)
            raise RemoteFetchError(f"Fetching {url} failed: {e}") from e

        logger.debug(f"[FETCH] {url} -> {destination} ({written} bytes)")
        return written
