"""Secure download utilities with SSL certificate handling.

Uses certifi's CA bundle so downloads work on systems where Python cannot
reach the platform certificate store (notably macOS standalone builds).
"""

from __future__ import annotations

import json
import ssl
from typing import TYPE_CHECKING, Any, Optional
from urllib.request import Request, urlopen

import certifi

if TYPE_CHECKING:
    from kubescape_api.core.cancellation import CancellationToken

USER_AGENT = "kubescape-api"

CHUNK_SIZE = 256 * 1024


def get_ssl_context() -> ssl.SSLContext:
    """Get an SSL context that uses certifi's CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def secure_urlopen(url: str, timeout: Optional[float] = 30.0, accept: Optional[str] = None):
    """Open a URL with proper SSL certificate verification.

    Args:
        url: The URL to open.
        timeout: Connection timeout in seconds.
        accept: Optional Accept header value.

    Returns:
        A file-like object for reading the response.

    Raises:
        URLError: If the URL cannot be opened.
        ValueError: If the URL is not HTTPS.
    """
    if not url.startswith("https://"):
        raise ValueError(f"Only HTTPS URLs are supported: {url}")

    headers = {"User-Agent": USER_AGENT}
    if accept:
        headers["Accept"] = accept
    request = Request(url, headers=headers)
    return urlopen(request, timeout=timeout, context=get_ssl_context())  # nosec B310


def download_bytes(
    url: str,
    timeout: Optional[float] = 120.0,
    cancel: Optional["CancellationToken"] = None,
) -> bytes:
    """Download a URL into memory, checking ``cancel`` between chunks.

    Raises:
        URLError: If the URL cannot be opened.
        ValueError: If the URL is not HTTPS.
        CancelledError: If ``cancel`` fires before the body is read.
    """
    chunks = []
    with secure_urlopen(url, timeout=timeout) as response:
        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()
            chunk = response.read(CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def fetch_json(url: str, timeout: Optional[float] = 15.0) -> Any:
    """Download and decode a JSON document."""
    with secure_urlopen(url, timeout=timeout, accept="application/json") as response:
        return json.loads(response.read().decode("utf-8"))
