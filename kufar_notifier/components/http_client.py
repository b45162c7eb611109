"""
HTTP transport for marketplace requests.

A thin wrapper over a requests session that returns the status, headers
and body of a GET without raising on HTTP errors, plus the body decoding
both the resolver and the listing fetcher rely on.
"""

import gzip
import logging
import zlib
from dataclasses import dataclass, field
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
ZLIB_SECOND_BYTES = (0x01, 0x5E, 0x9C, 0xDA)


class PayloadDecodeError(ValueError):
    """Raised when a response body cannot be decompressed or decoded."""


@dataclass
class HttpResponse:
    """Result of a marketplace GET."""

    url: str
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    def header_summary(self) -> Dict[str, str]:
        """Headers worth logging when a request is rejected."""
        interesting = ["content-type", "content-encoding", "content-length", "server", "date"]
        lowered = {key.lower(): value for key, value in self.headers.items()}
        return {name: lowered[name] for name in interesting if name in lowered}


class MarketplaceHttpClient:
    """Issues GET requests against the marketplace."""

    def __init__(self, timeout: int = 30, session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            timeout: Request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> HttpResponse:
        """
        GET ``url`` and return the raw response.

        Raises:
            requests.RequestException: On network level failures.
        """
        logger.debug(f"GET {url}")
        response = self.session.get(url, headers=headers or {}, timeout=self.timeout)

        return HttpResponse(
            url=url,
            status_code=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )


def decompress_body(body: bytes) -> bytes:
    """
    Undo compression the transport did not already handle.

    requests decodes ``Content-Encoding`` itself; this catches bodies that
    still carry a gzip or zlib stream (mislabelled or doubly encoded).
    """
    try:
        if body.startswith(GZIP_MAGIC):
            return gzip.decompress(body)

        if len(body) > 1 and body[0] == 0x78 and body[1] in ZLIB_SECOND_BYTES:
            return zlib.decompress(body)
    except (OSError, EOFError, zlib.error) as e:
        raise PayloadDecodeError(f"Cannot decompress response body: {e}")

    return body


def decode_body(response: HttpResponse) -> str:
    """Decompress and decode a response body to text."""
    body = decompress_body(response.body)

    charset = "utf-8"
    content_type = {k.lower(): v for k, v in response.headers.items()}.get(
        "content-type", ""
    )
    for part in content_type.split(";"):
        part = part.strip()
        if part.lower().startswith("charset="):
            charset = part.split("=", 1)[1].strip() or charset

    try:
        return body.decode(charset)
    except (LookupError, UnicodeDecodeError) as e:
        raise PayloadDecodeError(f"Cannot decode response body as {charset}: {e}")
