"""
CRL fetch adapter — byte-for-byte retrieval of revocation lists.

Adapter layer — implements the CrlFetcher port:
  - http:// and https:// URIs via httpx (sync client)
  - file:// URIs and bare filesystem paths via pathlib

Transient network errors (timeouts, connection failures) are retried with
tenacity exponential backoff. Anything left after the retries, HTTP error
statuses included, surfaces as a single CRLFetchFault; no partial data is
ever returned.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cert_trust.errors import CRLFetchFault

log = structlog.get_logger()

_HTTP_SCHEMES = frozenset({"http", "https"})


class HttpCrlFetcher:
    """
    Fetch CRLs over HTTP(S) or from the local filesystem.

    Implements the CrlFetcher port.
    """

    def __init__(
        self,
        timeout: int = 60,
        retry_attempts: int = 3,
        follow_redirects: bool = False,
    ) -> None:
        self._timeout = timeout
        self._retry_attempts = retry_attempts
        self._follow_redirects = follow_redirects

    def fetch(self, uri: str) -> bytes:
        """
        Return the raw bytes behind `uri`.

        Raises CRLFetchFault on any read failure.
        """
        scheme = urlparse(uri).scheme.lower()
        try:
            if scheme in _HTTP_SCHEMES:
                return self._fetch_http(uri)
            return self._fetch_file(uri)
        except (httpx.HTTPError, OSError) as exc:
            log.warning("crl.fetch_failed", uri=uri, error=str(exc))
            raise CRLFetchFault(f"Unable to fetch the CRL at {uri}") from exc

    def _fetch_http(self, uri: str) -> bytes:
        retrying = Retrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=1, min=0.1, max=30),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            reraise=True,
        )
        for attempt in retrying:
            with attempt, httpx.Client(
                timeout=self._timeout, follow_redirects=self._follow_redirects
            ) as client:
                response = client.get(uri)
                response.raise_for_status()
                data = response.content
                log.debug("crl.downloaded", uri=uri, size_bytes=len(data))
                return data
        raise AssertionError("unreachable")  # pragma: no cover

    @staticmethod
    def _fetch_file(uri: str) -> bytes:
        parsed = urlparse(uri)
        if parsed.scheme.lower() == "file":
            path = Path(url2pathname(parsed.path))
        elif parsed.scheme and len(parsed.scheme) > 1:
            raise OSError(f"Unsupported CRL URI scheme: {parsed.scheme}")
        else:
            path = Path(uri)
        return path.read_bytes()
