"""
Revocation lists — fetching, caching, staleness and combination of CRLs.

States of a RevocationList:

  uncached ──fetch──▶ cached-fresh ──now > nextUpdate──▶ cached-stale
                           ▲                                   │
                           └──────────────refresh()────────────┘

Staleness is evaluated lazily whenever refresh() runs; nothing is scheduled.
Fetched bytes reach the cache only once they parse as a CRL, and a cached
copy that no longer parses counts as stale.
The cached copy lives at a path derived from the URI (plus a per-context
scope), so every process in the same context shares it. Metadata is parsed
from the cached copy once per fetch and memoized.

RevocationListCombiner concatenates several lists into one PEM artifact that
the verification engine loads as part of its trust input.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.extensions import ExtensionNotFound

from cert_trust import cache, pem
from cert_trust.domain.models import CrlMetadata
from cert_trust.domain.ports import CrlFetcher
from cert_trust.errors import CRLParseFault
from cert_trust.names import openssl_name_hash

log = structlog.get_logger()

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _load_crl(data: bytes) -> x509.CertificateRevocationList:
    if pem.is_pem(data):
        return x509.load_pem_x509_crl(data)
    return x509.load_der_x509_crl(data)


def _colon_hex(digest: bytes) -> str:
    return ":".join(f"{b:02X}" for b in digest)


def _crl_number(crl: x509.CertificateRevocationList) -> int | None:
    try:
        return crl.extensions.get_extension_for_class(x509.CRLNumber).value.crl_number
    except (ExtensionNotFound, ValueError):
        return None


def parse_metadata(data: bytes) -> CrlMetadata:
    """Parse CRL bytes (DER or PEM). Raises CRLParseFault on anything else."""
    try:
        crl = _load_crl(data)
        return CrlMetadata(
            last_update=crl.last_update_utc,
            next_update=crl.next_update_utc,
            hash=openssl_name_hash(crl.issuer.public_bytes()),
            fingerprint=_colon_hex(crl.fingerprint(hashes.SHA1())),
            crl_number=_crl_number(crl),
            issuer=crl.issuer.rfc4514_string(),
        )
    except ValueError as exc:
        raise CRLParseFault(f"Content is not a certificate revocation list: {exc}") from exc


# ─────────────────────── RevocationList ───────────────────────


class RevocationList:
    """
    One CRL identified by its source URI.

    Field accessors (last_update, next_update, hash, fingerprint, crl_number,
    issuer) populate the cache on first use and parse it once. A fetch
    clears the memoized fields so the next access re-parses.
    """

    def __init__(
        self,
        uri: str,
        fetcher: CrlFetcher,
        cache_dir: Path,
        scope: str = "",
        clock: Clock = _utcnow,
    ) -> None:
        self._uri = uri
        self._fetcher = fetcher
        self._local_path = cache.cache_path(Path(cache_dir), f"{scope}{uri}", ".crl")
        self._clock = clock
        self._metadata: CrlMetadata | None = None

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def local_path(self) -> Path:
        return self._local_path

    @property
    def is_cached(self) -> bool:
        return self._local_path.exists()

    def local_modified(self) -> datetime | None:
        return cache.modified_at(self._local_path)

    # ──────────────────────── Lifecycle ────────────────────────

    def is_stale(self) -> bool:
        """Uncached, unreadable, past its nextUpdate, or without a nextUpdate at all."""
        metadata = self._cached_metadata()
        if metadata is None:
            return True
        return metadata.next_update is None or self._clock() > metadata.next_update

    def refresh(self, force: bool = False) -> bool:
        """
        Fetch the CRL when forced, uncached or stale. Returns whether a fetch happened.

        Raises CRLFetchFault when the source cannot be read or does not serve
        a CRL, and CRLWriteFault when the local copy cannot be written.
        """
        if force or self.is_stale():
            self._fetch()
            return True
        return False

    def _fetch(self) -> CrlMetadata:
        data = self._fetcher.fetch(self._uri)
        # Only a parseable CRL may replace the cached copy.
        try:
            metadata = parse_metadata(data)
        except CRLParseFault as fault:
            log.warning("crl.fetch_rejected", uri=self._uri, size_bytes=len(data))
            raise CRLParseFault(f"{self._uri} did not serve a CRL: {fault}") from fault
        cache.atomic_write(self._local_path, data)
        self._metadata = metadata
        log.info("crl.fetched", uri=self._uri, path=str(self._local_path), size_bytes=len(data))
        return metadata

    def _read(self) -> bytes:
        return self._local_path.read_bytes()

    def _cached_metadata(self) -> CrlMetadata | None:
        """Metadata of the cached copy; None when there is none or it cannot be parsed."""
        if not self.is_cached:
            return None
        if self._metadata is None:
            try:
                self._metadata = parse_metadata(self._read())
            except CRLParseFault as fault:
                log.warning(
                    "crl.cache_unreadable",
                    uri=self._uri,
                    path=str(self._local_path),
                    error=str(fault),
                )
                return None
        return self._metadata

    def _populate(self) -> CrlMetadata:
        metadata = self._cached_metadata()
        if metadata is None:
            metadata = self._fetch()
        return metadata

    # ──────────────────────── Fields ────────────────────────

    @property
    def last_update(self) -> datetime:
        return self._populate().last_update

    @property
    def next_update(self) -> datetime | None:
        return self._populate().next_update

    @property
    def hash(self) -> str:
        """OpenSSL issuer-name hash, as printed by `openssl crl -hash`."""
        return self._populate().hash

    @property
    def fingerprint(self) -> str:
        """SHA-1 of the DER CRL as colon-separated uppercase hex."""
        return self._populate().fingerprint

    @property
    def crl_number(self) -> int | None:
        return self._populate().crl_number

    @property
    def issuer(self) -> str:
        return self._populate().issuer

    # ──────────────────────── Rendering ────────────────────────

    def to_pem(self) -> str:
        """Refresh if needed, then armor the cached copy as an X509 CRL PEM block."""
        self.refresh()
        data = self._read()
        if pem.is_pem(data):
            try:
                data = _load_crl(data).public_bytes(Encoding.DER)
            except ValueError as exc:
                raise CRLParseFault(f"Cached content at {self._local_path} is not a CRL: {exc}") from exc
        return pem.armor(data, pem.X509_CRL)

    def __repr__(self) -> str:
        return f"RevocationList(uri={self._uri!r})"


class RevocationListRegistry:
    """
    Hands out one RevocationList per URI.

    Keeping a single object per URI means a stale list is refreshed in place
    and its memoized fields are shared by every certificate pointing at it.
    """

    def __init__(
        self,
        fetcher: CrlFetcher,
        cache_dir: Path,
        scope: str = "",
        clock: Clock = _utcnow,
    ) -> None:
        self._fetcher = fetcher
        self._cache_dir = Path(cache_dir)
        self._scope = scope
        self._clock = clock
        self._lists: dict[str, RevocationList] = {}

    def get(self, uri: str) -> RevocationList:
        crl = self._lists.get(uri)
        if crl is None:
            crl = RevocationList(uri, self._fetcher, self._cache_dir, self._scope, self._clock)
            self._lists[uri] = crl
        return crl

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def __len__(self) -> int:
        return len(self._lists)


# ─────────────────────── Combination ───────────────────────


class RevocationListCombiner:
    """
    Merge an ordered set of RevocationLists into one PEM file.

    The artifact path depends only on which lists take part (their cache
    paths, in order), never on their content. An existing artifact is reused
    unless one of its lists has a newer local copy than the artifact itself.
    """

    def __init__(self, cache_dir: Path) -> None:
        self._cache_dir = Path(cache_dir)

    def artifact_path(self, lists: Sequence[RevocationList]) -> Path:
        key = "".join(cache.sha1_hex(str(crl.local_path)) for crl in lists)
        return cache.cache_path(self._cache_dir, key, ".pem")

    def combine(self, lists: Sequence[RevocationList]) -> Path:
        """
        Return the path of the combined PEM for `lists`, rebuilding it when stale.

        Raises ValueError for an empty sequence, CRLFetchFault / CRLWriteFault
        from the underlying lists, and CRLWriteFault when the artifact cannot
        be written.
        """
        if not lists:
            raise ValueError("At least one revocation list is required")

        path = self.artifact_path(lists)
        artifact_modified = cache.modified_at(path)
        if artifact_modified is not None:
            for crl in lists:
                crl.refresh()
            if not self._is_outdated(artifact_modified, lists):
                log.debug("crl.combine_cache_hit", path=str(path), lists=len(lists))
                return path
            path.unlink(missing_ok=True)

        merged = "".join(crl.to_pem() for crl in lists)
        cache.atomic_write(path, merged.encode("ascii"))
        log.info("crl.combined", path=str(path), lists=len(lists))
        return path

    @staticmethod
    def _is_outdated(artifact_modified: datetime, lists: Sequence[RevocationList]) -> bool:
        for crl in lists:
            local = crl.local_modified()
            if local is None or artifact_modified < local:
                return True
        return False
