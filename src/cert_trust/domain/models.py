"""
Domain models — immutable value objects for trust verification.

These carry no I/O. Certificates live in domain.certificate because they own
the one piece of mutable state in the domain (the write-once issuer link);
everything here is a frozen dataclass or an enum.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, unique
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cert_trust.domain.certificate import Certificate


@unique
class Purpose(Enum):
    """
    Purposes a certificate can be verified for.

    Values are the purpose names understood by `openssl verify -purpose`.
    """

    SSL_CLIENT = "sslclient"
    SSL_SERVER = "sslserver"
    NS_SSL_SERVER = "nssslserver"
    SMIME_SIGN = "smimesign"
    SMIME_ENCRYPT = "smimeencrypt"
    CRL_SIGN = "crlsign"
    ANY = "any"


@dataclass(frozen=True, slots=True)
class TrustAnchorStore:
    """
    Caller-supplied files and directories holding trusted certificates (and CRLs).

    The store is opaque to the domain: it is handed to the verification engine
    as-is, in the order given.
    """

    paths: tuple[Path, ...] = ()

    @classmethod
    def from_paths(cls, paths: Iterable[str | Path]) -> TrustAnchorStore:
        return cls(tuple(Path(p) for p in paths))

    @property
    def directories(self) -> tuple[Path, ...]:
        return tuple(p for p in self.paths if p.is_dir())

    @property
    def files(self) -> tuple[Path, ...]:
        """Everything that is not an existing directory, missing paths included."""
        return tuple(p for p in self.paths if not p.is_dir())

    def with_file(self, path: Path) -> TrustAnchorStore:
        """A new store with `path` appended to the file list."""
        return TrustAnchorStore((*self.paths, path))


@dataclass(frozen=True, slots=True)
class CrlMetadata:
    """Fields parsed once from a cached CRL copy."""

    last_update: datetime
    next_update: datetime | None
    hash: str
    fingerprint: str
    crl_number: int | None
    issuer: str


@dataclass(frozen=True, slots=True)
class TrustVerificationRequest:
    """
    Everything needed to decide whether one leaf certificate can be trusted.

    When `check_all` is set the leaf must be linked (see domain.chain) all the
    way up to a self-signed root.
    """

    leaf: Certificate
    purpose: Purpose = Purpose.ANY
    anchors: TrustAnchorStore = field(default_factory=TrustAnchorStore)
    check_crl: bool = True
    check_all: bool = False


@dataclass(frozen=True, slots=True)
class VerificationReport:
    """Outcome of a verification run. `not_revoked` is None when revocation was not checked."""

    fingerprint: str | None
    common_name: str | None
    purpose: Purpose
    chain_length: int
    purpose_ok: bool
    not_revoked: bool | None = None

    @property
    def revocation_checked(self) -> bool:
        return self.not_revoked is not None

    @property
    def trusted(self) -> bool:
        return self.purpose_ok and self.not_revoked is not False
