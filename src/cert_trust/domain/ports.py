"""
Ports — Protocol-based interfaces for the external collaborators.

  Domain ← Ports (protocols) ← Adapters (implementations)

Two collaborators sit outside the core:
  - CrlFetcher: byte-for-byte retrieval of a CRL by URI
  - VerificationEngine: the thing that actually evaluates chains, purposes
    and revocation (OpenSSL in production, fakes in tests)

Both report problems by raising the faults in cert_trust.errors. Engines
return False for a definitive negative answer.

Every engine method accepts `untrusted`: intermediate certificates that may
be used to build the path but are not trust anchors.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cert_trust.domain.models import Purpose, TrustAnchorStore

if TYPE_CHECKING:
    from cert_trust.domain.certificate import Certificate


@runtime_checkable
class CrlFetcher(Protocol):
    """
    Port: fetch the raw bytes of a CRL.

    Raises CRLFetchFault when the source cannot be read. Never returns
    partial data.
    """

    def fetch(self, uri: str) -> bytes: ...


@runtime_checkable
class VerificationEngine(Protocol):
    """
    Port: evaluate trust for a certificate against trust anchors.

    Raises VerificationFault when the engine itself cannot be run.
    """

    def verify_purpose(
        self,
        certificate: Certificate,
        purpose: Purpose,
        anchors: TrustAnchorStore,
        untrusted: Sequence[Certificate] = (),
    ) -> bool:
        """Native purpose check for every purpose except Purpose.ANY."""
        ...

    def verify_any_purpose(
        self,
        certificate: Certificate,
        anchors: TrustAnchorStore,
        untrusted: Sequence[Certificate] = (),
    ) -> bool:
        """Dedicated path for Purpose.ANY."""
        ...

    def verify_revocation(
        self,
        certificate: Certificate,
        anchors: TrustAnchorStore,
        check_all: bool,
        untrusted: Sequence[Certificate] = (),
    ) -> bool:
        """
        Chain verification with CRL checking.

        `anchors` already contains the combined CRL artifact. `check_all`
        selects full-chain checking instead of leaf-only checking.
        """
        ...
