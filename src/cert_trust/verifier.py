"""
TrustVerifier — purpose and revocation checks for one certificate.

Delegates the actual evaluation to a VerificationEngine. What it owns:
  - routing Purpose.ANY to the engine's dedicated path
  - gathering the CRLs of the certificate (and, for full-chain checks, of
    every ancestor below the self-signed root)
  - combining those CRLs into one artifact and appending it to the anchors
  - handing linked intermediates to the engine as untrusted material

Both checks return a strict bool. False means "definitively untrusted";
faults mean "could not determine".
"""

from __future__ import annotations

import structlog

from cert_trust.domain.certificate import Certificate
from cert_trust.domain.chain import reaches_root, walk_chain
from cert_trust.domain.models import Purpose, TrustAnchorStore
from cert_trust.domain.ports import VerificationEngine
from cert_trust.errors import CRLCheckFault
from cert_trust.revocation import (
    RevocationList,
    RevocationListCombiner,
    RevocationListRegistry,
)

log = structlog.get_logger()


def _intermediates(certificate: Certificate) -> list[Certificate]:
    """Linked ancestors below the root, handed to the engine as untrusted material."""
    return [c for c in walk_chain(certificate)[1:] if not c.is_self_signed]


class TrustVerifier:
    """Orchestrates purpose and revocation checking against a VerificationEngine."""

    def __init__(
        self,
        engine: VerificationEngine,
        registry: RevocationListRegistry,
        combiner: RevocationListCombiner,
    ) -> None:
        self._engine = engine
        self._registry = registry
        self._combiner = combiner

    def check_purpose(
        self,
        certificate: Certificate,
        purpose: Purpose,
        anchors: TrustAnchorStore,
    ) -> bool:
        """Raises VerificationFault when the engine cannot be run."""
        try:
            untrusted = _intermediates(certificate)
        except CRLCheckFault as fault:
            # A looping chain has no usable intermediates; the engine builds its own path.
            log.warning("verifier.chain_unusable", subject=certificate.subject, error=str(fault))
            untrusted = []
        if purpose is Purpose.ANY:
            trusted = self._engine.verify_any_purpose(certificate, anchors, untrusted)
        else:
            trusted = self._engine.verify_purpose(certificate, purpose, anchors, untrusted)
        log.info(
            "verifier.purpose_checked",
            subject=certificate.subject,
            purpose=purpose.value,
            trusted=trusted,
        )
        return bool(trusted)

    def revocation_lists(self, certificate: Certificate, check_all: bool = False) -> list[RevocationList]:
        """
        CRLs to consult, leaf first.

        With `check_all`, the chain must be linked up to a self-signed root;
        each certificate below the root contributes its CRL.
        """
        certificates = [certificate]
        if check_all:
            chain = walk_chain(certificate)
            if not reaches_root(chain):
                raise CRLCheckFault(
                    f"Incomplete chain: could not find the root of '{certificate.subject}', "
                    f"the issuer of '{chain[-1].subject}' is not linked."
                )
            certificates.extend(chain[1:-1])

        lists: list[RevocationList] = []
        for cert in certificates:
            uri = cert.crl_distribution_uri
            if uri is None:
                raise CRLCheckFault(f"'{cert.subject}' has no CRL distribution point.")
            lists.append(self._registry.get(uri))
        return lists

    def check_crl(
        self,
        certificate: Certificate,
        anchors: TrustAnchorStore,
        check_all: bool = False,
    ) -> bool:
        """
        Check whether the certificate, or with `check_all` any ancestor, has been revoked.

        Raises CRLCheckFault for an incomplete or cyclic chain or a missing
        distribution point, CRLFetchFault / CRLWriteFault for cache problems,
        and VerificationFault when the engine cannot be run.
        """
        lists = self.revocation_lists(certificate, check_all)
        artifact = self._combiner.combine(lists)
        untrusted = _intermediates(certificate)
        not_revoked = self._engine.verify_revocation(
            certificate,
            anchors.with_file(artifact),
            check_all,
            untrusted,
        )
        log.info(
            "verifier.crl_checked",
            subject=certificate.subject,
            check_all=check_all,
            crls=len(lists),
            not_revoked=not_revoked,
        )
        return bool(not_revoked)
