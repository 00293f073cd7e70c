"""
Chain construction — linking certificates to their issuers by fingerprint.

build_chain() mutates the write-once issuer link of every certificate it can
resolve. walk_chain() follows those links upward and is the only place that
traverses them; it refuses to loop.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from cert_trust.domain.certificate import Certificate
from cert_trust.errors import CRLCheckFault

log = structlog.get_logger()


def build_chain(certificates: Iterable[Certificate]) -> None:
    """
    Link each certificate to the first candidate whose fingerprint matches its issuer fingerprint.

    Self-signed certificates are never linked to themselves, and certificates
    already linked are left untouched, so calling this twice on the same set
    is harmless. Candidate selection is a plain O(n²) scan; chains are short.

    Raises InvalidIssuerFault when the first matching candidate is not a CA.
    """
    pool = list(certificates)
    for certificate in pool:
        if certificate.has_issuer_link or certificate.is_self_signed:
            continue
        wanted = certificate.issuer_fingerprint
        if wanted is None:
            continue
        for candidate in pool:
            if candidate is not certificate and candidate.fingerprint == wanted:
                certificate.set_issuer(candidate)
                log.debug(
                    "chain.linked",
                    subject=certificate.subject,
                    issuer=candidate.subject,
                )
                break


def walk_chain(certificate: Certificate) -> list[Certificate]:
    """
    Return the certificate followed by its linked ancestors.

    Stops at the first self-signed certificate (included) or at the first
    missing link. Raises CRLCheckFault if the links form a cycle.
    """
    chain = [certificate]
    seen = {id(certificate)}
    current = certificate
    while not current.is_self_signed:
        issuer = current.issuer
        if issuer is None:
            break
        if id(issuer) in seen:
            raise CRLCheckFault(
                f"Issuer links of '{certificate.subject}' form a cycle at '{issuer.subject}'."
            )
        seen.add(id(issuer))
        chain.append(issuer)
        current = issuer
    return chain


def reaches_root(chain: list[Certificate]) -> bool:
    return chain[-1].is_self_signed
