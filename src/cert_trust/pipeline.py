"""
Pipeline — the verification workflow as a railway of Result stages.

  parse leaf
    → parse chain blobs
      → link issuers (build_chain)
        → check purpose
          → check revocation (only when the purpose check passed)
            → VerificationReport

Domain code raises TrustFault subclasses. This module is the boundary where
they become Result failures, each with the ErrorCode its fault class names.
Anything else escaping a stage is a programming error and propagates to the
execution context.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeVar

import structlog
from railway.result import Result

from cert_trust.domain.certificate import Certificate
from cert_trust.domain.chain import build_chain, walk_chain
from cert_trust.domain.models import (
    Purpose,
    TrustAnchorStore,
    TrustVerificationRequest,
    VerificationReport,
)
from cert_trust.errors import TrustFault
from cert_trust.verifier import TrustVerifier

log = structlog.get_logger()

T = TypeVar("T")


def _attempt(stage: str, computation: Callable[[], T]) -> Result[T]:
    """Run one stage, turning a TrustFault into a failure on the error track."""
    try:
        return Result.success(computation())
    except TrustFault as fault:
        log.warning(
            "pipeline.stage_failed",
            stage=stage,
            error_code=fault.error_code.value,
            error=str(fault),
        )
        return Result.failure(fault.error_code, f"{stage}: {fault}", fault)


def _parse_chain(raw_chain: Sequence[bytes]) -> list[Certificate]:
    return [cert for blob in raw_chain for cert in Certificate.parse_many(blob)]


def _link(leaf: Certificate, chain: list[Certificate]) -> list[Certificate]:
    # The returned list owns every certificate; issuer links are weak references.
    certificates = [leaf, *chain]
    build_chain(certificates)
    return certificates


def verify_request(
    request: TrustVerificationRequest,
    verifier: TrustVerifier,
) -> VerificationReport:
    """
    Run the purpose check and, if it passes and was asked for, the revocation check.

    The leaf must already be linked into its chain. Raises TrustFault
    subclasses when a verdict cannot be reached.
    """
    leaf = request.leaf
    purpose_ok = verifier.check_purpose(leaf, request.purpose, request.anchors)
    not_revoked: bool | None = None
    if purpose_ok and request.check_crl:
        not_revoked = verifier.check_crl(leaf, request.anchors, request.check_all)
    return VerificationReport(
        fingerprint=leaf.fingerprint,
        common_name=leaf.common_name,
        purpose=request.purpose,
        chain_length=len(walk_chain(leaf)),
        purpose_ok=purpose_ok,
        not_revoked=not_revoked,
    )


def run_verification(
    raw_leaf: bytes,
    raw_chain: Sequence[bytes],
    purpose: Purpose,
    anchors: TrustAnchorStore,
    verifier: TrustVerifier,
    check_crl: bool = True,
    check_all: bool = False,
) -> Result[VerificationReport]:
    """
    Decide whether the leaf certificate can be trusted.

    `raw_chain` holds extra certificate blobs (PEM bundles or single DER
    certificates) that may complete the path to a root.

    Returns Result[VerificationReport] on a verdict, trusted or not, or the
    failure of the first stage that could not reach one.
    """

    def verify(certificates: list[Certificate]) -> Result[VerificationReport]:
        request = TrustVerificationRequest(
            leaf=certificates[0],
            purpose=purpose,
            anchors=anchors,
            check_crl=check_crl,
            check_all=check_all,
        )
        return _attempt("verify", lambda: verify_request(request, verifier))

    return (
        _attempt("parse_leaf", lambda: Certificate.parse(raw_leaf))
        .flat_map(
            lambda leaf: _attempt("parse_chain", lambda: _parse_chain(raw_chain)).flat_map(
                lambda chain: _attempt("build_chain", lambda: _link(leaf, chain))
            )
        )
        .flat_map(verify)
        .peek(
            lambda report: log.info(
                "pipeline.completed",
                subject=report.common_name,
                purpose=report.purpose.value,
                purpose_ok=report.purpose_ok,
                not_revoked=report.not_revoked,
                trusted=report.trusted,
            )
        )
    )
