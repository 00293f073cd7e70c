"""
Fault taxonomy — every way trust establishment can fail to reach a verdict.

A fault means "could not determine", never "untrusted": verification
operations return False for a definitive negative answer and raise one of
these when the answer is unknown. Each fault names the railway ErrorCode it
becomes when the orchestration pipeline converts it into a Result.
"""

from __future__ import annotations

from typing import ClassVar

from railway import ErrorCode


class TrustFault(Exception):
    """Base class for all faults raised by cert_trust."""

    error_code: ClassVar[ErrorCode] = ErrorCode.UNKNOWN_ERROR


class CertificateParseFault(TrustFault):
    """Input bytes are not a well-formed PEM or DER X.509 certificate."""

    error_code = ErrorCode.VALIDATION_ERROR


class InvalidIssuerFault(TrustFault):
    """Issuer fingerprint mismatch, non-CA issuer, or an attempt to re-link."""

    error_code = ErrorCode.BUSINESS_RULE_ERROR


class CRLFetchFault(TrustFault):
    """The CRL could not be read from its source URI."""

    error_code = ErrorCode.EXTERNAL_SERVICE_ERROR


class CRLParseFault(CRLFetchFault):
    """The fetched (or cached) bytes are not a parseable CRL."""


class CRLWriteFault(TrustFault):
    """A CRL cache file or combined artifact could not be written."""

    error_code = ErrorCode.TECHNICAL_ERROR


class CRLCheckFault(TrustFault):
    """Revocation checking cannot proceed: incomplete or cyclic chain, missing CDP."""

    error_code = ErrorCode.BUSINESS_RULE_ERROR


class VerificationFault(TrustFault):
    """The external verification engine could not be invoked."""

    error_code = ErrorCode.CONFIGURATION_ERROR


# ─────────────────────── Key material ───────────────────────


class KeyStoreLockedFault(TrustFault):
    """Contents of a PKCS#12 keystore were accessed while it is locked."""

    error_code = ErrorCode.BUSINESS_RULE_ERROR


class KeyStoreDecryptionFault(TrustFault):
    """Wrong passphrase, mangled contents, or not a PKCS#12 keystore."""

    error_code = ErrorCode.VALIDATION_ERROR


class PrivateKeyDecryptionFault(TrustFault):
    """Wrong passphrase, mangled contents, or not a private key."""

    error_code = ErrorCode.VALIDATION_ERROR


class DecryptionFault(TrustFault):
    error_code = ErrorCode.VALIDATION_ERROR


class UnsupportedDigestFault(TrustFault):
    error_code = ErrorCode.VALIDATION_ERROR


class ResourceReleasedFault(TrustFault):
    """A key handle was used after it was explicitly released."""

    error_code = ErrorCode.BUSINESS_RULE_ERROR
