"""
Certificate — a parsed X.509 certificate with derived identity fields.

Uses cryptography (PyCA) for parsing and extension access. Every derived
field is computed once, at parse time; the only state that can change after
construction is the issuer link, and that can be set exactly once.

Identity used for chain linking:
  fingerprint         → Subject Key Identifier (hex)
  issuer_fingerprint  → Authority Key Identifier key id (hex)
"""

from __future__ import annotations

import weakref
from datetime import UTC, datetime
from pathlib import Path

import structlog
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.extensions import ExtensionNotFound
from cryptography.x509.oid import NameOID

from cert_trust import pem
from cert_trust.errors import CertificateParseFault, InvalidIssuerFault
from cert_trust.keys import PublicKey

log = structlog.get_logger()


# ─────────────────────── X.509 Metadata Extraction ───────────────────────


def _extract_ski(cert: x509.Certificate) -> str | None:
    """Extract Subject Key Identifier extension as hex string, or None if absent."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)
        return ext.value.digest.hex()
    except (ExtensionNotFound, ValueError):
        return None


def _extract_aki(cert: x509.Certificate) -> str | None:
    """Extract Authority Key Identifier key id as hex string, or None if absent."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier)
        if ext.value.key_identifier is not None:
            return ext.value.key_identifier.hex()
        return None
    except (ExtensionNotFound, ValueError):
        return None


def _extract_is_ca(cert: x509.Certificate) -> bool:
    try:
        ext = cert.extensions.get_extension_for_class(x509.BasicConstraints)
        return bool(ext.value.ca)
    except (ExtensionNotFound, ValueError):
        return False


def _extract_crl_uri(cert: x509.Certificate) -> str | None:
    """First URI of the first distribution point that has one; None if absent or malformed."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.CRLDistributionPoints)
    except (ExtensionNotFound, ValueError):
        return None
    for point in ext.value:
        for name in point.full_name or ():
            if isinstance(name, x509.UniformResourceIdentifier):
                return name.value
    return None


def _extract_common_name(name: x509.Name) -> str | None:
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        return None
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode("utf-8", "replace")


# ─────────────────────── Certificate ───────────────────────


class Certificate:
    """
    Parsed X.509 certificate.

    Build instances with Certificate.parse() (PEM or DER), parse_many() for
    PEM bundles, or from_file(). The issuer link is a weak reference: the
    collection that owns the chain keeps the issuers alive.
    """

    __slots__ = (
        "_x509",
        "_der",
        "_fingerprint",
        "_issuer_fingerprint",
        "_common_name",
        "_is_ca",
        "_valid_from",
        "_valid_to",
        "_crl_uri",
        "_issuer_ref",
        "__weakref__",
    )

    def __init__(self, cert: x509.Certificate) -> None:
        self._x509 = cert
        self._der = cert.public_bytes(Encoding.DER)
        self._fingerprint = _extract_ski(cert)
        self._issuer_fingerprint = _extract_aki(cert)
        if self._issuer_fingerprint is None and cert.subject == cert.issuer:
            # Self-issued roots may omit the AKI; they are their own authority.
            self._issuer_fingerprint = self._fingerprint
        self._common_name = _extract_common_name(cert.subject)
        self._is_ca = _extract_is_ca(cert)
        self._valid_from = cert.not_valid_before_utc
        self._valid_to = cert.not_valid_after_utc
        self._crl_uri = _extract_crl_uri(cert)
        self._issuer_ref: weakref.ReferenceType[Certificate] | None = None

        if self._fingerprint is None:
            log.warning(
                "certificate.missing_ski",
                subject=cert.subject.rfc4514_string(),
                serial=hex(cert.serial_number),
            )

    # ──────────────────────── Construction ────────────────────────

    @classmethod
    def parse(cls, data: bytes | str) -> Certificate:
        """
        Parse one certificate from PEM text or DER bytes.

        Raises CertificateParseFault when the input is not a certificate.
        """
        raw = data.encode("ascii", "replace") if isinstance(data, str) else data
        try:
            if pem.is_pem(raw):
                cert = x509.load_pem_x509_certificate(raw)
            else:
                cert = x509.load_der_x509_certificate(raw)
            return cls(cert)
        except ValueError as exc:
            raise CertificateParseFault(f"Input is not a well-formed certificate: {exc}") from exc

    @classmethod
    def parse_many(cls, data: bytes | str) -> list[Certificate]:
        """Parse every certificate of a PEM bundle, or the single certificate of a DER blob."""
        raw = data.encode("ascii", "replace") if isinstance(data, str) else data
        if not pem.is_pem(raw):
            return [cls.parse(raw)]
        try:
            return [cls(cert) for cert in x509.load_pem_x509_certificates(raw)]
        except ValueError as exc:
            raise CertificateParseFault(f"Input is not a well-formed certificate bundle: {exc}") from exc

    @classmethod
    def from_file(cls, path: str | Path) -> Certificate:
        return cls.parse(Path(path).read_bytes())

    # ──────────────────────── Derived fields ────────────────────────

    @property
    def der(self) -> bytes:
        return self._der

    @property
    def fingerprint(self) -> str | None:
        return self._fingerprint

    @property
    def issuer_fingerprint(self) -> str | None:
        return self._issuer_fingerprint

    @property
    def common_name(self) -> str | None:
        return self._common_name

    @property
    def subject(self) -> str:
        return self._x509.subject.rfc4514_string()

    @property
    def issuer_name(self) -> str:
        return self._x509.issuer.rfc4514_string()

    @property
    def serial_number(self) -> int:
        return self._x509.serial_number

    @property
    def valid_from(self) -> datetime:
        return self._valid_from

    @property
    def valid_to(self) -> datetime:
        return self._valid_to

    @property
    def is_ca(self) -> bool:
        return self._is_ca

    @property
    def is_self_signed(self) -> bool:
        return self._fingerprint is not None and self._fingerprint == self._issuer_fingerprint

    @property
    def crl_distribution_uri(self) -> str | None:
        return self._crl_uri

    def is_valid_now(self, now: datetime | None = None) -> bool:
        """True when valid_from <= now < valid_to."""
        now = now or datetime.now(UTC)
        return self._valid_from <= now < self._valid_to

    def public_key(self) -> PublicKey:
        return PublicKey(self._x509.public_key())

    # ──────────────────────── Issuer link ────────────────────────

    @property
    def issuer(self) -> Certificate | None:
        """The linked issuer, or None when unknown. Never inferred implicitly."""
        if self._issuer_ref is None:
            return None
        return self._issuer_ref()

    @property
    def has_issuer_link(self) -> bool:
        return self._issuer_ref is not None

    def set_issuer(self, issuer: Certificate) -> None:
        """
        Link this certificate to its issuer. The link is write-once.

        Raises InvalidIssuerFault when the issuer's fingerprint does not match
        this certificate's issuer fingerprint, when the issuer is not a CA, or
        when a link already exists.
        """
        if self._issuer_ref is not None:
            raise InvalidIssuerFault(
                f"The issuer of '{self.subject}' is already set and cannot be changed."
            )
        if issuer.fingerprint is None or issuer.fingerprint != self._issuer_fingerprint:
            raise InvalidIssuerFault(
                f"'{issuer.subject}' is not the issuer of '{self.subject}': "
                f"fingerprint {issuer.fingerprint} != {self._issuer_fingerprint}."
            )
        if not issuer.is_ca:
            raise InvalidIssuerFault(
                f"'{issuer.subject}' is not a certificate authority."
            )
        self._issuer_ref = weakref.ref(issuer)

    # ──────────────────────── Encodings ────────────────────────

    def to_pem(self) -> str:
        return pem.armor(self._der, pem.CERTIFICATE)

    def compact_base64(self) -> str:
        """Base64 body without delimiters or line breaks."""
        return pem.compact(self.to_pem())

    def __str__(self) -> str:
        return self.to_pem()

    def __repr__(self) -> str:
        return f"Certificate(subject={self.subject!r}, fingerprint={self._fingerprint!r})"
