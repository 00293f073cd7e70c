"""
Shared test fixtures and helpers for the cert-trust test suite.

Certificates, CRLs and PKCS#12 bundles are generated at test time with
cryptography builders, so no binary fixtures are checked in. The default
hierarchy is:

  Test Root CA (self-signed, SKI == AKI)
    └── Test Intermediate CA   CRL: http://crl.test/root.crl
          └── leaf.test        CRL: http://crl.test/intermediate.crl
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from cert_trust.domain.certificate import Certificate
from cert_trust.domain.models import Purpose, TrustAnchorStore
from cert_trust.errors import CRLFetchFault

ROOT_CRL_URI = "http://crl.test/root.crl"
INTERMEDIATE_CRL_URI = "http://crl.test/intermediate.crl"

NOW = datetime.now(UTC).replace(microsecond=0)


@dataclass
class Issued:
    """A generated certificate together with its private key."""

    cert: x509.Certificate
    key: ec.EllipticCurvePrivateKey

    @property
    def pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)

    @property
    def der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)

    @property
    def serial(self) -> int:
        return self.cert.serial_number


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "ES"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Cert Trust Tests"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


def make_certificate(
    common_name: str,
    issuer: Issued | None = None,
    *,
    is_ca: bool = False,
    crl_uri: str | None = None,
    with_ski: bool = True,
    with_aki: bool = True,
    server_only: bool = False,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
) -> Issued:
    """
    Build an EC P-256 certificate.

    Without `issuer` the certificate is self-signed. `server_only` restricts
    the extended key usage to serverAuth.
    """
    key = ec.generate_private_key(ec.SECP256R1())
    subject = _name(common_name)
    signer_key = issuer.key if issuer else key
    signer_name = issuer.cert.subject if issuer else subject

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(signer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or NOW - timedelta(days=1))
        .not_valid_after(not_after or NOW + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
    )
    if is_ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    else:
        usages = [ExtendedKeyUsageOID.SERVER_AUTH]
        if not server_only:
            usages.append(ExtendedKeyUsageOID.CLIENT_AUTH)
        builder = builder.add_extension(x509.ExtendedKeyUsage(usages), critical=False)
    if with_ski:
        builder = builder.add_extension(
            x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False
        )
    if with_aki:
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signer_key.public_key()),
            critical=False,
        )
    if crl_uri:
        builder = builder.add_extension(
            x509.CRLDistributionPoints(
                [
                    x509.DistributionPoint(
                        full_name=[x509.UniformResourceIdentifier(crl_uri)],
                        relative_name=None,
                        reasons=None,
                        crl_issuer=None,
                    )
                ]
            ),
            critical=False,
        )
    return Issued(builder.sign(signer_key, hashes.SHA256()), key)


def make_crl(
    issuer: Issued,
    revoked: Iterable[int] = (),
    *,
    last_update: datetime | None = None,
    next_update: datetime | None = None,
    crl_number: int | None = 1,
) -> bytes:
    """DER CRL signed by `issuer`, revoking the given serial numbers."""
    builder = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(issuer.cert.subject)
        .last_update(last_update or NOW - timedelta(hours=1))
        .next_update(next_update or NOW + timedelta(days=7))
    )
    if crl_number is not None:
        builder = builder.add_extension(x509.CRLNumber(crl_number), critical=False)
    for serial in revoked:
        builder = builder.add_revoked_certificate(
            x509.RevokedCertificateBuilder()
            .serial_number(serial)
            .revocation_date(NOW - timedelta(minutes=30))
            .build()
        )
    crl = builder.sign(issuer.key, hashes.SHA256())
    return crl.public_bytes(serialization.Encoding.DER)


def make_pkcs12(
    issued: Issued,
    passphrase: bytes | None = b"secret",
    cas: Sequence[Issued] = (),
) -> bytes:
    encryption: serialization.KeySerializationEncryption = (
        serialization.BestAvailableEncryption(passphrase)
        if passphrase
        else serialization.NoEncryption()
    )
    return pkcs12.serialize_key_and_certificates(
        b"cert-trust",
        issued.key,
        issued.cert,
        [ca.cert for ca in cas] or None,
        encryption,
    )


class FakeCrlFetcher:
    """CrlFetcher serving canned bytes and recording every call."""

    def __init__(self, responses: dict[str, bytes] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[str] = []

    def fetch(self, uri: str) -> bytes:
        self.calls.append(uri)
        try:
            return self.responses[uri]
        except KeyError:
            raise CRLFetchFault(f"Unable to fetch the CRL at {uri}") from None


class FakeEngine:
    """
    VerificationEngine returning a fixed verdict and recording every call.

    Purpose checks are recorded as ("any",) or ("purpose", purpose); the
    untrusted certificates they received go to `purpose_untrusted`.
    Revocation checks are recorded as ("revocation", anchors, check_all, untrusted).
    """

    def __init__(self, verdict: bool = True) -> None:
        self.verdict = verdict
        self.calls: list[tuple[object, ...]] = []
        self.purpose_untrusted: list[list[Certificate]] = []

    def verify_purpose(
        self,
        certificate: Certificate,
        purpose: Purpose,
        anchors: TrustAnchorStore,
        untrusted: Sequence[Certificate] = (),
    ) -> bool:
        self.calls.append(("purpose", purpose))
        self.purpose_untrusted.append(list(untrusted))
        return self.verdict

    def verify_any_purpose(
        self,
        certificate: Certificate,
        anchors: TrustAnchorStore,
        untrusted: Sequence[Certificate] = (),
    ) -> bool:
        self.calls.append(("any",))
        self.purpose_untrusted.append(list(untrusted))
        return self.verdict

    def verify_revocation(
        self,
        certificate: Certificate,
        anchors: TrustAnchorStore,
        check_all: bool,
        untrusted: Sequence[Certificate] = (),
    ) -> bool:
        self.calls.append(("revocation", anchors, check_all, list(untrusted)))
        return self.verdict


# ─────────────────────── Fixtures ───────────────────────


@pytest.fixture(scope="session")
def root() -> Issued:
    return make_certificate("Test Root CA", is_ca=True)


@pytest.fixture(scope="session")
def intermediate(root: Issued) -> Issued:
    return make_certificate(
        "Test Intermediate CA", root, is_ca=True, crl_uri=ROOT_CRL_URI
    )


@pytest.fixture(scope="session")
def leaf(intermediate: Issued) -> Issued:
    return make_certificate("leaf.test", intermediate, crl_uri=INTERMEDIATE_CRL_URI)


@pytest.fixture()
def cache_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "cache"
    directory.mkdir()
    return directory


@pytest.fixture()
def fetcher(root: Issued, intermediate: Issued) -> FakeCrlFetcher:
    return FakeCrlFetcher(
        {
            ROOT_CRL_URI: make_crl(root),
            INTERMEDIATE_CRL_URI: make_crl(intermediate),
        }
    )
