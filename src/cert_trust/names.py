"""
OpenSSL-compatible distinguished name hashing.

OpenSSL names hashed certificate directories and reports `openssl crl -hash`
using X509_NAME_hash: the SHA-1 of a canonical re-encoding of the name,
truncated to its first four bytes read little-endian.

Canonical encoding, per RDN in order:
  - string values are converted to UTF8String, trimmed, runs of whitespace
    collapsed to one space, and ASCII letters lowercased;
  - every RDN is re-encoded as a DER SET OF AttributeTypeAndValue, members
    sorted by their canonical encoding;
  - the RDN encodings are concatenated with no outer SEQUENCE header.

asn1crypto does the DER work; the name arrives as the DER bytes produced
by `cryptography`'s Name.public_bytes().
"""

from __future__ import annotations

import hashlib

from asn1crypto import core
from asn1crypto import x509 as asn1_x509

_CANONICAL_STRING_TYPES = (
    core.UTF8String,
    core.BMPString,
    core.UniversalString,
    core.PrintableString,
    core.TeletexString,
    core.IA5String,
    core.VisibleString,
)


class _CanonicalAttribute(core.Sequence):  # type: ignore[misc]
    """AttributeTypeAndValue with an untyped value slot."""

    _fields = [
        ("type", core.ObjectIdentifier),
        ("value", core.Any),
    ]


class _CanonicalRdn(core.SetOf):  # type: ignore[misc]
    _child_spec = _CanonicalAttribute


def _normalize(text: str) -> str:
    collapsed = " ".join(text.split())
    return "".join(ch.lower() if ch.isascii() else ch for ch in collapsed)


def _canonical_value(value: core.Asn1Value) -> core.Any:
    if isinstance(value, core.Choice):
        value = value.chosen
    if isinstance(value, _CANONICAL_STRING_TYPES):
        value = core.UTF8String(_normalize(value.native))
    return core.Any.load(value.dump())


def canonical_name_bytes(name_der: bytes) -> bytes:
    """Canonical encoding of a DER Name as OpenSSL builds it for hashing."""
    name = asn1_x509.Name.load(name_der)
    encoded: list[bytes] = []
    for rdn in name.chosen:
        attributes = [
            _CanonicalAttribute(
                {"type": attribute["type"].dotted, "value": _canonical_value(attribute["value"])}
            )
            for attribute in rdn
        ]
        # DER orders SET OF members by their encodings, as OpenSSL does for multi-valued RDNs.
        attributes.sort(key=lambda attribute: attribute.dump())
        encoded.append(_CanonicalRdn(attributes).dump())
    return b"".join(encoded)


def openssl_name_hash(name_der: bytes) -> str:
    """Eight lowercase hex digits, identical to `openssl x509 -subject_hash` output."""
    digest = hashlib.sha1(canonical_name_bytes(name_der)).digest()
    return f"{int.from_bytes(digest[:4], 'little'):08x}"
