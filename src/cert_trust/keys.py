"""
Key handles — thin wrappers over cryptography key objects.

Signing, verification, encryption and decryption are single calls into
cryptography; what these wrappers add is an explicit lifetime. close()
drops the underlying key and every later use raises ResourceReleasedFault.
Both classes are context managers that close on exit.
"""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import Self

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.types import (
    PrivateKeyTypes,
    PublicKeyTypes,
)

from cert_trust.errors import (
    DecryptionFault,
    PrivateKeyDecryptionFault,
    ResourceReleasedFault,
    UnsupportedDigestFault,
)

DEFAULT_ALGORITHM = "sha256"

_DIGESTS: dict[str, type[hashes.HashAlgorithm]] = {
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
    "sha3224": hashes.SHA3_224,
    "sha3256": hashes.SHA3_256,
    "sha3384": hashes.SHA3_384,
    "sha3512": hashes.SHA3_512,
}


def digest_for(algorithm: str) -> hashes.HashAlgorithm:
    """
    Resolve a digest name such as "sha256", "SHA-256" or "RSA-SHA256".

    Raises UnsupportedDigestFault for anything else.
    """
    name = algorithm.lower()
    for prefix in ("rsa-", "ecdsa-with-", "ecdsa-", "dsa-"):
        name = name.removeprefix(prefix)
    name = name.replace("-", "").replace("_", "")
    try:
        return _DIGESTS[name]()
    except KeyError:
        raise UnsupportedDigestFault(
            f"The digest algorithm '{algorithm}' is not supported."
        ) from None


class _KeyHandle:
    """Shared lifetime handling for public and private key wrappers."""

    _kind = "key"

    def __init__(self, key: object) -> None:
        self._key: object | None = key

    @property
    def closed(self) -> bool:
        return self._key is None

    def close(self) -> None:
        self._key = None

    def _require(self) -> object:
        if self._key is None:
            raise ResourceReleasedFault(f"This {self._kind} has been released.")
        return self._key

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class PublicKey(_KeyHandle):
    """Public key taken from a certificate or loaded from PEM."""

    _kind = "public key"

    def __init__(self, key: PublicKeyTypes) -> None:
        super().__init__(key)

    @classmethod
    def from_pem(cls, data: bytes) -> PublicKey:
        try:
            return cls(serialization.load_pem_public_key(data))
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise DecryptionFault(f"Not a valid public key: {exc}") from exc

    @property
    def key(self) -> PublicKeyTypes:
        return self._require()  # type: ignore[return-value]

    def verify(self, data: bytes, signature: bytes, algorithm: str = DEFAULT_ALGORITHM) -> bool:
        """True when `signature` is a valid signature of `data` by this key."""
        key = self.key
        digest = digest_for(algorithm)
        try:
            match key:
                case rsa.RSAPublicKey():
                    key.verify(signature, data, padding.PKCS1v15(), digest)
                case ec.EllipticCurvePublicKey():
                    key.verify(signature, data, ec.ECDSA(digest))
                case dsa.DSAPublicKey():
                    key.verify(signature, data, digest)
                case ed25519.Ed25519PublicKey() | ed448.Ed448PublicKey():
                    key.verify(signature, data)
                case _:
                    raise UnsupportedDigestFault(f"{type(key).__name__} cannot verify signatures.")
        except InvalidSignature:
            return False
        return True

    def encrypt(self, data: bytes) -> bytes:
        key = self.key
        if not isinstance(key, rsa.RSAPublicKey):
            raise DecryptionFault(f"{type(key).__name__} cannot encrypt.")
        return key.encrypt(data, padding.PKCS1v15())

    def decrypt(self, data: bytes) -> bytes:
        """Recover data that the matching private key transformed with PKCS#1 v1.5 signing."""
        key = self.key
        if not isinstance(key, rsa.RSAPublicKey):
            raise DecryptionFault(f"{type(key).__name__} cannot decrypt.")
        try:
            return key.recover_data_from_signature(data, padding.PKCS1v15(), None)
        except InvalidSignature as exc:
            raise DecryptionFault("Failed decrypting the data with this public key.") from exc


class PrivateKey(_KeyHandle):
    """Private key loaded from PEM, optionally passphrase protected."""

    _kind = "private key"

    def __init__(self, key: PrivateKeyTypes) -> None:
        super().__init__(key)

    @classmethod
    def from_pem(cls, data: bytes, passphrase: str | bytes | None = None) -> PrivateKey:
        """
        Load a PEM private key.

        Raises PrivateKeyDecryptionFault on a wrong passphrase or mangled input.
        """
        password = passphrase.encode("utf-8") if isinstance(passphrase, str) else passphrase
        try:
            return cls(serialization.load_pem_private_key(data, password=password or None))
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise PrivateKeyDecryptionFault(
                "Could not decrypt the private key, the passphrase is incorrect, "
                "its contents are mangled or it is not a valid private key."
            ) from exc

    @classmethod
    def from_file(cls, path: str | Path, passphrase: str | bytes | None = None) -> PrivateKey:
        return cls.from_pem(Path(path).read_bytes(), passphrase)

    @property
    def key(self) -> PrivateKeyTypes:
        return self._require()  # type: ignore[return-value]

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.public_key())

    def sign(self, data: bytes, algorithm: str = DEFAULT_ALGORITHM) -> bytes:
        """Sign `data`; Ed25519/Ed448 keys ignore `algorithm`."""
        key = self.key
        match key:
            case rsa.RSAPrivateKey():
                return key.sign(data, padding.PKCS1v15(), digest_for(algorithm))
            case ec.EllipticCurvePrivateKey():
                return key.sign(data, ec.ECDSA(digest_for(algorithm)))
            case dsa.DSAPrivateKey():
                return key.sign(data, digest_for(algorithm))
            case ed25519.Ed25519PrivateKey() | ed448.Ed448PrivateKey():
                return key.sign(data)
        raise UnsupportedDigestFault(f"{type(key).__name__} cannot sign.")

    def decrypt(self, data: bytes) -> bytes:
        key = self.key
        if not isinstance(key, rsa.RSAPrivateKey):
            raise DecryptionFault(f"{type(key).__name__} cannot decrypt.")
        try:
            return key.decrypt(data, padding.PKCS1v15())
        except ValueError as exc:
            raise DecryptionFault("Failed decrypting the data with this private key.") from exc
