"""
PKCS#12 keystore with an explicit locked/unlocked lifecycle.

Decryption of the container is delegated to cryptography's pkcs12 module.
While locked, every accessor raises KeyStoreLockedFault. lock() releases the
private key handle, so references handed out earlier fail with
ResourceReleasedFault instead of silently working on stale key material.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog
from cryptography.hazmat.primitives.serialization import pkcs12

from cert_trust.domain.certificate import Certificate
from cert_trust.errors import KeyStoreDecryptionFault, KeyStoreLockedFault
from cert_trust.keys import PrivateKey, PublicKey

log = structlog.get_logger()

_LOCKED_MESSAGE = "The keystore you are trying to access is locked."


class PKCS12KeyStore:
    """Certificate, private key and extra CA certificates from one PKCS#12 blob."""

    def __init__(self, contents: bytes) -> None:
        self._contents = contents
        self._certificate: Certificate | None = None
        self._private_key: PrivateKey | None = None
        self._additional: list[Certificate] = []
        self._locked = True

    @classmethod
    def from_file(cls, path: str | Path) -> PKCS12KeyStore:
        """Raises FileNotFoundError / PermissionError when the file cannot be read."""
        return cls(Path(path).read_bytes())

    @property
    def locked(self) -> bool:
        return self._locked

    def unlock(self, passphrase: str | bytes | None = None) -> None:
        """
        Decrypt the container.

        Raises KeyStoreDecryptionFault on a wrong passphrase, mangled contents,
        or a container without both a certificate and a private key.
        """
        password = passphrase.encode("utf-8") if isinstance(passphrase, str) else passphrase
        try:
            key, cert, additional = pkcs12.load_key_and_certificates(self._contents, password)
        except (ValueError, TypeError) as exc:
            raise KeyStoreDecryptionFault(
                "Could not decrypt the keystore, the passphrase is incorrect, "
                "its contents are mangled or it is not a valid PKCS #12 keystore."
            ) from exc
        if key is None or cert is None:
            raise KeyStoreDecryptionFault("The keystore does not hold both a certificate and a private key.")

        self._certificate = Certificate(cert)
        self._private_key = PrivateKey(key)
        self._additional = [Certificate(extra) for extra in additional]
        self._locked = False
        log.debug("keystore.unlocked", subject=self._certificate.subject)

    def lock(self) -> None:
        """Release the decrypted contents. Safe to call on a locked store."""
        if self._private_key is not None:
            self._private_key.close()
        self._private_key = None
        self._certificate = None
        self._additional = []
        self._locked = True

    @contextmanager
    def unlocked(self, passphrase: str | bytes | None = None) -> Iterator[PKCS12KeyStore]:
        """Unlock for the duration of a with-block; locks again on every exit path."""
        self.unlock(passphrase)
        try:
            yield self
        finally:
            self.lock()

    def _require_unlocked(self) -> None:
        if self._locked:
            raise KeyStoreLockedFault(_LOCKED_MESSAGE)

    @property
    def certificate(self) -> Certificate:
        if self._locked or self._certificate is None:
            raise KeyStoreLockedFault(_LOCKED_MESSAGE)
        return self._certificate

    @property
    def private_key(self) -> PrivateKey:
        if self._locked or self._private_key is None:
            raise KeyStoreLockedFault(_LOCKED_MESSAGE)
        return self._private_key

    @property
    def public_key(self) -> PublicKey:
        return self.certificate.public_key()

    @property
    def additional_certificates(self) -> list[Certificate]:
        self._require_unlocked()
        return list(self._additional)
