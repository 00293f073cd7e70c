"""
OpenSSL verification engine — `openssl verify` driven through subprocess.

Adapter layer — implements the VerificationEngine port.

Every call runs in a private temporary directory holding:
  leaf.pem       the certificate under test
  trusted.pem    all anchor files, plus the PEM files found in anchor
                 directories, concatenated (`openssl verify` honours only the
                 last -CAfile/-CApath it is given, so several anchors have to
                 travel as one bundle)
  untrusted.pem  optional intermediates that may complete the path

A run counts as success only when the exit status is 0 and the first output
line is exactly "<leaf path>: OK". Any other outcome is a definitive False.
Failing to start the binary at all is a VerificationFault.
"""

from __future__ import annotations

import subprocess
import tempfile
from collections.abc import Iterable, Sequence
from pathlib import Path

import structlog

from cert_trust.domain.certificate import Certificate
from cert_trust.domain.models import Purpose, TrustAnchorStore
from cert_trust.errors import VerificationFault

log = structlog.get_logger()

_ANCHOR_SUFFIXES = frozenset({".pem", ".crt", ".cer", ".crl"})


def _is_hashed_name(path: Path) -> bool:
    """c_rehash style names: 8 hex digits, a dot, optional 'r', a counter."""
    stem, _, counter = path.name.partition(".")
    return (
        len(stem) == 8
        and all(c in "0123456789abcdef" for c in stem)
        and counter.removeprefix("r").isdigit()
    )


def _directory_entries(directory: Path) -> Iterable[Path]:
    for entry in sorted(directory.iterdir()):
        if entry.is_file() and (entry.suffix.lower() in _ANCHOR_SUFFIXES or _is_hashed_name(entry)):
            yield entry


def bundle_anchors(anchors: TrustAnchorStore) -> bytes:
    """
    Concatenate every PEM anchor into one bundle, in store order.

    Files are read as given (a missing file raises OSError). Directory
    entries without a PEM block are skipped.
    """
    chunks: list[bytes] = []
    for path in anchors.paths:
        if path.is_dir():
            for entry in _directory_entries(path):
                data = entry.read_bytes()
                if b"-----BEGIN" in data:
                    chunks.append(data if data.endswith(b"\n") else data + b"\n")
        else:
            data = path.read_bytes()
            chunks.append(data if data.endswith(b"\n") else data + b"\n")
    return b"".join(chunks)


class OpenSslVerificationEngine:
    """
    Verification engine backed by the `openssl` command line tool.

    Implements the VerificationEngine port. Both purpose paths run
    `openssl verify -purpose <name>`; Purpose.ANY keeps its own entry point.
    """

    def __init__(self, binary: str = "openssl") -> None:
        self._binary = binary

    def verify_purpose(
        self,
        certificate: Certificate,
        purpose: Purpose,
        anchors: TrustAnchorStore,
        untrusted: Sequence[Certificate] = (),
    ) -> bool:
        return self._verify(certificate, anchors, ["-purpose", purpose.value], untrusted)

    def verify_any_purpose(
        self,
        certificate: Certificate,
        anchors: TrustAnchorStore,
        untrusted: Sequence[Certificate] = (),
    ) -> bool:
        return self._verify(certificate, anchors, ["-purpose", Purpose.ANY.value], untrusted)

    def verify_revocation(
        self,
        certificate: Certificate,
        anchors: TrustAnchorStore,
        check_all: bool,
        untrusted: Sequence[Certificate] = (),
    ) -> bool:
        mode = "-crl_check_all" if check_all else "-crl_check"
        return self._verify(certificate, anchors, [mode], untrusted)

    # ──────────────────────── Internals ────────────────────────

    def _verify(
        self,
        certificate: Certificate,
        anchors: TrustAnchorStore,
        options: list[str],
        untrusted: Sequence[Certificate] = (),
    ) -> bool:
        with tempfile.TemporaryDirectory(prefix="cert-trust-") as workdir:
            command = self._build_command(Path(workdir), certificate, anchors, options, untrusted)
            leaf_path = command[-1]
            try:
                completed = subprocess.run(
                    command,
                    capture_output=True,
                    text=True,
                    check=False,
                )
            except OSError as exc:
                raise VerificationFault(
                    f"Could not run the verification engine '{self._binary}': {exc}"
                ) from exc

        lines = completed.stdout.splitlines()
        first_line = lines[0].strip() if lines else ""
        ok = completed.returncode == 0 and first_line == f"{leaf_path}: OK"
        log.debug(
            "openssl.verify",
            options=options,
            returncode=completed.returncode,
            ok=ok,
            stderr=completed.stderr.strip() or None,
        )
        return ok

    def _build_command(
        self,
        workdir: Path,
        certificate: Certificate,
        anchors: TrustAnchorStore,
        options: list[str],
        untrusted: Sequence[Certificate],
    ) -> list[str]:
        command = [self._binary, "verify"]
        try:
            bundle = bundle_anchors(anchors)
            if bundle:
                trusted_path = workdir / "trusted.pem"
                trusted_path.write_bytes(bundle)
                command += ["-CAfile", str(trusted_path)]
            if untrusted:
                untrusted_path = workdir / "untrusted.pem"
                untrusted_path.write_text("".join(c.to_pem() for c in untrusted), encoding="ascii")
                command += ["-untrusted", str(untrusted_path)]
            leaf_path = workdir / "leaf.pem"
            leaf_path.write_text(certificate.to_pem(), encoding="ascii")
        except OSError as exc:
            raise VerificationFault(f"Could not prepare verification input: {exc}") from exc
        return [*command, *options, str(leaf_path)]
