"""
Application entry point — wires dependencies and runs one verification.

Composition root: creates concrete adapters, injects them into the
TrustVerifier, and runs the verification pipeline inside a
LoggingExecutionContext.

This is the ONLY place where concrete adapters are instantiated.
Everything else depends on Protocol interfaces.

Exit status:
  0  the certificate is trusted
  1  the certificate is not trusted, or the configuration is invalid
  2  no verdict could be reached (a fault on the error track)
"""

from __future__ import annotations

import logging
import sys
from functools import partial
from pathlib import Path

import structlog
from railway import ErrorCode, LoggingExecutionContext, Result

from cert_trust import __version__
from cert_trust.adapters.crl_fetcher import HttpCrlFetcher
from cert_trust.adapters.openssl_engine import OpenSslVerificationEngine
from cert_trust.config import AppSettings
from cert_trust.domain.models import TrustAnchorStore, VerificationReport
from cert_trust.pipeline import run_verification
from cert_trust.revocation import RevocationListCombiner, RevocationListRegistry
from cert_trust.verifier import TrustVerifier

EXIT_TRUSTED = 0
EXIT_UNTRUSTED = 1
EXIT_FAULT = 2


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured logging.

    Colored, human-readable console output; unknown level names fall back to INFO.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_verifier(settings: AppSettings) -> TrustVerifier:
    """Instantiate the concrete adapters and assemble a TrustVerifier."""
    fetcher = HttpCrlFetcher(
        timeout=settings.fetch.timeout_seconds,
        retry_attempts=settings.fetch.retry_attempts,
    )
    registry = RevocationListRegistry(
        fetcher,
        settings.cache.directory,
        scope=settings.cache.scope,
    )
    combiner = RevocationListCombiner(settings.cache.directory)
    engine = OpenSslVerificationEngine(binary=settings.openssl.binary)
    return TrustVerifier(engine, registry, combiner)


def _read_inputs(leaf: Path, chain: list[Path]) -> Result[tuple[bytes, list[bytes]]]:
    return Result.from_computation(
        lambda: (leaf.read_bytes(), [path.read_bytes() for path in chain]),
        ErrorCode.NOT_FOUND,
        "Certificate input could not be read",
    )


def verify(settings: AppSettings, verifier: TrustVerifier) -> Result[VerificationReport]:
    """Read the configured inputs and run the verification pipeline."""
    options = settings.verification
    pipeline_fn = partial(
        run_verification,
        purpose=options.purpose,
        anchors=TrustAnchorStore.from_paths(options.anchor_paths),
        verifier=verifier,
        check_crl=options.check_crl,
        check_all=options.check_all,
    )
    return _read_inputs(options.certificate, options.chain_paths).flat_map(
        lambda inputs: pipeline_fn(inputs[0], inputs[1])
    )


def exit_code(result: Result[VerificationReport]) -> int:
    return result.either(
        lambda report: EXIT_TRUSTED if report.trusted else EXIT_UNTRUSTED,
        lambda _error: EXIT_FAULT,
    )


def main() -> None:
    """Load settings, verify the configured certificate and exit with its verdict."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(EXIT_UNTRUSTED)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    log.info(
        "app.starting",
        version=__version__,
        log_level=settings.log_level,
        certificate=str(settings.verification.certificate),
        purpose=settings.verification.purpose.value,
        check_crl=settings.verification.check_crl,
        check_all=settings.verification.check_all,
    )

    verifier = create_verifier(settings)
    context = LoggingExecutionContext(operation="CertificateVerification")
    result = context.execute(partial(verify, settings, verifier))

    result.either(
        lambda report: log.info(
            "app.verdict",
            trusted=report.trusted,
            purpose_ok=report.purpose_ok,
            not_revoked=report.not_revoked,
            chain_length=report.chain_length,
        ),
        lambda error: log.error(
            "app.no_verdict",
            error_code=error.code.value,
            error=error.message,
        ),
    )
    sys.exit(exit_code(result))


if __name__ == "__main__":
    main()
