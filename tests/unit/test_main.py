"""
Unit tests for the main module — composition root and exit codes.

The verification engine is replaced by FakeEngine, so no openssl binary
and no network are needed.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import structlog
from railway import ErrorCode, Result

from cert_trust.config import AppSettings
from cert_trust.domain.models import Purpose, VerificationReport
from cert_trust.main import (
    EXIT_FAULT,
    EXIT_TRUSTED,
    EXIT_UNTRUSTED,
    configure_structlog,
    create_verifier,
    exit_code,
    main,
    verify,
)
from cert_trust.revocation import RevocationListCombiner, RevocationListRegistry
from cert_trust.verifier import TrustVerifier
from tests.conftest import FakeCrlFetcher, FakeEngine, Issued


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith(("VERIFICATION__", "CACHE__", "FETCH__", "OPENSSL__", "LOG_LEVEL")):
            monkeypatch.delenv(name)


@pytest.fixture()
def leaf_file(tmp_path: Path, leaf: Issued) -> Path:
    path = tmp_path / "leaf.pem"
    path.write_bytes(leaf.pem)
    return path


def _fake_verifier(engine: FakeEngine, cache_dir: Path) -> TrustVerifier:
    return TrustVerifier(
        engine,
        RevocationListRegistry(FakeCrlFetcher(), cache_dir),
        RevocationListCombiner(cache_dir),
    )


def _report(purpose_ok: bool, not_revoked: bool | None = None) -> VerificationReport:
    return VerificationReport(
        fingerprint=None,
        common_name=None,
        purpose=Purpose.ANY,
        chain_length=1,
        purpose_ok=purpose_ok,
        not_revoked=not_revoked,
    )


class TestConfigureStructlog:
    def test_configure_structlog_sets_log_level(self) -> None:
        configure_structlog("WARNING")
        assert structlog.get_logger() is not None

    def test_configure_structlog_invalid_level_falls_back(self) -> None:
        configure_structlog("NONEXISTENT")
        assert structlog.get_logger() is not None


class TestExitCode:
    def test_trusted(self) -> None:
        assert exit_code(Result.success(_report(True, True))) == EXIT_TRUSTED

    def test_purpose_failed(self) -> None:
        assert exit_code(Result.success(_report(False))) == EXIT_UNTRUSTED

    def test_revoked(self) -> None:
        assert exit_code(Result.success(_report(True, False))) == EXIT_UNTRUSTED

    def test_fault(self) -> None:
        assert exit_code(Result.failure(ErrorCode.EXTERNAL_SERVICE_ERROR, "down")) == EXIT_FAULT


class TestWiring:
    def test_create_verifier(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("VERIFICATION__CERTIFICATE", "leaf.pem")
        monkeypatch.setenv("CACHE__DIRECTORY", str(tmp_path))
        settings = AppSettings(_env_file=None)  # type: ignore[call-arg]
        assert isinstance(create_verifier(settings), TrustVerifier)

    def test_verify_reads_configured_files(
        self, monkeypatch: pytest.MonkeyPatch, leaf_file: Path, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("VERIFICATION__CERTIFICATE", str(leaf_file))
        monkeypatch.setenv("VERIFICATION__CHECK_CRL", "false")
        settings = AppSettings(_env_file=None)  # type: ignore[call-arg]
        engine = FakeEngine()

        result = verify(settings, _fake_verifier(engine, tmp_path))

        assert result.value().trusted
        assert engine.calls == [("any",)]

    def test_verify_missing_certificate_is_not_found(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("VERIFICATION__CERTIFICATE", str(tmp_path / "absent.pem"))
        settings = AppSettings(_env_file=None)  # type: ignore[call-arg]
        result = verify(settings, _fake_verifier(FakeEngine(), tmp_path))
        assert result.error().code is ErrorCode.NOT_FOUND


class TestMain:
    def test_trusted_exits_zero(
        self, monkeypatch: pytest.MonkeyPatch, leaf_file: Path, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("VERIFICATION__CERTIFICATE", str(leaf_file))
        monkeypatch.setenv("VERIFICATION__CHECK_CRL", "false")
        monkeypatch.setattr(
            "cert_trust.main.create_verifier", lambda _settings: _fake_verifier(FakeEngine(), tmp_path)
        )
        with pytest.raises(SystemExit) as excinfo:
            main()
        assert excinfo.value.code == EXIT_TRUSTED

    def test_untrusted_exits_one(
        self, monkeypatch: pytest.MonkeyPatch, leaf_file: Path, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("VERIFICATION__CERTIFICATE", str(leaf_file))
        monkeypatch.setattr(
            "cert_trust.main.create_verifier",
            lambda _settings: _fake_verifier(FakeEngine(verdict=False), tmp_path),
        )
        with pytest.raises(SystemExit) as excinfo:
            main()
        assert excinfo.value.code == EXIT_UNTRUSTED

    def test_fault_exits_two(
        self, monkeypatch: pytest.MonkeyPatch, leaf_file: Path, tmp_path: Path
    ) -> None:
        # The fake fetcher knows no CRLs, so the revocation check cannot complete.
        monkeypatch.setenv("VERIFICATION__CERTIFICATE", str(leaf_file))
        monkeypatch.setattr(
            "cert_trust.main.create_verifier", lambda _settings: _fake_verifier(FakeEngine(), tmp_path)
        )
        with pytest.raises(SystemExit) as excinfo:
            main()
        assert excinfo.value.code == EXIT_FAULT

    def test_configuration_error_exits_one(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main()
        assert excinfo.value.code == EXIT_UNTRUSTED
        assert "Configuration error" in capsys.readouterr().err
