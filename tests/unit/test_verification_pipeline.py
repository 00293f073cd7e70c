"""
Unit tests for the verification pipeline — faults become Result failures.

Test categories:
  - Success track: a verdict (trusted or not) is a Success(VerificationReport)
  - Failure at each stage: parse / link / verify faults map to their ErrorCode
  - Short-circuit: a failed purpose check skips the revocation check
"""

from __future__ import annotations

from pathlib import Path

from railway import ErrorCode, ResultAssertions

from cert_trust.domain.models import Purpose, TrustAnchorStore
from cert_trust.errors import CertificateParseFault
from cert_trust.pipeline import run_verification
from cert_trust.revocation import RevocationListCombiner, RevocationListRegistry
from cert_trust.verifier import TrustVerifier
from tests.conftest import FakeCrlFetcher, FakeEngine, Issued, make_certificate


def _verifier(engine: FakeEngine, fetcher: FakeCrlFetcher, cache_dir: Path) -> TrustVerifier:
    return TrustVerifier(
        engine,
        RevocationListRegistry(fetcher, cache_dir),
        RevocationListCombiner(cache_dir),
    )


class TestPipelineSuccess:
    def test_trusted_report(
        self,
        root: Issued,
        intermediate: Issued,
        leaf: Issued,
        fetcher: FakeCrlFetcher,
        cache_dir: Path,
    ) -> None:
        engine = FakeEngine()
        result = run_verification(
            leaf.pem,
            [intermediate.pem + root.pem],
            Purpose.ANY,
            TrustAnchorStore(),
            _verifier(engine, fetcher, cache_dir),
        )

        report = ResultAssertions.assert_success(result)
        assert report.trusted
        assert report.purpose_ok
        assert report.not_revoked is True
        assert report.revocation_checked
        assert report.chain_length == 3
        assert report.common_name == "leaf.test"
        assert [call[0] for call in engine.calls] == ["any", "revocation"]

    def test_chain_blobs_may_be_der(
        self,
        root: Issued,
        intermediate: Issued,
        leaf: Issued,
        fetcher: FakeCrlFetcher,
        cache_dir: Path,
    ) -> None:
        result = run_verification(
            leaf.der,
            [intermediate.der, root.der],
            Purpose.SSL_SERVER,
            TrustAnchorStore(),
            _verifier(FakeEngine(), fetcher, cache_dir),
            check_crl=False,
        )
        report = ResultAssertions.assert_success(result)
        assert report.chain_length == 3
        assert report.purpose is Purpose.SSL_SERVER

    def test_without_crl_check_revocation_is_not_consulted(
        self, leaf: Issued, fetcher: FakeCrlFetcher, cache_dir: Path
    ) -> None:
        engine = FakeEngine()
        result = run_verification(
            leaf.pem, [], Purpose.ANY, TrustAnchorStore(), _verifier(engine, fetcher, cache_dir),
            check_crl=False,
        )
        report = ResultAssertions.assert_success(result)
        assert report.trusted
        assert report.not_revoked is None
        assert not report.revocation_checked
        assert fetcher.calls == []

    def test_untrusted_is_still_a_success(
        self, leaf: Issued, fetcher: FakeCrlFetcher, cache_dir: Path
    ) -> None:
        engine = FakeEngine(verdict=False)
        result = run_verification(
            leaf.pem, [], Purpose.SSL_CLIENT, TrustAnchorStore(), _verifier(engine, fetcher, cache_dir)
        )
        report = ResultAssertions.assert_success(result)
        assert not report.trusted
        assert not report.purpose_ok

    def test_failed_purpose_skips_revocation(
        self, leaf: Issued, fetcher: FakeCrlFetcher, cache_dir: Path
    ) -> None:
        engine = FakeEngine(verdict=False)
        run_verification(
            leaf.pem, [], Purpose.ANY, TrustAnchorStore(), _verifier(engine, fetcher, cache_dir)
        )
        assert engine.calls == [("any",)]
        assert fetcher.calls == []


class TestPipelineFailures:
    def test_garbage_leaf_is_validation_error(self, fetcher: FakeCrlFetcher, cache_dir: Path) -> None:
        result = run_verification(
            b"garbage", [], Purpose.ANY, TrustAnchorStore(), _verifier(FakeEngine(), fetcher, cache_dir)
        )
        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "parse_leaf")

    def test_garbage_chain_is_validation_error(
        self, leaf: Issued, fetcher: FakeCrlFetcher, cache_dir: Path
    ) -> None:
        result = run_verification(
            leaf.pem, [b"garbage"], Purpose.ANY, TrustAnchorStore(), _verifier(FakeEngine(), fetcher, cache_dir)
        )
        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "parse_chain")

    def test_non_ca_issuer_is_business_rule_error(
        self, leaf: Issued, fetcher: FakeCrlFetcher, cache_dir: Path
    ) -> None:
        child = make_certificate("child.test", leaf)
        result = run_verification(
            child.pem, [leaf.pem], Purpose.ANY, TrustAnchorStore(), _verifier(FakeEngine(), fetcher, cache_dir)
        )
        ResultAssertions.assert_failure(result, ErrorCode.BUSINESS_RULE_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "build_chain")

    def test_incomplete_chain_with_check_all_is_business_rule_error(
        self, leaf: Issued, intermediate: Issued, fetcher: FakeCrlFetcher, cache_dir: Path
    ) -> None:
        result = run_verification(
            leaf.pem,
            [intermediate.pem],
            Purpose.ANY,
            TrustAnchorStore(),
            _verifier(FakeEngine(), fetcher, cache_dir),
            check_all=True,
        )
        ResultAssertions.assert_failure(result, ErrorCode.BUSINESS_RULE_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "Incomplete chain")

    def test_unreachable_crl_is_external_service_error(
        self, leaf: Issued, cache_dir: Path
    ) -> None:
        result = run_verification(
            leaf.pem, [], Purpose.ANY, TrustAnchorStore(), _verifier(FakeEngine(), FakeCrlFetcher(), cache_dir)
        )
        ResultAssertions.assert_failure(result, ErrorCode.EXTERNAL_SERVICE_ERROR)

    def test_failure_keeps_the_fault(self, fetcher: FakeCrlFetcher, cache_dir: Path) -> None:
        result = run_verification(
            b"garbage", [], Purpose.ANY, TrustAnchorStore(), _verifier(FakeEngine(), fetcher, cache_dir)
        )
        assert isinstance(result.error().exception, CertificateParseFault)
