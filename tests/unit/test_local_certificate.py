"""
Unit tests for the local PEM certificate loader.

Certificates are generated per test with cryptography.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from railway import ErrorCode, ResultAssertions

from conftest import LOCAL_EXPIRY, PairWriter, build_pair
from dsm_cert_sync.adapters.local_certificate import PemCertificateLoader
from dsm_cert_sync.domain.ports import LocalCertificateLoader


class TestPemCertificateLoader:
    def test_satisfies_port(self) -> None:
        assert isinstance(PemCertificateLoader(), LocalCertificateLoader)

    def test_reads_expiry_and_keeps_bytes(self, write_pair: PairWriter) -> None:
        """
        GIVEN a matching certificate/key pair on disk
        WHEN load is called
        THEN not_after is the certificate's expiry (UTC) and the raw bytes are kept.
        """
        cert_path, key_path = write_pair(common_name="files.example.com")

        local = ResultAssertions.assert_success(PemCertificateLoader().load(cert_path, key_path))

        assert local.not_after == LOCAL_EXPIRY
        assert local.not_after.tzinfo is not None
        assert local.common_name == "files.example.com"
        assert local.cert_pem == Path(cert_path).read_bytes()
        assert local.key_pem == Path(key_path).read_bytes()

    def test_chain_uses_first_certificate(self, tmp_path: Path) -> None:
        leaf_pem, leaf_key = build_pair(datetime(2030, 6, 1, tzinfo=UTC), "leaf")
        issuer_pem, _ = build_pair(datetime(2035, 1, 1, tzinfo=UTC), "issuer")
        (tmp_path / "chain.crt").write_bytes(leaf_pem + issuer_pem)
        (tmp_path / "leaf.key").write_bytes(leaf_key)

        local = ResultAssertions.assert_success(
            PemCertificateLoader().load(str(tmp_path / "chain.crt"), str(tmp_path / "leaf.key"))
        )
        assert local.common_name == "leaf"
        assert local.not_after == datetime(2030, 6, 1, tzinfo=UTC)

    def test_missing_file_fails(self, tmp_path: Path) -> None:
        result = PemCertificateLoader().load(str(tmp_path / "nope.crt"), str(tmp_path / "nope.key"))
        ResultAssertions.assert_failure(result, ErrorCode.LOCAL_CERTIFICATE_ERROR)

    def test_garbage_certificate_fails(self, tmp_path: Path, write_pair: PairWriter) -> None:
        _, key_path = write_pair()
        bad = tmp_path / "bad.crt"
        bad.write_text("not a certificate")
        result = PemCertificateLoader().load(str(bad), key_path)
        ResultAssertions.assert_failure(result, ErrorCode.LOCAL_CERTIFICATE_ERROR)

    def test_mismatched_key_fails(self, tmp_path: Path) -> None:
        cert_pem, _ = build_pair()
        _, other_key = build_pair()
        (tmp_path / "a.crt").write_bytes(cert_pem)
        (tmp_path / "b.key").write_bytes(other_key)

        result = PemCertificateLoader().load(str(tmp_path / "a.crt"), str(tmp_path / "b.key"))

        error = ResultAssertions.assert_failure(result, ErrorCode.LOCAL_CERTIFICATE_ERROR)
        assert "does not match" in str(error.exception)
