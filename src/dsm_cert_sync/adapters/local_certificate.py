"""
Local certificate adapter — reads the PEM certificate/key pair from disk.

Adapter layer — implements the LocalCertificateLoader port using
cryptography (PyCA) for X.509 and private-key parsing.

The certificate file may hold a full chain; the first certificate is the
leaf and is the one whose expiry is compared with the DSM. The private key
must belong to that leaf, otherwise the DSM would reject (or worse, accept)
a broken pair.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID
from railway import ErrorCode
from railway.result import Result

from dsm_cert_sync.domain.models import LocalCertificate

log = structlog.get_logger()


def _public_key_der(public_key: object) -> bytes:
    return public_key.public_bytes(  # type: ignore[attr-defined]
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _common_name(cert: x509.Certificate) -> str:
    attributes = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    return str(attributes[0].value) if attributes else ""


def parse_pair(cert_pem: bytes, key_pem: bytes) -> LocalCertificate:
    """
    Parse a PEM pair and check the key matches the leaf certificate.

    Raises ValueError on any parse problem or mismatch.
    """
    certificates = x509.load_pem_x509_certificates(cert_pem)
    if not certificates:
        raise ValueError("no certs in file")
    leaf = certificates[0]
    key = serialization.load_pem_private_key(key_pem, password=None)
    if _public_key_der(key.public_key()) != _public_key_der(leaf.public_key()):
        raise ValueError("private key does not match certificate")
    return LocalCertificate(
        not_after=leaf.not_valid_after_utc,
        common_name=_common_name(leaf),
        cert_pem=cert_pem,
        key_pem=key_pem,
    )


class PemCertificateLoader:
    """Implements the LocalCertificateLoader port for PEM files."""

    def load(self, cert_path: str, key_path: str) -> Result[LocalCertificate]:
        """
        Read both files and parse them.

        Returns Result.failure(LOCAL_CERTIFICATE_ERROR, ...) when a file is
        missing or unreadable, or the pair cannot be parsed.
        """
        return (
            Result.from_computation(
                lambda: (Path(cert_path).read_bytes(), Path(key_path).read_bytes()),
                ErrorCode.LOCAL_CERTIFICATE_ERROR,
                f"failed to read local cert {cert_path!r} / key {key_path!r}",
            )
            .flat_map(
                lambda pems: Result.from_computation(
                    lambda: parse_pair(*pems),
                    ErrorCode.LOCAL_CERTIFICATE_ERROR,
                    f"failed to load local cert {cert_path!r}",
                )
            )
            .peek(
                lambda local: log.debug(
                    "local_certificate.loaded",
                    common_name=local.common_name,
                    not_after=local.not_after.isoformat(),
                )
            )
        )
