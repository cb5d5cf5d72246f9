"""
Shared test fixtures and helpers for the dsm-cert-sync test suite.

Certificates are generated on the fly with cryptography (self-signed,
EC P-256) so every test controls the exact expiry it needs.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TypeAlias

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

DSM_URL = "https://nas.example.com:5001"
API_ROOT = f"{DSM_URL}/webapi"
LOCAL_EXPIRY = datetime(2025, 1, 2, 15, 4, 5, tzinfo=UTC)

PairWriter: TypeAlias = Callable[..., tuple[str, str]]


def build_pair(
    not_after: datetime = LOCAL_EXPIRY, common_name: str = "nas.example.com"
) -> tuple[bytes, bytes]:
    """Return (cert_pem, key_pem) for a fresh self-signed certificate."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=90))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return cert_pem, key_pem


@pytest.fixture()
def write_pair(tmp_path: Path) -> PairWriter:
    """
    Factory fixture: write a generated pair into tmp_path.

    Returns (cert_path, key_path) as strings.
    """

    def _write(
        not_after: datetime = LOCAL_EXPIRY,
        common_name: str = "nas.example.com",
        cert_name: str = "tls.crt",
        key_name: str = "tls.key",
    ) -> tuple[str, str]:
        cert_pem, key_pem = build_pair(not_after, common_name)
        cert_path = tmp_path / cert_name
        key_path = tmp_path / key_name
        cert_path.write_bytes(cert_pem)
        key_path.write_bytes(key_pem)
        return str(cert_path), str(key_path)

    return _write


def dsm_entry(
    cert_id: str,
    desc: str,
    valid_till: str = "Jan  2 15:04:05 2025 GMT",
    valid_from: str = "Oct  4 15:04:05 2024 GMT",
    is_default: bool = False,
) -> dict[str, object]:
    """One certificate entry as SYNO.Core.Certificate.CRT list reports it."""
    return {
        "id": cert_id,
        "desc": desc,
        "is_default": is_default,
        "valid_from": valid_from,
        "valid_till": valid_till,
        "issuer": {"common_name": "R3", "country": "US", "organization": "Let's Encrypt"},
        "subject": {"common_name": "nas.example.com", "sub_alt_name": ["nas.example.com"]},
    }


@pytest.fixture()
def dsm_entry_factory() -> Callable[..., dict[str, object]]:
    return dsm_entry
