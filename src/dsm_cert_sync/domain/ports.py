"""
Ports — Protocol-based interfaces for infrastructure adapters.

These define WHAT the reconciler needs without specifying HOW it's done.
Following hexagonal architecture:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters and test fakes
satisfy the contract simply by implementing the methods.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from railway.result import Result

from dsm_cert_sync.domain.models import ImportAttributes, LocalCertificate, RemoteCertificate


@runtime_checkable
class LocalCertificateLoader(Protocol):
    """Port: read and parse the local certificate/key pair."""

    def load(self, cert_path: str, key_path: str) -> Result[LocalCertificate]: ...


@runtime_checkable
class SessionAuthenticator(Protocol):
    """
    Port: establish a DSM session.

    On success the session token is stored for every later call and also
    returned. On failure any previously stored token is left in place.
    """

    def login(self, account: str, password: str) -> Result[str]: ...


@runtime_checkable
class CertificateCatalog(Protocol):
    """Port: read-only access to the remote certificate store."""

    def list_certificates(self) -> Result[list[RemoteCertificate]]:
        """All installed certificates, in listing order. All-or-nothing."""
        ...

    def get_certificate(self, certificate_id: str) -> Result[Any]: ...


@runtime_checkable
class CertificateUploader(Protocol):
    """
    Port: create or replace a remote certificate in one import call.

    The call is not transactional on the device side; a failure may leave
    the store in an unknown state and is only reported, never rolled back.
    """

    def import_certificate(
        self, cert_bytes: bytes, key_bytes: bytes, attributes: ImportAttributes
    ) -> Result[str]:
        """Return the id the device assigned (create) or kept (replace)."""
        ...
