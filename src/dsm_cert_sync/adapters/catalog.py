"""
Certificate catalog adapter — read access to the DSM certificate store.

Adapter layer — implements the CertificateCatalog port on top of DsmSession.

The listing entries carry their validity window as DSM text timestamps;
those are decoded with parse_dsm_timestamp while the entry is decoded, so a
malformed entry fails the whole listing instead of being skipped.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from railway import ErrorCode
from railway.result import Result

from dsm_cert_sync.adapters.session import ApiRequest, DsmSession, api_request
from dsm_cert_sync.domain.models import (
    ApiInfo,
    CertificateIssuer,
    CertificateSubject,
    RemoteCertificate,
)
from dsm_cert_sync.domain.timestamps import parse_dsm_timestamp

log = structlog.get_logger()

CERTIFICATE_API = "SYNO.Core.Certificate"


def certificate_request(method: str) -> ApiRequest:
    """
    Request skeleton for the certificate APIs.

    Import lives on SYNO.Core.Certificate itself; list and get live on the
    .CRT sub-API.
    """
    api = CERTIFICATE_API if method == "import" else f"{CERTIFICATE_API}.CRT"
    return api_request(api, 1, "entry.cgi", method)


class HttpCertificateCatalog:
    """
    List and fetch DSM certificates.

    Implements the CertificateCatalog port. Requires a logged-in session.
    """

    def __init__(self, session: DsmSession) -> None:
        self._session = session

    def list_certificates(self) -> Result[list[RemoteCertificate]]:
        """
        GET entry.cgi?api=SYNO.Core.Certificate.CRT&method=list.

        Returns every certificate in listing order, or PROTOCOL_ERROR if any
        entry cannot be decoded.
        """
        return (
            self._session.build_request(certificate_request("list"))
            .flat_map(self._session.execute)
            .flat_map(_decode_listing)
            .peek(lambda certs: log.debug("catalog.listed", count=len(certs)))
        )

    def get_certificate(self, certificate_id: str) -> Result[Any]:
        """Raw detail payload for one certificate (diagnostics only)."""
        request = certificate_request("get").with_param("id", certificate_id)
        return self._session.build_request(request).flat_map(self._session.execute)

    def list_apis(self) -> Result[list[ApiInfo]]:
        """
        GET query.cgi?api=SYNO.API.Info&method=query&query=all.

        The DSM answers with a map keyed by API name.
        """
        request = api_request("SYNO.API.Info", 1, "query.cgi", "query", query="all")
        return (
            self._session.build_request(request)
            .flat_map(self._session.execute)
            .flat_map(_decode_api_info)
        )


def _decode_listing(data: Any) -> Result[list[RemoteCertificate]]:
    entries = data.get("certificates") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        return Result.failure(ErrorCode.PROTOCOL_ERROR, "listing has no certificates array")
    return Result.all_of([decode_certificate(entry) for entry in entries])


def decode_certificate(entry: Any) -> Result[RemoteCertificate]:
    """Decode one listing entry, including its two timestamps."""
    if not isinstance(entry, dict):
        return Result.failure(ErrorCode.PROTOCOL_ERROR, f"certificate entry is not an object: {entry!r}")

    return Result.combine(
        parse_dsm_timestamp(entry.get("valid_from")),
        parse_dsm_timestamp(entry.get("valid_till")),
        lambda valid_from, valid_till: (valid_from, valid_till),
    ).flat_map(
        lambda window: Result.from_computation(
            lambda: _build_certificate(entry, *window),
            ErrorCode.PROTOCOL_ERROR,
            f"malformed certificate entry {entry.get('id')!r}",
        )
    )


def _build_certificate(
    entry: dict[str, Any], valid_from: datetime, valid_till: datetime
) -> RemoteCertificate:
    cert_id = entry["id"]
    if not isinstance(cert_id, str):
        raise TypeError(f"certificate id must be a string, got {type(cert_id).__name__}")
    issuer = entry.get("issuer") or {}
    subject = entry.get("subject") or {}
    alt_names = subject.get("sub_alt_name") or []
    if not isinstance(alt_names, list):
        raise TypeError(f"sub_alt_name must be a list, got {type(alt_names).__name__}")
    return RemoteCertificate(
        id=cert_id,
        description=entry.get("desc") or "",
        valid_from=valid_from,
        valid_till=valid_till,
        is_default=bool(entry.get("is_default", False)),
        issuer=CertificateIssuer(
            common_name=issuer.get("common_name", ""),
            country=issuer.get("country", ""),
            organization=issuer.get("organization", ""),
        ),
        subject=CertificateSubject(
            common_name=subject.get("common_name", ""),
            alt_names=tuple(alt_names),
        ),
    )


def _decode_api_info(data: Any) -> Result[list[ApiInfo]]:
    if not isinstance(data, dict):
        return Result.failure(ErrorCode.PROTOCOL_ERROR, "API info is not an object")
    return Result.from_computation(
        lambda: [
            ApiInfo(
                name=name,
                path=info["path"],
                min_version=int(info.get("minVersion", 1)),
                max_version=int(info.get("maxVersion", 1)),
            )
            for name, info in sorted(data.items())
        ],
        ErrorCode.PROTOCOL_ERROR,
        "malformed API info entry",
    )
