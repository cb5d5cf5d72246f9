"""
Certificate import adapter — multipart create/replace via the DSM import API.

Adapter layer — implements the CertificateUploader port on top of DsmSession.

    POST entry.cgi?api=SYNO.Core.Certificate&method=import&version=1&_sid=...
    multipart/form-data:
        key   (file)   private key, PEM
        cert  (file)   certificate, PEM
        id    (field)  present only when replacing
        desc  (field)
        as_default (field) "true" / "false"

The DSM applies the import in several internal steps and offers no
transaction; a failed call may leave the store half-updated. Failures are
reported, never rolled back.
"""

from __future__ import annotations

from typing import Any

import structlog
from railway import ErrorCode, FailureDescription
from railway.result import Result

from dsm_cert_sync.adapters.catalog import certificate_request
from dsm_cert_sync.adapters.session import DsmSession
from dsm_cert_sync.domain.models import ImportAttributes

log = structlog.get_logger()

_PEM_CONTENT_TYPE = "application/x-pem-file"


class HttpCertificateUploader:
    """
    Create or replace a DSM certificate in a single import call.

    Implements the CertificateUploader port. Requires a logged-in session.
    """

    def __init__(self, session: DsmSession) -> None:
        self._session = session

    def import_certificate(
        self, cert_bytes: bytes, key_bytes: bytes, attributes: ImportAttributes
    ) -> Result[str]:
        """
        Upload the pair and return the id the DSM reports for it.

        Without `attributes.id` the DSM creates a new certificate; with it,
        the DSM replaces that certificate in place. Verifying that a replace
        kept the id is the caller's job.
        """
        files = {
            "key": ("key.pem", key_bytes, _PEM_CONTENT_TYPE),
            "cert": ("cert.pem", cert_bytes, _PEM_CONTENT_TYPE),
        }
        fields = attributes.as_form_fields()
        log.debug("uploader.importing", fields=sorted(fields))
        return (
            self._session.build_request(
                certificate_request("import"), http_method="POST", data=fields, files=files
            )
            .flat_map(self._session.execute)
            .flat_map(_extract_id)
            .map_failure(
                lambda err: FailureDescription(
                    err.code, f"failed to import cert. {err.message}", err.exception
                )
            )
            .peek(lambda new_id: log.info("uploader.imported", certificate_id=new_id))
        )


def _extract_id(data: Any) -> Result[str]:
    new_id = data.get("id") if isinstance(data, dict) else None
    if not isinstance(new_id, str) or not new_id:
        return Result.failure(ErrorCode.PROTOCOL_ERROR, "import response has no id")
    return Result.success(new_id)
