"""
Reconciler — one attempt at bringing the DSM certificate in line with disk.

Domain layer — pure decision logic. All I/O is injected via ports.

The attempt is a railway; any stage failing aborts it:

  load local pair
    → login
      → list remote certificates
        → select the target (id first, then description)
          → decide: create | replace | no-op
            → import (create/replace only)
              → verify the id survived (replace only)

Freshness is judged by expiry alone: the DSM reports `valid_till` with
whole-second resolution, so the local `not_after` is truncated the same way
before comparing.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

import structlog
from railway import ErrorCode
from railway.result import Result

from dsm_cert_sync.domain.models import (
    Credentials,
    ImportAttributes,
    LocalCertificate,
    ReconcileAction,
    ReconcileOutcome,
    RemoteCertificate,
    SyncTarget,
)
from dsm_cert_sync.domain.ports import (
    CertificateCatalog,
    CertificateUploader,
    LocalCertificateLoader,
    SessionAuthenticator,
)

log = structlog.get_logger()


def select_certificate(
    certificates: Iterable[RemoteCertificate], target: SyncTarget
) -> RemoteCertificate | None:
    """
    First certificate matching the target, in listing order.

    An explicit id is matched exactly and the description is then ignored.
    Duplicate descriptions resolve to the first one listed.
    """
    for cert in certificates:
        if target.certificate_id:
            if cert.id == target.certificate_id:
                return cert
        elif target.description and cert.description == target.description:
            return cert
    return None


def same_expiry(remote_valid_till: datetime, local_not_after: datetime) -> bool:
    """Compare two instants at the DSM's resolution (whole seconds)."""
    return remote_valid_till.replace(microsecond=0) == local_not_after.replace(microsecond=0)


def _create(
    local: LocalCertificate, target: SyncTarget, uploader: CertificateUploader
) -> Result[ReconcileOutcome]:
    log.info("reconcile.creating", description=target.description)
    return uploader.import_certificate(
        local.cert_pem, local.key_pem, ImportAttributes(desc=target.description)
    ).map(
        lambda new_id: ReconcileOutcome(ReconcileAction.CREATED, new_id, local.not_after)
    )


def _replace(
    local: LocalCertificate, existing: RemoteCertificate, uploader: CertificateUploader
) -> Result[ReconcileOutcome]:
    log.info(
        "reconcile.replacing",
        certificate=str(existing),
        new_valid_till=local.not_after.isoformat(),
    )
    attributes = ImportAttributes(
        id=existing.id,
        desc=existing.description,
        as_default=existing.is_default,
    )
    return (
        uploader.import_certificate(local.cert_pem, local.key_pem, attributes)
        .ensure(
            lambda new_id: new_id == existing.id,
            ErrorCode.CONSISTENCY_ERROR,
            f"the cert id has changed: replaced {existing.id!r}",
        )
        .map(
            lambda new_id: ReconcileOutcome(ReconcileAction.REPLACED, new_id, local.not_after)
        )
    )


def _decide(
    local: LocalCertificate,
    certificates: list[RemoteCertificate],
    target: SyncTarget,
    uploader: CertificateUploader,
) -> Result[ReconcileOutcome]:
    existing = select_certificate(certificates, target)

    if existing is None:
        if target.certificate_id:
            return Result.failure(
                ErrorCode.NOT_FOUND, f"no certificate found with id {target.certificate_id!r}"
            )
        return _create(local, target, uploader)

    if same_expiry(existing.valid_till, local.not_after):
        log.debug("reconcile.noop", certificate=str(existing))
        return Result.success(
            ReconcileOutcome(ReconcileAction.NOOP, existing.id, existing.valid_till)
        )

    return _replace(local, existing, uploader)


def reconcile(
    target: SyncTarget,
    credentials: Credentials,
    loader: LocalCertificateLoader,
    session: SessionAuthenticator,
    catalog: CertificateCatalog,
    uploader: CertificateUploader,
) -> Result[ReconcileOutcome]:
    """
    Run one reconciliation attempt.

    Flow:
      1. Load the local pair (LOCAL_CERTIFICATE_ERROR on failure)
      2. Log in (AUTHENTICATION_ERROR on failure)
      3. List remote certificates
      4. Select the target and act:
         - nothing found, id configured   → NOT_FOUND
         - nothing found, description only → create
         - found, same expiry             → no-op
         - found, different expiry        → replace (CONSISTENCY_ERROR if the id changes)

    Returns Result[ReconcileOutcome] on success, or the failure of the first
    stage that failed.
    """
    return (
        loader.load(target.cert_path, target.key_path)
        .peek(
            lambda local: log.debug(
                "reconcile.local_loaded", valid_till=local.not_after.isoformat()
            )
        )
        .flat_map(
            lambda local: session.login(credentials.account, credentials.password).map(
                lambda _sid: local
            )
        )
        .flat_map(
            lambda local: catalog.list_certificates().flat_map(
                lambda certificates: _decide(local, certificates, target, uploader)
            )
        )
        .peek(
            lambda outcome: log.info(
                "reconcile.up_to_date",
                action=outcome.action.value,
                certificate_id=outcome.certificate_id,
            )
        )
    )
