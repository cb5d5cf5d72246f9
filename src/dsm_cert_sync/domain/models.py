"""
Domain models — immutable data structures for certificates and sync targets.

These are pure value objects with no behavior beyond rendering. They describe
the remote certificate catalog as the DSM reports it, the local certificate
pair as read from disk, and the outcome of one reconciliation attempt.

All models are frozen dataclasses (immutable) following functional principles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, unique


@dataclass(frozen=True, slots=True)
class CertificateIssuer:
    common_name: str = ""
    country: str = ""
    organization: str = ""


@dataclass(frozen=True, slots=True)
class CertificateSubject:
    common_name: str = ""
    alt_names: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RemoteCertificate:
    """
    A certificate installed on the DSM, as reported by the listing endpoint.

    `id` is assigned by the DSM and survives replace operations; `description`
    is the user-chosen label and the secondary match key. The certificate is
    only ever changed as a whole, by an import carrying the same id.
    """

    id: str
    description: str
    valid_from: datetime
    valid_till: datetime
    is_default: bool = False
    issuer: CertificateIssuer = field(default_factory=CertificateIssuer)
    subject: CertificateSubject = field(default_factory=CertificateSubject)

    def __str__(self) -> str:
        return f"{self.id} ({self.description}) [{self.valid_from} - {self.valid_till}]"


@dataclass(frozen=True, slots=True)
class LocalCertificate:
    """
    The on-disk certificate/key pair, parsed.

    `not_after` is the freshness fingerprint compared against the remote
    `valid_till`. The raw bytes are kept so the upload sends exactly what
    was inspected.
    """

    not_after: datetime
    common_name: str
    cert_pem: bytes = field(repr=False)
    key_pem: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class SyncTarget:
    """
    Which remote certificate to manage and where its local files live.

    If both `certificate_id` and `description` are set, the id is used for
    matching and the description is ignored.
    """

    cert_path: str
    key_path: str
    certificate_id: str | None = None
    description: str | None = None


@dataclass(frozen=True, slots=True)
class Credentials:
    account: str
    password: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class ImportAttributes:
    """
    Scalar form fields sent alongside an import.

    Unset attributes are left out of the request entirely: omitting `id`
    creates a new certificate, setting it replaces an existing one.
    """

    id: str | None = None
    desc: str | None = None
    as_default: bool | None = None

    def as_form_fields(self) -> dict[str, str]:
        fields: dict[str, str] = {}
        if self.id is not None:
            fields["id"] = self.id
        if self.desc is not None:
            fields["desc"] = self.desc
        if self.as_default is not None:
            fields["as_default"] = "true" if self.as_default else "false"
        return fields


@unique
class ReconcileAction(Enum):
    NOOP = "noop"
    CREATED = "created"
    REPLACED = "replaced"


@dataclass(frozen=True, slots=True)
class ReconcileOutcome:
    action: ReconcileAction
    certificate_id: str
    valid_till: datetime


@dataclass(frozen=True, slots=True)
class ApiInfo:
    """One entry of the DSM API discovery query."""

    name: str
    path: str
    min_version: int
    max_version: int
