"""
Application entry point — wires dependencies and starts the scheduler.

Composition root: creates concrete adapters, injects them into the
reconciler, and hands the reconciler to the scheduler.

Concrete adapter classes are only constructed here; the reconciler sees
them only through the Protocols in domain.ports.

Responsibilities:
  1. Load and validate configuration from environment
  2. Configure structlog for structured logging
  3. Create the DSM session and the adapters built on it
  4. Log in once and log the DSM's current certificate catalog
  5. Wire the reconciler (partial application with ports)
  6. Create the scheduler, install signal handlers, and run until stopped

Exits with status 1 on any configuration error or fatal reconciliation error.
"""

from __future__ import annotations

import logging
import sys
from functools import partial
from typing import TypeAlias

import httpx
import structlog
from railway.result import Result

from dsm_cert_sync import __version__
from dsm_cert_sync.adapters.catalog import HttpCertificateCatalog
from dsm_cert_sync.adapters.local_certificate import PemCertificateLoader
from dsm_cert_sync.adapters.session import DsmSession
from dsm_cert_sync.adapters.uploader import HttpCertificateUploader
from dsm_cert_sync.config import AppSettings
from dsm_cert_sync.domain.models import Credentials
from dsm_cert_sync.reconciler import reconcile
from dsm_cert_sync.scheduler import create_scheduler, register_shutdown_signals


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured, human-readable console logging.

    Unknown level names fall back to INFO.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


_Adapters: TypeAlias = tuple[
    DsmSession,
    PemCertificateLoader,
    HttpCertificateCatalog,
    HttpCertificateUploader,
]


def _create_adapters(settings: AppSettings) -> _Adapters:
    """
    Instantiate all concrete adapters from application settings.

    The catalog and uploader share the session so they share its token.
    Raises ValueError if the DSM URL cannot be used as a base URL.
    """
    session = DsmSession(
        base_url=settings.url,
        timeout=settings.http_timeout_seconds,
        verify_tls=settings.verify_tls,
    )
    loader = PemCertificateLoader()
    catalog = HttpCertificateCatalog(session)
    uploader = HttpCertificateUploader(session)
    return session, loader, catalog, uploader


def log_remote_catalog(
    session: DsmSession, catalog: HttpCertificateCatalog, credentials: Credentials
) -> Result[int]:
    """
    Log in and log every certificate the DSM currently holds.

    Run once at startup so bad credentials or an unreachable DSM surface
    before the scheduler starts. Returns the number of certificates.
    """
    log = structlog.get_logger()
    return (
        session.login(credentials.account, credentials.password)
        .flat_map(lambda _sid: catalog.list_certificates())
        .peek(lambda certs: log.info("app.existing_certificates", count=len(certs)))
        .peek(
            lambda certs: [
                log.info("app.existing_certificate", certificate=str(cert)) for cert in certs
            ]
        )
        .map(len)
    )


def main() -> None:
    """Wire dependencies and run the scheduler until stopped."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    log.info(
        "app.starting",
        version=__version__,
        log_level=settings.log_level,
        url=settings.url,
        user=settings.user,
        certificate_id=settings.id,
        description=settings.desc,
        freq_seconds=settings.freq_seconds,
    )

    try:
        session, loader, catalog, uploader = _create_adapters(settings)
    except (ValueError, httpx.InvalidURL) as e:
        log.error("app.configuration_error", error=str(e))
        sys.exit(1)

    credentials = settings.credentials()
    startup = log_remote_catalog(session, catalog, credentials)
    if startup.is_failure():
        log.error("app.startup_failed", failure=str(startup.error()))
        sys.exit(1)

    target = settings.sync_target()
    reconcile_fn = partial(
        reconcile,
        target=target,
        credentials=credentials,
        loader=loader,
        session=session,
        catalog=catalog,
        uploader=uploader,
    )

    scheduler = create_scheduler(
        reconcile_fn=reconcile_fn,
        cert_path=target.cert_path,
        key_path=target.key_path,
        frequency_seconds=settings.freq_seconds,
    )
    register_shutdown_signals(scheduler)

    log.info("app.scheduler_starting", freq_seconds=settings.freq_seconds)
    result = scheduler.run()
    if result.is_failure():
        log.error("app.fatal_error", failure=str(result.error()))
        sys.exit(1)
    log.info("app.shutdown", attempts=result.value())


if __name__ == "__main__":
    main()
