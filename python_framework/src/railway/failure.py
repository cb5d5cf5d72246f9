"""
Failure description — structured error information for the failure track.

An ErrorCode names the category of a failure; a FailureDescription carries
the code, a human-readable message, the optional underlying exception, and
the moment the failure was recorded.

Enum + frozen dataclass give us __eq__, __hash__ and __repr__ for free, and
Enum members are singleton-comparable with `is`.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Grouped by where the failure originates:
    - Local: CONFIGURATION, VALIDATION, LOCAL_CERTIFICATE
    - Remote: AUTHENTICATION, NOT_FOUND, TRANSPORT, PROTOCOL, REMOTE_API, CONSISTENCY
    - Catch-all: TECHNICAL
    """

    # --- Local errors ---
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Invalid settings or an event source that cannot be started."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """A request could not be built (empty parameter, missing path)."""

    LOCAL_CERTIFICATE_ERROR = "LOCAL_CERTIFICATE_ERROR"
    """The local certificate/key pair cannot be read or parsed."""

    # --- Remote errors ---
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    """Login was rejected or failed."""

    NOT_FOUND = "NOT_FOUND"
    """An explicitly requested remote resource does not exist."""

    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    """The HTTP exchange itself failed (connection, timeout, TLS)."""

    PROTOCOL_ERROR = "PROTOCOL_ERROR"
    """The remote answered with a malformed envelope or unexpected data."""

    REMOTE_API_ERROR = "REMOTE_API_ERROR"
    """The remote answered success=false with a vendor error code."""

    CONSISTENCY_ERROR = "CONSISTENCY_ERROR"
    """Remote state changed in a way the caller did not ask for."""

    # --- Catch-all ---
    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Unexpected exception escaping a computation."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.NOT_FOUND, "no certificate found with id 'abc'")
    >>> desc.code
    <ErrorCode.NOT_FOUND: 'NOT_FOUND'>
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            )
        )
        return f"{self.message}\n{tb}"

    def __str__(self) -> str:
        if self.exception is None:
            return f"{self.code.value}: {self.message}"
        return f"{self.code.value}: {self.message}. {self.exception}"
