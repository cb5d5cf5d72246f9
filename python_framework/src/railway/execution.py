"""
Execution contexts — separate WHAT (pure logic) from HOW (side effects).

A pipeline describes what should happen and returns Result[T]; an execution
context decides how it runs (with logging and timing, or as a plain call in
tests). They are never mixed: pipeline stages do not log their own timing.

    ctx = LoggingExecutionContext(operation="Reconcile")
    result = ctx.execute(lambda: reconcile(...))
"""

from __future__ import annotations

import time
from typing import Callable, Protocol, TypeVar, runtime_checkable

import structlog

from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result

T = TypeVar("T")
log = structlog.get_logger("railway.execution")


@runtime_checkable
class ExecutionContext(Protocol):
    """Anything with execute(computation) is an execution context."""

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]: ...


class NoOpExecutionContext:
    """Passthrough execution context — runs the computation as-is."""

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        return computation()


class LoggingExecutionContext:
    """
    Execution context that logs entry, exit, duration, and result state.

    Wraps another context (decorator pattern) to add observability. An
    exception escaping the computation is converted to a TECHNICAL_ERROR
    failure so callers only ever see a Result.
    """

    def __init__(
        self,
        inner: ExecutionContext | None = None,
        operation: str = "unknown",
    ) -> None:
        self._inner = inner or NoOpExecutionContext()
        self._operation = operation

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        log.debug("execution.started", operation=self._operation)
        start = time.monotonic()

        try:
            result = self._inner.execute(computation)
        except Exception as e:
            elapsed = time.monotonic() - start
            log.error(
                "execution.crashed",
                operation=self._operation,
                elapsed_seconds=round(elapsed, 3),
                error=str(e),
            )
            return Failure(
                FailureDescription(ErrorCode.TECHNICAL_ERROR, f"Execution failed: {e}", e)
            )

        elapsed = time.monotonic() - start
        log.info(
            "execution.completed",
            operation=self._operation,
            elapsed_seconds=round(elapsed, 3),
            state="SUCCESS" if result.is_success() else "FAILURE",
        )
        return result
