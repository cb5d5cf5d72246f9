"""
Railway-Oriented Programming (ROP) helpers.

Explicit, composable error handling — adapters and pipelines return Result
instead of raising.

    from railway import ErrorCode, Result

    def require_selector(target_id: str | None) -> Result[str]:
        if not target_id:
            return Result.failure(ErrorCode.CONFIGURATION_ERROR, "no certificate id")
        return Result.success(target_id)
"""

from railway.assertions import ResultAssertions
from railway.execution import (
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
)
from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result, Success

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]

__version__ = "1.1.0"
