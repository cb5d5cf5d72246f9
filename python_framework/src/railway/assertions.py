"""
pytest helpers for checking Result values.

Each helper returns the thing the test most likely wants next (the value,
the FailureDescription, or the wrapped exception), so checks can be chained:

    error = ResultAssertions.assert_failure(reconcile(...), ErrorCode.NOT_FOUND)
    assert "abc" in error.message
"""

from __future__ import annotations

from typing import Any, TypeVar

from railway.failure import ErrorCode, FailureDescription
from railway.result import Result

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


def _describe(result: Result[Any]) -> str:
    if result.is_success():
        return f"Success({result.value()!r})"
    error = result.error()
    return f"Failure({error.code.value}: {error.message!r})"


def _suffix(note: str) -> str:
    return f" ({note})" if note else ""


class ResultAssertions:
    @staticmethod
    def assert_success(result: Result[T], message: str = "") -> T:
        assert result.is_success(), f"Expected Success, got {_describe(result)}{_suffix(message)}"
        return result.value()

    @staticmethod
    def assert_failure(
        result: Result[T],
        expected_code: ErrorCode | None = None,
        message: str = "",
    ) -> FailureDescription:
        """Fail the test unless `result` is a Failure (with `expected_code`, if given)."""
        assert result.is_failure(), f"Expected Failure, got {_describe(result)}{_suffix(message)}"
        error = result.error()
        if expected_code is not None and error.code is not expected_code:
            raise AssertionError(
                f"Expected {expected_code.value}, got {_describe(result)}{_suffix(message)}"
            )
        return error

    @staticmethod
    def assert_failure_message_contains(result: Result[T], substring: str) -> None:
        """Case-insensitive."""
        error = ResultAssertions.assert_failure(result)
        if substring.lower() not in error.message.lower():
            raise AssertionError(f"{substring!r} not found in failure message {error.message!r}")

    @staticmethod
    def assert_failure_exception(result: Result[T], exception_type: type[E]) -> E:
        """Return the exception the failure wraps, checking its type."""
        cause = ResultAssertions.assert_failure(result).exception
        if not isinstance(cause, exception_type):
            raise AssertionError(
                f"Expected failure caused by {exception_type.__name__}, got {cause!r}"
            )
        return cause

    @staticmethod
    def assert_success_value(result: Result[T], expected_value: Any) -> None:
        actual = ResultAssertions.assert_success(result)
        assert actual == expected_value, f"Expected Success({expected_value!r}), got Success({actual!r})"
