"""
Result — a value on one of two tracks.

Adapters return Result instead of raising, and stages are chained with
flat_map: the first Failure skips every later stage and comes out the end
unchanged.

    load pair ──ok──▶ login ──ok──▶ list ──ok──▶ decide ──▶ Result[Outcome]
        │               │             │             │
        └─── failure ───┴─────────────┴─────────────┴──────▶ Result[Outcome]

Success and Failure each implement the operations for their own track, so
no operation needs to inspect which track it is on. Both support structural
pattern matching:

    match catalog.list_certificates():
        case Success(certificates): ...
        case Failure(error): ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from railway.failure import ErrorCode, FailureDescription

T = TypeVar("T")
U = TypeVar("U")
A = TypeVar("A")
B = TypeVar("B")
R = TypeVar("R")


class Result(ABC, Generic[T]):
    """
    Either Success(value) or Failure(FailureDescription).

        >>> Result.success(21).map(lambda x: x * 2).value()
        42
        >>> Result.failure(ErrorCode.NOT_FOUND, "gone").map(lambda x: x * 2).is_failure()
        True
    """

    __slots__ = ()

    @abstractmethod
    def is_success(self) -> bool: ...

    def is_failure(self) -> bool:
        return not self.is_success()

    @abstractmethod
    def value(self) -> T:
        """The success value; ValueError on a Failure."""

    @abstractmethod
    def error(self) -> FailureDescription:
        """The failure description; ValueError on a Success."""

    @abstractmethod
    def either(
        self,
        on_success: Callable[[T], R],
        on_failure: Callable[[FailureDescription], R],
    ) -> R:
        """Fold both tracks into one value."""

    @abstractmethod
    def map(self, mapper: Callable[[T], U]) -> Result[U]: ...

    @abstractmethod
    def map_failure(
        self, mapper: Callable[[FailureDescription], FailureDescription]
    ) -> Result[T]:
        """
        Rewrite the failure, e.g. to re-label a transport error as a login error:

            execute(request).map_failure(
                lambda err: FailureDescription(ErrorCode.AUTHENTICATION_ERROR, err.message, err.exception)
            )
        """

    @abstractmethod
    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        """Run the next Result-returning stage; a Failure skips it."""

    def ensure(
        self,
        predicate: Callable[[T], bool],
        error: FailureDescription | ErrorCode,
        message: str = "",
    ) -> Result[T]:
        """
        Turn a Success into a Failure when `predicate` rejects its value.

            upload(...).ensure(lambda new_id: new_id == old_id, ErrorCode.CONSISTENCY_ERROR, "id changed")
        """
        failure = (
            FailureDescription(code=error, message=message)
            if isinstance(error, ErrorCode)
            else error
        )

        def check(v: T) -> Result[T]:
            return Success(v) if predicate(v) else Failure(failure)

        return self.flat_map(check)

    @abstractmethod
    def peek(self, action: Callable[[T], Any]) -> Result[T]:
        """Call `action` with the success value (usually to log); returns self."""

    @abstractmethod
    def peek_failure(self, action: Callable[[FailureDescription], Any]) -> Result[T]: ...

    def __bool__(self) -> bool:
        return self.is_success()

    # ─────────────── constructors ───────────────

    @staticmethod
    def success(value: T) -> Result[T]:
        return Success(value)

    @staticmethod
    def failure_from(error: FailureDescription) -> Result[T]:
        return Failure(error)

    @staticmethod
    def failure(
        code: ErrorCode,
        message: str,
        exception: BaseException | None = None,
    ) -> Result[T]:
        """
        Shorthand for Failure(FailureDescription(code, message, exception)).

            Result.failure(ErrorCode.PROTOCOL_ERROR, "import response has no id")
        """
        return Failure(FailureDescription(code, message, exception))

    @staticmethod
    def from_computation(
        computation: Callable[[], T],
        error_code: ErrorCode,
        error_message: str,
    ) -> Result[T]:
        """
        Run `computation`; an exception it raises becomes a Failure that keeps it.

            Result.from_computation(
                lambda: Path(cert_path).read_bytes(),
                ErrorCode.LOCAL_CERTIFICATE_ERROR,
                f"failed to read {cert_path}",
            )
        """
        try:
            return Success(computation())
        except Exception as e:
            return Failure(FailureDescription(error_code, error_message, e))

    @staticmethod
    def combine(
        ra: Result[A],
        rb: Result[B],
        combiner: Callable[[A, B], R],
    ) -> Result[R]:
        """combiner(a, b) when both succeed, else the first Failure."""
        return ra.flat_map(lambda a: rb.map(lambda b: combiner(a, b)))

    @staticmethod
    def all_of(results: list[Result[T]]) -> Result[list[T]]:
        """All values in order, or the first Failure in the list."""
        values: list[T] = []
        for result in results:
            if result.is_failure():
                return Failure(result.error())
            values.append(result.value())
        return Success(values)


@dataclass(frozen=True, slots=True, eq=False, repr=False, init=False)
class Success(Result[T]):
    """The ok track. None is not a valid value."""

    _value: T

    __match_args__ = ("_value",)

    def __init__(self, value: T) -> None:
        if value is None:
            raise TypeError("Success value must not be None")
        object.__setattr__(self, "_value", value)

    def is_success(self) -> bool:
        return True

    def value(self) -> T:
        return self._value

    def error(self) -> FailureDescription:
        raise ValueError(f"Cannot get error from a Success: {self._value!r}")

    def either(self, on_success, on_failure):
        return on_success(self._value)

    def map(self, mapper):
        return Success(mapper(self._value))

    def map_failure(self, mapper):
        return self

    def flat_map(self, mapper):
        return mapper(self._value)

    def peek(self, action):
        action(self._value)
        return self

    def peek_failure(self, action):
        return self

    def __repr__(self) -> str:
        return f"Success({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Success):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash((Success, self._value))


@dataclass(frozen=True, slots=True, eq=False, repr=False, init=False)
class Failure(Result[T]):
    """The error track. Equality ignores the exception and the timestamp."""

    _error: FailureDescription

    __match_args__ = ("_error",)

    def __init__(self, error: FailureDescription) -> None:
        if error is None:
            raise TypeError("Failure error must not be None")
        object.__setattr__(self, "_error", error)

    def is_success(self) -> bool:
        return False

    def value(self) -> T:
        raise ValueError(f"Cannot get value from a Failure: {self._error.message}")

    def error(self) -> FailureDescription:
        return self._error

    def either(self, on_success, on_failure):
        return on_failure(self._error)

    def map(self, mapper):
        return self

    def map_failure(self, mapper):
        return Failure(mapper(self._error))

    def flat_map(self, mapper):
        return self

    def peek(self, action):
        return self

    def peek_failure(self, action):
        action(self._error)
        return self

    def __repr__(self) -> str:
        return f"Failure({self._error.code.value}: {self._error.message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Failure):
            return NotImplemented
        return (self._error.code, self._error.message) == (other._error.code, other._error.message)

    def __hash__(self) -> int:
        return hash((Failure, self._error.code, self._error.message))
