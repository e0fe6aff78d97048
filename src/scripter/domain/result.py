from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from scripter.domain.errors import ExecutionError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Success(Generic[T]):
    """The command ran and exited cleanly. ``value`` is ``None`` when it produced no output."""

    value: Optional[T] = None

    is_success = True
    is_failure = False

    @property
    def error(self) -> None:
        return None

    @property
    def string(self) -> Optional[str]:
        return self.value if isinstance(self.value, str) else None

    def unwrap(self) -> Optional[T]:
        return self.value

    def map(self, fn: Callable[[Optional[T]], U]) -> "Success[U]":
        return Success(fn(self.value))


@dataclass(frozen=True)
class Failure:
    error: ExecutionError

    is_success = False
    is_failure = True

    @property
    def value(self) -> None:
        return None

    @property
    def string(self) -> None:
        return None

    def unwrap(self) -> Any:
        raise self.error

    def map(self, fn: Callable[[Any], Any]) -> "Failure":
        return self


Result = Union[Success[T], Failure]


def result_of(value: Optional[T], error: Optional[ExecutionError]) -> "Result[T]":
    if error is not None:
        return Failure(error)
    return Success(value)
