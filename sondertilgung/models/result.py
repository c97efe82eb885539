"""Success/failure outcome returned by every fallible constructor and calculation."""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")
F = TypeVar("F")


class UnwrapError(ValueError):
    def __init__(self, error: Any) -> None:
        super().__init__(f"called unwrap() on a failed result: {error}")
        self.error = error


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))

    def and_then(self, fn: Callable[[T], "Result[U, E]"]) -> "Result[U, E]":
        return fn(self.value)

    def map_err(self, fn: Callable[[Any], Any]) -> "Ok[T]":
        return self

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def map(self, fn: Callable[[Any], Any]) -> "Err[E]":
        return self

    def and_then(self, fn: Callable[[Any], Any]) -> "Err[E]":
        return self

    def map_err(self, fn: Callable[[E], F]) -> "Err[F]":
        return Err(fn(self.error))

    def unwrap(self):
        raise UnwrapError(self.error)

    def unwrap_or(self, default: T) -> T:
        return default


Result = Union[Ok[T], Err[E]]


def collect(results: Iterable[Result[T, E]]) -> Result[list[T], E]:
    """Gather results into one; the first failure wins and stops iteration."""
    values: list[T] = []
    for result in results:
        if result.is_err():
            return result
        values.append(result.value)
    return Ok(values)
