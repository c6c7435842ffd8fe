"""
Result - Explicit success/failure values.

Used where a batch must keep going after an individual failure: each item
gets an Ok or an Err instead of an exception unwinding the whole loop.

Example:
    >>> result = Result.try_call(lambda: int("42"))
    >>> result.unwrap()
    42
    >>> Result.try_call(lambda: int("x")).is_err()
    True
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union


T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


class ResultError(Exception):
    """Raised when unwrapping the wrong variant."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def ok(self) -> T | None:
        return self.value

    def err(self) -> None:
        return None

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> Any:
        raise ResultError(f"Called unwrap_err on Ok: {self.value!r}")

    def unwrap_or(self, default: Any) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        return Ok(fn(self.value))

    def map_err(self, fn: Callable[[Any], Any]) -> Ok[T]:
        return self

    def and_then(self, fn: Callable[[T], Result[U, Any]]) -> Result[U, Any]:
        return fn(self.value)

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def ok(self) -> None:
        return None

    def err(self) -> E:
        return self.error

    def unwrap(self) -> Any:
        raise ResultError(f"Called unwrap on Err: {self.error!r}")

    def unwrap_err(self) -> E:
        return self.error

    def unwrap_or(self, default: U) -> U:
        return default

    def map(self, fn: Callable[[Any], Any]) -> Err[E]:
        return self

    def map_err(self, fn: Callable[[E], U]) -> Err[U]:
        return Err(fn(self.error))

    def and_then(self, fn: Callable[[Any], Any]) -> Err[E]:
        return self

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


class Result:
    """Namespace for Result helpers; ``Result[T, E]`` is ``Ok[T] | Err[E]``."""

    def __class_getitem__(cls, params: Any) -> Any:
        ok_type, err_type = params
        return Union[Ok[ok_type], Err[err_type]]  # noqa: UP007

    @staticmethod
    def try_call(fn: Callable[[], T]) -> Ok[T] | Err[Exception]:
        """Call ``fn`` and capture any Exception as an Err."""
        try:
            return Ok(fn())
        except Exception as e:
            return Err(e)


__all__ = ["Err", "Ok", "Result", "ResultError"]
