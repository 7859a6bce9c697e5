"""Ok/Err result type for failures callers are expected to handle.

Match on the variants where both outcomes are reported (the CLI), or
``unwrap()`` where an ``Err`` is a bug.
"""

from dataclasses import dataclass
from typing import Any, final


class UnwrapError(Exception):
    """Raised when ``unwrap()`` is called on an ``Err``."""

    def __init__(self, error: Any) -> None:
        self.error = error
        message = getattr(error, "message", error)
        super().__init__(f"Called unwrap on Err: {message}")


@final
@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T

    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@final
@dataclass(frozen=True, slots=True)
class Err[E]:
    error: E

    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise UnwrapError(self.error)


type Result[T, E] = Ok[T] | Err[E]
