"""
Vault Results: Explicit outcome of key and cipher operations.

The core never raises to its callers. Internally every operation returns a
``Result`` that records why it failed; the public methods collapse it to
``value or None``.
"""
from enum import Enum
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Outcome(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    IO_FAILURE = "io_failure"
    CRYPTO_FAILURE = "crypto_failure"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Value-or-failure returned by the vault core."""

    outcome: Outcome
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(Outcome.OK, value)

    @classmethod
    def not_found(cls) -> "Result[T]":
        return cls(Outcome.NOT_FOUND)

    @classmethod
    def io_failure(cls, error: BaseException) -> "Result[T]":
        return cls(Outcome.IO_FAILURE, error=error)

    @classmethod
    def crypto_failure(cls, error: BaseException) -> "Result[T]":
        return cls(Outcome.CRYPTO_FAILURE, error=error)

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    def or_none(self) -> Optional[T]:
        """Public-boundary view: the value on success, otherwise None."""
        return self.value if self.ok else None
