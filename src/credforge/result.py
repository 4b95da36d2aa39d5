"""Tagged result type returned by every fallible public operation."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from .exceptions import CredentialError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either ``data`` or ``error`` is set, never both.

    Example:
        result = await manager.get_migration_stats()
        if result.is_ok:
            print(result.data.projects_complete)
        else:
            logger.error(result.error.message)
    """

    data: Optional[T] = None
    error: Optional[CredentialError] = None

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        return cls(data=data, error=None)

    @classmethod
    def failure(cls, error: BaseException, **context) -> "Result[T]":
        """Wrap any exception as a failed result."""
        return cls(data=None, error=CredentialError.from_exception(error, context or None))

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return data or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.data
