"""Declared persistence failure raised by the stores."""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError


class StoreError(Exception):
    """Raised when a store cannot complete an operation (connection loss, timeout, constraint)."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        self.message = message
        self.operation = operation
        super().__init__(message)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate SQLAlchemy failures inside the block into StoreError."""
    try:
        yield
    except SQLAlchemyError as e:
        raise StoreError(str(e), operation=operation) from e
