"""Errors raised by the storage-facing services."""
from typing import Optional


class StoreError(Exception):
    """A call to the external store failed; the enclosing operation is aborted."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message
