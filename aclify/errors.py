"""Exceptions raised by the aclify engine."""

from __future__ import annotations


class AclError(Exception):
    """Base class for aclify errors."""


class InvalidArgumentError(AclError, ValueError):
    """An identifier or grant record has the wrong type or shape.

    Raised before the store is touched, so no partial writes are possible.
    """


class CleanupError(AclError):
    """The follow-up phase of a multi-phase operation failed.

    The first phase has already been committed. The original store error is
    available as ``__cause__``. Re-running the whole operation is safe.
    """

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
