"""
Error taxonomy for crudrepo.

Argument errors are raised locally, before any store interaction. Store-level
failures (constraint violations, duplicate keys) are not wrapped: they reach
the caller as the SQLAlchemy exception the store raised.
"""

from __future__ import annotations

from typing import Any


class CrudRepositoryError(Exception):
    """Base class for every error raised by crudrepo itself."""


class InvalidArgumentError(CrudRepositoryError, ValueError):
    """A required record, sequence, key sequence or transform was missing."""

    def __init__(self, argument: str, message: str | None = None) -> None:
        self.argument = argument
        super().__init__(message or f"Argument '{argument}' must not be None.")


class NotFoundError(CrudRepositoryError, LookupError):
    """No stored row matches the requested key."""

    def __init__(self, entity: type, key: Any) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"No {entity.__name__} with key {key!r} exists.")


class NoUpdatableFieldsFoundError(CrudRepositoryError):
    """A partial update was requested on a type that carries no updatable markers."""

    def __init__(self, entity: type) -> None:
        self.entity = entity
        super().__init__(f"There were no updatable markers found on type '{entity.__name__}'.")


class NotRegisteredError(CrudRepositoryError):
    """Registry dispatch was used before a session provider was bound."""

    def __init__(self) -> None:
        super().__init__(
            "Session provider not registered. Did you forget to call `use_session`?"
        )


class RepositoryNotFoundError(NotFoundError):
    """No repository is registered for the runtime type of a record."""

    def __init__(self, entity: type) -> None:
        self.entity = entity
        self.key = entity
        CrudRepositoryError.__init__(
            self, f"No repository registered for type '{entity.__name__}'."
        )


__all__ = [
    "CrudRepositoryError",
    "InvalidArgumentError",
    "NotFoundError",
    "NoUpdatableFieldsFoundError",
    "NotRegisteredError",
    "RepositoryNotFoundError",
]
