"""
Entity identity model for crudrepo.

A record is any SQLAlchemy-mapped instance whose mapper has exactly one
primary-key column; that column's attribute is the record's key. A key equal
to ``None`` or to its type's zero value (``0``, ``""``) is "unset": the record
has never been persisted and cannot identify a stored row.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Generic, List, TypeVar

from sqlalchemy import inspect
from sqlalchemy.orm import Mapper

from crudrepo.errors import InvalidArgumentError

EntityT = TypeVar("EntityT")


@lru_cache(maxsize=None)
def key_attribute(model: type) -> str:
    """
    Name of the mapped attribute holding the primary key of ``model``.

    Raises
    ------
    InvalidArgumentError
        If ``model`` is not mapped or has a composite primary key.
    """
    mapper: Mapper = inspect(model)
    columns = mapper.primary_key
    if len(columns) != 1:
        raise InvalidArgumentError(
            "model",
            f"{model.__name__} must have exactly one primary-key column, found {len(columns)}.",
        )
    return mapper.get_property_by_column(columns[0]).key


def key_of(entity: Any) -> Any:
    """
    Return the key value of a mapped instance without loading anything.

    The value held by the instance wins; an expired instance falls back to the
    identity it was loaded with.
    """
    state = inspect(entity)
    attribute = key_attribute(type(entity))
    if attribute in state.dict:
        return state.dict[attribute]
    if state.identity is not None:
        return state.identity[0]
    return None


def is_unset_key(key: Any) -> bool:
    """True when ``key`` is the unset sentinel (``None`` or the type's zero value)."""
    if key is None:
        return True
    if isinstance(key, bool):
        return False
    if isinstance(key, (int, str)):
        return key == type(key)()
    return False


def column_attributes(model: type) -> List[str]:
    """Scalar column attributes of ``model``, primary key included; relationships excluded."""
    mapper: Mapper = inspect(model)
    return [attr.key for attr in mapper.column_attrs]


@dataclass
class SynchronizationResult(Generic[EntityT]):
    """
    Outcome of reconciling a stored collection against a desired list.

    ``added`` and ``updated`` partition the desired list; ``removed`` holds the
    stored records whose key no desired record carried.
    """

    added: List[EntityT] = field(default_factory=list)
    updated: List[EntityT] = field(default_factory=list)
    removed: List[EntityT] = field(default_factory=list)

    @property
    def synchronized(self) -> List[EntityT]:
        """The live set after reconciliation: added followed by updated."""
        return [*self.added, *self.updated]


__all__ = [
    "SynchronizationResult",
    "column_attributes",
    "is_unset_key",
    "key_attribute",
    "key_of",
]
