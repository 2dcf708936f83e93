"""
Update markers for mapped entities.

Markers are stored where SQLAlchemy keeps user metadata: the ``info``
dictionary of a column (field level) and a class attribute (type level).

    @fully_updatable
    class Author(Base):
        ...

    class Profile(Base):
        bio: Mapped[str] = mapped_column(info=updatable())
        created_by: Mapped[str] = mapped_column(info=ignore_on_update())

``fully_updatable`` and ``updatable`` select the fields an auto-update
repository writes back. ``ignore_on_update`` excludes a field from every
update, regardless of the other markers.
"""
from __future__ import annotations

from typing import Any, Dict, TypeVar

from sqlalchemy import inspect

UPDATABLE_KEY = "crudrepo.updatable"
IGNORE_ON_UPDATE_KEY = "crudrepo.ignore_on_update"
FULLY_UPDATABLE_ATTR = "__crudrepo_fully_updatable__"

ModelT = TypeVar("ModelT", bound=type)


def fully_updatable(cls: ModelT) -> ModelT:
    """Class decorator: every readable and writable field is updatable."""
    setattr(cls, FULLY_UPDATABLE_ATTR, True)
    return cls


def updatable(**info: Any) -> Dict[str, Any]:
    """Column ``info`` marking the field as updatable."""
    return {**info, UPDATABLE_KEY: True}


def ignore_on_update(**info: Any) -> Dict[str, Any]:
    """Column ``info`` keeping the field out of every update; it is only written on insert."""
    return {**info, IGNORE_ON_UPDATE_KEY: True}


def is_fully_updatable(model: type) -> bool:
    # Checked on the class itself so the marker does not leak to subclasses.
    return bool(vars(model).get(FULLY_UPDATABLE_ATTR, False))


def _marked(model: type, marker: str) -> frozenset[str]:
    names = set()
    for attr in inspect(model).column_attrs:
        if any(column.info.get(marker) for column in attr.columns):
            names.add(attr.key)
    return frozenset(names)


def updatable_fields(model: type) -> frozenset[str]:
    """Attributes of ``model`` whose column carries the ``updatable`` marker."""
    return _marked(model, UPDATABLE_KEY)


def ignored_on_update(model: type) -> frozenset[str]:
    """Attributes of ``model`` whose column carries the ``ignore_on_update`` marker."""
    return _marked(model, IGNORE_ON_UPDATE_KEY)


__all__ = [
    "fully_updatable",
    "ignore_on_update",
    "ignored_on_update",
    "is_fully_updatable",
    "updatable",
    "updatable_fields",
]
