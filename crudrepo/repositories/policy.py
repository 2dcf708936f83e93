"""
Selective-update policy.

Decides which scalar fields an update writes back to the tracked instance.
The primary key is never written, and fields marked ``ignore_on_update`` are
removed last, whichever selection rule fired.
"""

from __future__ import annotations

import enum
from typing import FrozenSet, Iterable, List, Optional, Union

from crudrepo.domain.markers import ignored_on_update, is_fully_updatable, updatable_fields
from crudrepo.domain.models import column_attributes, key_attribute
from crudrepo.errors import InvalidArgumentError, NoUpdatableFieldsFoundError


class FieldSelection(enum.Enum):
    ALL = "all"


ALL = FieldSelection.ALL

Selection = Union[FieldSelection, FrozenSet[str]]


def fields_to_apply(model: type, fields: Optional[Iterable[str]] = None) -> Selection:
    """
    Resolve the partial-update selection for ``model``.

    An explicit ``fields`` list wins over markers. Otherwise a type marked
    ``fully_updatable`` selects ``ALL`` and field-level ``updatable`` markers
    select exactly the marked fields.

    Raises
    ------
    NoUpdatableFieldsFoundError
        If neither the type nor any field carries a marker.
    InvalidArgumentError
        If ``fields`` names an attribute that is not a column of ``model``.
    """
    if fields is not None:
        selected = frozenset(fields)
        unknown = selected.difference(column_attributes(model))
        if unknown:
            raise InvalidArgumentError(
                "fields",
                f"{model.__name__} has no column attributes named {sorted(unknown)}.",
            )
        return selected
    if is_fully_updatable(model):
        return ALL
    marked = updatable_fields(model)
    if not marked:
        raise NoUpdatableFieldsFoundError(model)
    return marked


def written_fields(model: type, selection: Selection = ALL) -> List[str]:
    """Attribute names an update of ``model`` writes, in mapper order."""
    key = key_attribute(model)
    ignored = ignored_on_update(model)
    return [
        name
        for name in column_attributes(model)
        if name != key
        and name not in ignored
        and (selection is ALL or name in selection)
    ]


__all__ = ["ALL", "FieldSelection", "Selection", "fields_to_apply", "written_fields"]
