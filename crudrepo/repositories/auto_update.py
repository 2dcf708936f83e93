"""
Repository that writes back only the fields selected by update markers.
"""

from __future__ import annotations

from typing import Iterable, Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession

from crudrepo.repositories.abstract import EntityT
from crudrepo.repositories.policy import Selection, fields_to_apply
from crudrepo.repositories.sqlalchemy_repository import SqlAlchemyCrudRepository


class AutoUpdateCrudRepository(SqlAlchemyCrudRepository[EntityT]):
    """
    CRUD repository whose updates are restricted by the selective-update policy.

    The entity type must be decorated with ``fully_updatable`` or have fields
    declared with ``info=updatable()``; otherwise ``update`` raises
    ``NoUpdatableFieldsFoundError``. Passing ``fields`` pins the written set
    explicitly instead of reading markers. Fields outside the set keep their
    stored values even when the caller changed them on the tracked instance.
    """

    def __init__(
        self,
        session: AsyncSession,
        model: Type[EntityT],
        fields: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(session, model)
        self._fields = None if fields is None else frozenset(fields)
        if self._fields is not None:
            fields_to_apply(model, self._fields)

    def _selection(self) -> Selection:
        return fields_to_apply(self.model, self._fields)


__all__ = ["AutoUpdateCrudRepository"]
