"""
Default CRUD repository over a SQLAlchemy ``AsyncSession``.

Every public write is one unit of work: mutations are staged on the session
and committed once at the end of the call. While an explicit
``transaction`` scope is open on the session each write runs in a savepoint
and leaves commit/rollback to the scope. A failed write rolls back the
session (or its savepoint), so no staged mutation of a failed call survives
into the next commit.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, List, Optional, Type

from sqlalchemy import Select, exists, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from crudrepo.domain.models import (
    SynchronizationResult,
    column_attributes,
    is_unset_key,
    key_attribute,
    key_of,
)
from crudrepo.errors import InvalidArgumentError, NotFoundError
from crudrepo.infrastructure.db_factory import in_transaction_scope, transaction
from crudrepo.repositories.abstract import (
    AbstractCrudRepository,
    EntityT,
    QueryTransform,
    SourceQuery,
)
from crudrepo.repositories.identity import is_tracked, resolve
from crudrepo.repositories.policy import ALL, Selection, written_fields
from crudrepo.repositories.synchronization import synchronize
from crudrepo.utils.logging import get_logger

log = get_logger(__name__)


def _require_items(items: Optional[Iterable[Any]], argument: str) -> List[Any]:
    """Materialize ``items``; None, or a None member, is rejected before any store call."""
    if items is None:
        raise InvalidArgumentError(argument)
    materialized = list(items)
    if any(item is None for item in materialized):
        raise InvalidArgumentError(argument, f"Argument '{argument}' must not contain None.")
    return materialized


class SqlAlchemyCrudRepository(AbstractCrudRepository[EntityT, Any]):
    """
    Repository for one mapped entity type, bound to one session.

    Parameters
    ----------
    session : AsyncSession
        The unit of work this repository operates in. Not safe for concurrent
        use; share it only between sequential calls.
    model : type
        Mapped class with a single-column primary key.
    """

    def __init__(self, session: AsyncSession, model: Type[EntityT]) -> None:
        if session is None:
            raise InvalidArgumentError("session")
        if model is None:
            raise InvalidArgumentError("model")
        self._session = session
        self.model = model
        self._key = key_attribute(model)

    @property
    def session(self) -> AsyncSession:
        """The session (unit of work) this repository is bound to."""
        return self._session

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model.__name__})"

    # Reads

    def as_queryable(self) -> Select:
        return select(self.model)

    async def fetch_all(self, statement: Select) -> List[EntityT]:
        """Execute ``statement`` and return its entities."""
        if statement is None:
            raise InvalidArgumentError("statement")
        result = await self._session.scalars(statement)
        return list(result.all())

    async def query(self, transform: QueryTransform) -> List[EntityT]:
        """Run ``transform(as_queryable())``, e.g. to add filters or loader options."""
        if transform is None:
            raise InvalidArgumentError("transform")
        return await self.fetch_all(transform(self.as_queryable()))

    async def get_all(self) -> List[EntityT]:
        return await self.fetch_all(self.as_queryable())

    async def get_by_id(self, key: Any) -> Optional[EntityT]:
        if is_unset_key(key):
            return None
        return await self._session.get(self.model, key)

    async def exists_in_store(self, entity: EntityT) -> bool:
        """
        True when ``entity`` has a set key and is tracked or has a stored row.
        """
        if entity is None:
            raise InvalidArgumentError("entity")
        key = key_of(entity)
        if is_unset_key(key):
            return False
        if is_tracked(self._session, self.model, entity):
            return True
        column = getattr(self.model, self._key)
        return bool(await self._session.scalar(select(exists().where(column == key))))

    # Writes

    @asynccontextmanager
    async def _unit_of_work(self, operation: str) -> AsyncIterator[None]:
        if in_transaction_scope(self._session):
            # Savepoint: a failed call leaves the enclosing scope as it was.
            async with self._session.begin_nested():
                yield
            return
        try:
            yield
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            log.debug(
                f"{self.model.__name__}.{operation} rolled back",
                extra={"entity": self.model.__name__, "operation": operation},
            )
            raise

    async def create(self, entity: EntityT) -> EntityT:
        if entity is None:
            raise InvalidArgumentError("entity")
        async with self._unit_of_work("create"):
            self._session.add(entity)
        log.debug(
            f"{self.model.__name__} created",
            extra={"entity": self.model.__name__, "key": key_of(entity)},
        )
        return entity

    async def create_many(self, entities: Iterable[EntityT]) -> List[EntityT]:
        items = _require_items(entities, "entities")
        if not items:
            return items
        async with self._unit_of_work("create_many"):
            self._session.add_all(items)
        log.debug(
            f"{self.model.__name__} batch created",
            extra={"entity": self.model.__name__, "count": len(items)},
        )
        return items

    async def update(self, entity: EntityT) -> EntityT:
        """
        Write ``entity``'s values to its stored row and return the tracked instance.

        A tracked counterpart (same instance or same key) receives the values
        in place; a detached record is merged into the row loaded by key.

        Raises
        ------
        NotFoundError
            If no row carries the record's key.
        """
        if entity is None:
            raise InvalidArgumentError("entity")
        async with self._unit_of_work("update"):
            tracked = await self._stage_update(entity)
        log.debug(
            f"{self.model.__name__} updated",
            extra={"entity": self.model.__name__, "key": key_of(tracked)},
        )
        return tracked

    async def update_many(self, entities: Iterable[EntityT]) -> List[EntityT]:
        items = _require_items(entities, "entities")
        if not items:
            return items
        async with self._unit_of_work("update_many"):
            updated = [await self._stage_update(item) for item in items]
        log.debug(
            f"{self.model.__name__} batch updated",
            extra={"entity": self.model.__name__, "count": len(updated)},
        )
        return updated

    async def save(self, entity: EntityT) -> EntityT:
        """Update when ``entity`` exists in the store, create it otherwise."""
        if entity is None:
            raise InvalidArgumentError("entity")
        if await self.exists_in_store(entity):
            return await self.update(entity)
        return await self.create(entity)

    async def save_many(self, entities: Iterable[EntityT], atomic: bool = False) -> List[EntityT]:
        """
        Save each record in input order.

        Only the records' own columns are written; related objects are not
        cascaded. With ``atomic=True`` every save shares one transaction scope,
        otherwise each save commits on its own.
        """
        items = _require_items(entities, "entities")
        if not atomic:
            return [await self.save(item) for item in items]
        async with transaction(self._session):
            return [await self.save(item) for item in items]

    async def delete(self, entity: EntityT) -> Optional[EntityT]:
        """
        Remove ``entity`` and return the removed instance.

        Untracked records are deleted by key; None is returned when no row
        matched.
        """
        if entity is None:
            raise InvalidArgumentError("entity")
        async with self._unit_of_work("delete"):
            removed = await self._stage_delete(entity)
        if removed is not None:
            log.debug(
                f"{self.model.__name__} deleted",
                extra={"entity": self.model.__name__, "key": key_of(removed)},
            )
        return removed

    async def delete_many(self, entities: Iterable[EntityT]) -> List[EntityT]:
        items = _require_items(entities, "entities")
        if not items:
            return items
        async with self._unit_of_work("delete_many"):
            staged = [await self._stage_delete(item) for item in items]
        removed = [item for item in staged if item is not None]
        log.debug(
            f"{self.model.__name__} batch deleted",
            extra={"entity": self.model.__name__, "count": len(removed)},
        )
        return removed

    async def delete_by_id(self, key: Any) -> Optional[EntityT]:
        async with self._unit_of_work("delete_by_id"):
            removed = await self._stage_delete_by_id(key)
        if removed is not None:
            log.debug(
                f"{self.model.__name__} deleted by key",
                extra={"entity": self.model.__name__, "key": key},
            )
        return removed

    async def delete_many_by_id(self, keys: Iterable[Any]) -> List[EntityT]:
        items = _require_items(keys, "keys")
        if not items:
            return []
        async with self._unit_of_work("delete_many_by_id"):
            staged = [await self._stage_delete_by_id(key) for key in items]
        removed = [item for item in staged if item is not None]
        log.debug(
            f"{self.model.__name__} batch deleted by key",
            extra={"entity": self.model.__name__, "count": len(removed)},
        )
        return removed

    async def synchronize_collection(
        self,
        source: SourceQuery,
        desired: Iterable[EntityT],
        atomic: bool = False,
    ) -> SynchronizationResult[EntityT]:
        return await synchronize(self, source, desired, atomic=atomic)

    # Staging helpers: mutate the session, never commit.

    def _written_fields(self) -> List[str]:
        return written_fields(self.model, self._selection())

    def _selection(self) -> Selection:
        return ALL

    async def _load_for_update(self, entity: EntityT) -> EntityT:
        tracked, found = resolve(self._session, self.model, entity)
        if found:
            return tracked
        key = key_of(entity)
        stored = await self._get_live(key)
        if stored is None:
            raise NotFoundError(self.model, key)
        return stored

    async def _get_live(self, key: Any) -> Optional[EntityT]:
        """``get_by_id`` that treats rows already marked for deletion as absent."""
        stored = await self.get_by_id(key)
        if stored is None or stored in self._session.deleted:
            return None
        return stored

    async def _stage_update(self, entity: EntityT) -> EntityT:
        tracked = await self._load_for_update(entity)
        fields = self._written_fields()
        if tracked is not entity:
            values = inspect(entity).dict
            for name in fields:
                if name in values:
                    setattr(tracked, name, values[name])
        await self._restore_unwritten(tracked, fields)
        return tracked

    async def _restore_unwritten(self, tracked: EntityT, fields: List[str]) -> None:
        """Return every column outside ``fields`` to its persisted value."""
        state = inspect(tracked)
        if not state.persistent:
            return
        keep = set(fields)
        keep.add(self._key)
        reload: List[str] = []
        for name in column_attributes(self.model):
            if name in keep:
                continue
            history = state.attrs[name].history
            if not history.has_changes():
                continue
            if history.deleted:
                set_committed_value(tracked, name, history.deleted[0])
            else:
                # Original value was never loaded.
                reload.append(name)
        if reload:
            with self._session.no_autoflush:
                await self._session.refresh(tracked, attribute_names=reload)

    async def _remove(self, tracked: EntityT) -> None:
        if inspect(tracked).pending:
            self._session.expunge(tracked)
        else:
            await self._session.delete(tracked)

    async def _stage_delete(self, entity: EntityT) -> Optional[EntityT]:
        tracked, found = resolve(self._session, self.model, entity)
        if not found:
            return await self._stage_delete_by_id(key_of(entity))
        await self._remove(tracked)
        return tracked

    async def _stage_delete_by_id(self, key: Any) -> Optional[EntityT]:
        stored = await self._get_live(key)
        if stored is None:
            return None
        await self._remove(stored)
        return stored


def crud_repository(session: AsyncSession, model: Type[EntityT]) -> SqlAlchemyCrudRepository[EntityT]:
    """Default repository for ``model`` on ``session``."""
    return SqlAlchemyCrudRepository(session, model)


__all__ = ["SqlAlchemyCrudRepository", "crud_repository"]
