"""
Repository contract for crudrepo.

Concrete repositories (the SQLAlchemy-backed default, the auto-update variant,
or custom subclasses registered with the RepositoryRegistry) implement the
CrudRepository protocol so calling code and the synchronization engine can
treat them interchangeably.
"""

from __future__ import annotations

import abc
from typing import (
    Any,
    Callable,
    Generic,
    Iterable,
    List,
    Optional,
    Protocol,
    TypeVar,
    Union,
    runtime_checkable,
)

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from crudrepo.domain.models import SynchronizationResult

EntityT = TypeVar("EntityT")
KeyT = TypeVar("KeyT")

QueryTransform = Callable[[Select], Select]
SourceQuery = Union[Select, QueryTransform]


@runtime_checkable
class CrudRepository(Protocol[EntityT]):
    """
    Common interface every repository implements.

    Attributes
    ----------
    model : type
        The mapped entity class the repository manages.
    session : AsyncSession
        The unit of work the repository is bound to.
    """

    model: type

    @property
    def session(self) -> AsyncSession:
        ...

    def as_queryable(self) -> Select:
        """Composable read statement over every row of the entity."""
        ...

    async def fetch_all(self, statement: Select) -> List[EntityT]:
        ...

    async def query(self, transform: QueryTransform) -> List[EntityT]:
        ...

    async def get_all(self) -> List[EntityT]:
        ...

    async def get_by_id(self, key: Any) -> Optional[EntityT]:
        ...

    async def create(self, entity: EntityT) -> EntityT:
        ...

    async def create_many(self, entities: Iterable[EntityT]) -> List[EntityT]:
        ...

    async def update(self, entity: EntityT) -> EntityT:
        ...

    async def update_many(self, entities: Iterable[EntityT]) -> List[EntityT]:
        ...

    async def save(self, entity: EntityT) -> EntityT:
        ...

    async def save_many(self, entities: Iterable[EntityT], atomic: bool = False) -> List[EntityT]:
        ...

    async def delete(self, entity: EntityT) -> Optional[EntityT]:
        ...

    async def delete_many(self, entities: Iterable[EntityT]) -> List[EntityT]:
        ...

    async def delete_by_id(self, key: Any) -> Optional[EntityT]:
        ...

    async def delete_many_by_id(self, keys: Iterable[Any]) -> List[EntityT]:
        ...

    async def exists_in_store(self, entity: EntityT) -> bool:
        ...

    async def synchronize_collection(
        self,
        source: SourceQuery,
        desired: Iterable[EntityT],
        atomic: bool = False,
    ) -> SynchronizationResult[EntityT]:
        """
        Reconcile the rows selected by ``source`` against ``desired``.

        Parameters
        ----------
        source : Select | callable
            The current persisted set, as a statement or as a transform applied
            to ``as_queryable()``.
        desired : iterable
            The complete list that should replace the selected rows.
        atomic : bool
            Run all three phases in one transaction scope.

        Returns
        -------
        SynchronizationResult
            The added, updated and removed records.
        """
        ...


class AbstractCrudRepository(abc.ABC, Generic[EntityT, KeyT]):
    """
    Optional ABC helper for class-based implementations.

    Subclasses set ``model`` in their constructor and implement at least the
    point operations below.
    """

    model: type

    @abc.abstractmethod
    def as_queryable(self) -> Select:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def get_by_id(self, key: KeyT) -> Optional[EntityT]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    async def create(self, entity: EntityT) -> EntityT:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    async def update(self, entity: EntityT) -> EntityT:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    async def delete_by_id(self, key: KeyT) -> Optional[EntityT]:  # pragma: no cover
        raise NotImplementedError


__all__ = [
    "AbstractCrudRepository",
    "CrudRepository",
    "QueryTransform",
    "SourceQuery",
]
