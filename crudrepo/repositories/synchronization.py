"""
Collection synchronization (reconciliation) engine.

Replaces a stored collection, for example the children of one parent, with a
desired master list:

1. materialize the current rows selected by ``source``;
2. split ``desired`` into records to create (unset key, or no tracked
   instance and no stored row) and records to update;
3. mark for removal every current row whose key no desired record carries;
4. apply creates, then updates, then removals through the repository.

Removal is a key-based set difference, so a row present in both lists is
updated, never removed. Everything is decided before the first write: keys
assigned by the create phase cannot be mistaken for removable rows.
"""

from __future__ import annotations

from typing import Iterable, List

from sqlalchemy import Select

from crudrepo.domain.models import SynchronizationResult, is_unset_key, key_of
from crudrepo.errors import InvalidArgumentError
from crudrepo.infrastructure.db_factory import transaction
from crudrepo.repositories.abstract import CrudRepository, EntityT, SourceQuery
from crudrepo.utils.logging import get_logger

log = get_logger(__name__)


async def synchronize(
    repository: CrudRepository[EntityT],
    source: SourceQuery,
    desired: Iterable[EntityT],
    atomic: bool = False,
) -> SynchronizationResult[EntityT]:
    """
    Reconcile the rows selected by ``source`` against ``desired``.

    Parameters
    ----------
    repository : CrudRepository
        Repository of the synchronized entity; all writes go through it.
    source : Select | callable
        The current persisted set, either as a statement or as a transform
        applied to ``repository.as_queryable()``.
    desired : iterable
        The complete list the selected rows should be replaced with.
    atomic : bool
        Run all three phases in one transaction scope so that either all of
        them are visible or none is. Without it each phase commits on its own
        and the first failure is raised with earlier phases already committed.

    Returns
    -------
    SynchronizationResult
        ``added`` (with assigned keys), ``updated`` (tracked instances) and
        ``removed``.
    """
    if source is None:
        raise InvalidArgumentError("source")
    if desired is None:
        raise InvalidArgumentError("desired")
    desired_items = list(desired)
    if any(item is None for item in desired_items):
        raise InvalidArgumentError("desired", "Argument 'desired' must not contain None.")

    if not atomic:
        return await _reconcile(repository, source, desired_items)
    async with transaction(repository.session):
        return await _reconcile(repository, source, desired_items)


async def _reconcile(
    repository: CrudRepository[EntityT],
    source: SourceQuery,
    desired: List[EntityT],
) -> SynchronizationResult[EntityT]:
    statement = source if isinstance(source, Select) else source(repository.as_queryable())
    current = await repository.fetch_all(statement)

    to_create: List[EntityT] = []
    to_update: List[EntityT] = []
    for item in desired:
        if await repository.exists_in_store(item):
            to_update.append(item)
        else:
            to_create.append(item)

    desired_keys = {key_of(item) for item in desired if not is_unset_key(key_of(item))}
    to_remove = [item for item in current if key_of(item) not in desired_keys]

    result = SynchronizationResult(
        added=await repository.create_many(to_create),
        updated=await repository.update_many(to_update),
        removed=await repository.delete_many(to_remove),
    )
    log.info(
        f"{repository.model.__name__} collection synchronized",
        extra={
            "entity": repository.model.__name__,
            "current": len(current),
            "added": len(result.added),
            "updated": len(result.updated),
            "removed": len(result.removed),
        },
    )
    return result


__all__ = ["synchronize"]
