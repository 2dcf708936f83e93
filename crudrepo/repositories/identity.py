"""
Tracked-identity resolution against a session's working set.

The working set is what the session currently tracks for one unit of work:
the identity map (persistent instances) plus pending instances, minus those
marked for deletion. Resolution is a read-only probe; it never touches the
store.
"""

from __future__ import annotations

from itertools import chain
from typing import Any, Iterator, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from crudrepo.domain.models import is_unset_key, key_of
from crudrepo.errors import InvalidArgumentError


def working_set(session: AsyncSession, model: type) -> Iterator[Any]:
    """Yield the instances of ``model`` tracked by ``session``."""
    deleted = session.deleted
    for instance in chain(session.identity_map.values(), session.new):
        if isinstance(instance, model) and instance not in deleted:
            yield instance


def resolve(session: AsyncSession, model: type, candidate: Any) -> Tuple[Optional[Any], bool]:
    """
    Find the tracked counterpart of ``candidate``.

    A tracked instance matches when it is ``candidate`` itself or carries the
    same key. Candidates with an unset key only ever match by reference.

    Returns
    -------
    tuple
        ``(tracked, True)`` on a match, ``(None, False)`` otherwise.

    Raises
    ------
    InvalidArgumentError
        If ``candidate`` is None.
    """
    if candidate is None:
        raise InvalidArgumentError("entity")

    if candidate in session and candidate not in session.deleted:
        return candidate, True

    key = key_of(candidate)
    if is_unset_key(key):
        return None, False

    for tracked in working_set(session, model):
        if key_of(tracked) == key:
            return tracked, True
    return None, False


def is_tracked(session: AsyncSession, model: type, candidate: Any) -> bool:
    """Shorthand for ``resolve(...)[1]``."""
    return resolve(session, model, candidate)[1]


__all__ = ["is_tracked", "resolve", "working_set"]
