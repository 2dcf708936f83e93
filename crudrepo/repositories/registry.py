"""
Repository registry and model-operation dispatch.

Maps entity types to repository factories with a lifetime hint and routes
"save this record" style calls to the repository registered for the record's
runtime type. The registry is an explicit object passed to whoever needs it;
there is no process-wide instance.

Usage:
    registry = RepositoryRegistry()
    registry.add_repository(Author).add_repository(Book, lifetime=Lifetime.SCOPED)
    registry.use_session(session)

    await registry.save(Author(name="A1"))
    books = registry.resolve(Book)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from crudrepo.config import get_settings
from crudrepo.errors import InvalidArgumentError, NotRegisteredError, RepositoryNotFoundError
from crudrepo.repositories.abstract import CrudRepository
from crudrepo.repositories.sqlalchemy_repository import SqlAlchemyCrudRepository
from crudrepo.utils.logging import get_logger

log = get_logger(__name__)

RepositoryFactory = Callable[[AsyncSession], CrudRepository]
SessionProvider = Callable[[], AsyncSession]


class Lifetime(str, enum.Enum):
    """How long a resolved repository instance is reused."""

    TRANSIENT = "transient"  # new instance per resolve
    SCOPED = "scoped"  # one instance per session (unit of work)
    SINGLETON = "singleton"  # one instance per registry, bound to the first session


@dataclass(frozen=True)
class RepositoryBinding:
    model: type
    factory: RepositoryFactory
    lifetime: Lifetime


class RepositoryRegistry:
    """
    Registry of repository bindings plus the session provider used for dispatch.

    Parameters
    ----------
    default_lifetime : Lifetime | str, optional
        Lifetime for registrations that do not name one. Defaults to the
        ``REPOSITORY_LIFETIME`` setting.
    """

    def __init__(self, default_lifetime: Union[Lifetime, str, None] = None) -> None:
        self.default_lifetime = Lifetime(default_lifetime or get_settings().repository_lifetime)
        self._bindings: Dict[type, RepositoryBinding] = {}
        self._singletons: Dict[type, CrudRepository] = {}
        self._session_provider: Optional[SessionProvider] = None
        self._scope_key = f"crudrepo.scoped_repositories.{id(self)}"

    def add_repository(
        self,
        model: type,
        lifetime: Union[Lifetime, str, None] = None,
        repository_class: Callable[[AsyncSession, type], CrudRepository] = SqlAlchemyCrudRepository,
    ) -> "RepositoryRegistry":
        """Register ``repository_class(session, model)`` for ``model``."""
        return self.add_custom_repository(
            model, lambda session: repository_class(session, model), lifetime
        )

    def add_custom_repository(
        self,
        model: type,
        factory: RepositoryFactory,
        lifetime: Union[Lifetime, str, None] = None,
    ) -> "RepositoryRegistry":
        """Register an arbitrary ``factory(session)`` for ``model``; replaces earlier bindings."""
        if model is None:
            raise InvalidArgumentError("model")
        if factory is None:
            raise InvalidArgumentError("factory")
        binding = RepositoryBinding(model, factory, Lifetime(lifetime or self.default_lifetime))
        self._bindings[model] = binding
        self._singletons.pop(model, None)
        log.debug(
            f"Repository registered for {model.__name__}",
            extra={"entity": model.__name__, "lifetime": binding.lifetime.value},
        )
        return self

    def is_registered(self, model: type) -> bool:
        return model in self._bindings

    def use_session(self, provider: Union[SessionProvider, AsyncSession]) -> "RepositoryRegistry":
        """Bind the session (or a zero-argument session provider) used by dispatch."""
        if provider is None:
            raise InvalidArgumentError("provider")
        if isinstance(provider, AsyncSession):
            session = provider
            self._session_provider = lambda: session
        else:
            self._session_provider = provider
        return self

    def reset(self) -> None:
        """Drop every binding, cached instance and the session provider."""
        self._bindings.clear()
        self._singletons.clear()
        self._session_provider = None

    def resolve(self, model: type, session: Optional[AsyncSession] = None) -> CrudRepository:
        """
        Repository registered for ``model``.

        Raises
        ------
        NotRegisteredError
            If ``session`` is omitted and no session provider was bound.
        RepositoryNotFoundError
            If nothing is registered for ``model``.
        """
        if session is None:
            session = self._current_session()
        binding = self._bindings.get(model)
        if binding is None:
            raise RepositoryNotFoundError(model)

        if binding.lifetime is Lifetime.TRANSIENT:
            return binding.factory(session)
        if binding.lifetime is Lifetime.SCOPED:
            scoped = session.info.setdefault(self._scope_key, {})
            if model not in scoped:
                scoped[model] = binding.factory(session)
            return scoped[model]
        if model not in self._singletons:
            self._singletons[model] = binding.factory(session)
        return self._singletons[model]

    def _current_session(self) -> AsyncSession:
        if self._session_provider is None:
            raise NotRegisteredError()
        return self._session_provider()

    # Dispatch by runtime type

    async def create(self, target: Any) -> Any:
        return await self._dispatch("create", "create_many", target)

    async def update(self, target: Any) -> Any:
        return await self._dispatch("update", "update_many", target)

    async def save(self, target: Any) -> Any:
        return await self._dispatch("save", "save_many", target)

    async def delete(self, target: Any) -> Any:
        return await self._dispatch("delete", "delete_many", target)

    async def _dispatch(self, single: str, batch: str, target: Any) -> Any:
        if target is None:
            raise InvalidArgumentError("target")
        session = self._current_session()
        if not isinstance(target, (list, tuple)):
            repository = self.resolve(type(target), session)
            return await getattr(repository, single)(target)

        items: List[Any] = list(target)
        if not items:
            return []
        if any(item is None for item in items):
            raise InvalidArgumentError("target", "Argument 'target' must not contain None.")
        model = type(items[0])
        if any(type(item) is not model for item in items):
            raise InvalidArgumentError("target", "All records of a batch must share one type.")
        repository = self.resolve(model, session)
        return await getattr(repository, batch)(items)


__all__ = [
    "Lifetime",
    "RepositoryBinding",
    "RepositoryFactory",
    "RepositoryRegistry",
]
