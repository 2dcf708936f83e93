"""
Repositories package for crudrepo.

Re-exports the repository contract, the concrete repositories, the
synchronization engine and the registry so downstream code can import from
`crudrepo.repositories` directly.
"""

from crudrepo.repositories.abstract import (
    AbstractCrudRepository,
    CrudRepository,
    QueryTransform,
    SourceQuery,
)
from crudrepo.repositories.auto_update import AutoUpdateCrudRepository
from crudrepo.repositories.identity import is_tracked, resolve, working_set
from crudrepo.repositories.policy import ALL, fields_to_apply, written_fields
from crudrepo.repositories.registry import Lifetime, RepositoryBinding, RepositoryRegistry
from crudrepo.repositories.sqlalchemy_repository import SqlAlchemyCrudRepository, crud_repository
from crudrepo.repositories.synchronization import synchronize

__all__ = [
    # Contract
    "AbstractCrudRepository",
    "CrudRepository",
    "QueryTransform",
    "SourceQuery",
    # Concrete repositories
    "AutoUpdateCrudRepository",
    "SqlAlchemyCrudRepository",
    "crud_repository",
    # Identity and update policy
    "ALL",
    "fields_to_apply",
    "is_tracked",
    "resolve",
    "working_set",
    "written_fields",
    # Synchronization
    "synchronize",
    # Registration
    "Lifetime",
    "RepositoryBinding",
    "RepositoryRegistry",
]
