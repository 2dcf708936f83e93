"""
crudrepo - generic async CRUD repositories over the SQLAlchemy ORM.

This package lets application code create, read, update, delete and
synchronize mapped entities without per-entity persistence code:

- A repository contract parameterized by entity type
- A default implementation over a change-tracking AsyncSession
- Marker-driven partial updates (updatable / ignore-on-update fields)
- Reconciliation of a stored collection against a desired master list
- An explicit registry routing record operations to their repository
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from crudrepo.config import Settings, get_settings
from crudrepo.domain import (
    SynchronizationResult,
    fully_updatable,
    ignore_on_update,
    updatable,
)
from crudrepo.errors import (
    CrudRepositoryError,
    InvalidArgumentError,
    NoUpdatableFieldsFoundError,
    NotFoundError,
    NotRegisteredError,
    RepositoryNotFoundError,
)
from crudrepo.infrastructure import session_scope, transaction, verify_connection
from crudrepo.repositories import (
    AutoUpdateCrudRepository,
    CrudRepository,
    Lifetime,
    RepositoryRegistry,
    SqlAlchemyCrudRepository,
    crud_repository,
    synchronize,
)
from crudrepo.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "SynchronizationResult",
    "fully_updatable",
    "ignore_on_update",
    "updatable",
    # Errors
    "CrudRepositoryError",
    "InvalidArgumentError",
    "NoUpdatableFieldsFoundError",
    "NotFoundError",
    "NotRegisteredError",
    "RepositoryNotFoundError",
    # Store handle
    "session_scope",
    "transaction",
    "verify_connection",
    # Repositories
    "AutoUpdateCrudRepository",
    "CrudRepository",
    "Lifetime",
    "RepositoryRegistry",
    "SqlAlchemyCrudRepository",
    "crud_repository",
    "synchronize",
    # Logging
    "configure_logging",
    "get_logger",
]
