"""
Infrastructure package for crudrepo.

Centralizes store-handle concerns (engine, session factory, unit-of-work and
transaction scopes). Keep this layer focused on I/O and resource management,
decoupled from repository logic.
"""

from crudrepo.infrastructure.db_factory import (
    EngineManager,
    build_engine,
    create_session_factory,
    get_engine,
    get_session_factory,
    in_transaction_scope,
    session_scope,
    transaction,
    verify_connection,
)

__all__ = [
    "EngineManager",
    "build_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "in_transaction_scope",
    "session_scope",
    "transaction",
    "verify_connection",
]
