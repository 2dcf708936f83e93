"""
Domain package for crudrepo.

Exports the entity identity helpers, the synchronization result and the
update markers. Keep this package focused on data definitions.
"""

from crudrepo.domain.markers import (
    fully_updatable,
    ignore_on_update,
    ignored_on_update,
    is_fully_updatable,
    updatable,
    updatable_fields,
)
from crudrepo.domain.models import (
    SynchronizationResult,
    column_attributes,
    is_unset_key,
    key_attribute,
    key_of,
)

__all__ = [
    "SynchronizationResult",
    "column_attributes",
    "fully_updatable",
    "ignore_on_update",
    "ignored_on_update",
    "is_fully_updatable",
    "is_unset_key",
    "key_attribute",
    "key_of",
    "updatable",
    "updatable_fields",
]
