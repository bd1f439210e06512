"""
uow_kit

Generic repository + unit-of-work persistence layer over SQLAlchemy async sessions.

Responsibilities:
- Expose package version metadata and the public persistence surface.
"""

from uow_kit.db.errors import (
    ConcurrencyConflictError,
    IdentityConflictError,
    MissingKeyError,
    PersistenceError,
    UnknownRecordTypeError,
    UnitOfWorkClosedError,
    UnsupportedKeyShapeError,
)
from uow_kit.db.repositories.generic import GenericRepository
from uow_kit.db.tracking import EntryState, TrackingEntry
from uow_kit.db.unit_of_work import UnitOfWork, unit_of_work_scope

__all__ = [
    "__version__",
    "ConcurrencyConflictError",
    "EntryState",
    "GenericRepository",
    "IdentityConflictError",
    "MissingKeyError",
    "PersistenceError",
    "TrackingEntry",
    "UnitOfWork",
    "UnitOfWorkClosedError",
    "UnknownRecordTypeError",
    "UnsupportedKeyShapeError",
    "unit_of_work_scope",
]

__version__ = "0.1.0"
