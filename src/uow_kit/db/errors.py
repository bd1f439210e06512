"""
uow_kit.db.errors

Error taxonomy for the persistence layer.

Responsibilities:
- Distinct, catchable conditions for key-shape, identity and concurrency failures.

Lookups that find nothing return ``None`` and are not represented here. Failures raised
by the backing store (timeouts, lost connections, constraint violations) propagate as
SQLAlchemy / driver exceptions, unmodified.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class PersistenceError(Exception):
    """Base class for errors raised by the persistence layer itself."""


class UnknownRecordTypeError(PersistenceError):
    def __init__(self, record_type: type) -> None:
        super().__init__(f"{record_type!r} is not a mapped record type")
        self.record_type = record_type


class UnsupportedKeyShapeError(PersistenceError):
    """Raised when a record type does not have exactly one primary-key attribute."""

    def __init__(self, record_type: type, key_names: tuple[str, ...]) -> None:
        super().__init__(
            f"{record_type.__name__} has primary key {list(key_names)!r}; "
            "exactly one primary-key attribute is required"
        )
        self.record_type = record_type
        self.key_names = key_names


class MissingKeyError(PersistenceError):
    """Raised when attaching a new (never persisted) record that has no key value."""

    def __init__(self, record_type: type) -> None:
        super().__init__(f"cannot attach {record_type.__name__} without a primary-key value")
        self.record_type = record_type


class IdentityConflictError(PersistenceError):
    """Raised when a key is already tracked by a different instance."""

    def __init__(self, record_type: type, key: Any) -> None:
        super().__init__(
            f"{record_type.__name__} with key {key!r} is already tracked by another instance"
        )
        self.record_type = record_type
        self.key = key


@dataclass(frozen=True)
class ConflictedEntry:
    record_type: type
    key: Any


class ConcurrencyConflictError(PersistenceError):
    """
    Raised by `UnitOfWork.commit` when a modified or deleted record's original
    concurrency token no longer matches the stored one (lost update).

    Callers reload and retry; nothing is retried automatically.
    """

    def __init__(self, conflicts: list[ConflictedEntry]) -> None:
        described = ", ".join(f"{c.record_type.__name__}({c.key!r})" for c in conflicts)
        super().__init__(f"concurrency conflict on {described or 'unknown entries'}")
        self.conflicts = conflicts

    @property
    def record_type(self) -> type | None:
        return self.conflicts[0].record_type if self.conflicts else None

    @property
    def key(self) -> Any:
        return self.conflicts[0].key if self.conflicts else None


class UnitOfWorkClosedError(PersistenceError):
    def __init__(self) -> None:
        super().__init__("unit of work has been closed; create a new one")
