"""
uow_kit.db.soft_delete

Soft-delete policy.

Responsibilities:
- Provide the conventional soft-delete columns (`SoftDeleteMixin`).
- Install the global read filter that hides soft-deleted rows from ORM SELECTs.
- Flip the soft-delete fields on a record.

A statement opts out of the filter with ``.execution_options(include_deleted=True)``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Mapped, ORMExecuteState, Session, mapped_column, with_loader_criteria

from uow_kit.db.capabilities import RecordCapabilities, capabilities_for

INCLUDE_DELETED = "include_deleted"


def utcnow() -> datetime:
    # Naive UTC, matching how the other timestamp columns are persisted.
    return datetime.now(UTC).replace(tzinfo=None)


class SoftDeleteMixin:
    is_deleted: Mapped[bool] = mapped_column(nullable=False, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True, default=None)


def _filter_soft_deleted(execute_state: ORMExecuteState) -> None:
    # Column refreshes (session.refresh, expired attribute loads) must still see deleted rows.
    if (
        not execute_state.is_select
        or execute_state.is_column_load
        or execute_state.execution_options.get(INCLUDE_DELETED, False)
    ):
        return

    for mapper in execute_state.all_mappers:
        caps = capabilities_for(mapper.class_)
        if caps.soft_delete_flag is None:
            continue
        flag = getattr(mapper.class_, caps.soft_delete_flag)
        execute_state.statement = execute_state.statement.options(
            with_loader_criteria(mapper.class_, flag.is_(False), include_aliases=True)
        )


def install_soft_delete_filter(session_class: type[Session]) -> None:
    if not event.contains(session_class, "do_orm_execute", _filter_soft_deleted):
        event.listen(session_class, "do_orm_execute", _filter_soft_deleted)


def mark_deleted(record: Any, caps: RecordCapabilities, *, now: datetime | None = None) -> bool:
    """
    Set the soft-delete fields the record type has. Returns False, touching nothing,
    when the type has no soft-delete flag.
    """

    if caps.soft_delete_flag is None:
        return False
    setattr(record, caps.soft_delete_flag, True)
    if caps.deleted_at is not None:
        setattr(record, caps.deleted_at, now or utcnow())
    return True


def mark_restored(record: Any, caps: RecordCapabilities) -> bool:
    if caps.soft_delete_flag is None:
        return False
    setattr(record, caps.soft_delete_flag, False)
    if caps.deleted_at is not None:
        setattr(record, caps.deleted_at, None)
    return True


# --- Module Notes -----------------------------------------------------------
# The filter is attached to `uow_kit.db.session.TrackingSession` only; plain
# `Session` instances elsewhere in a process keep seeing every row.
