"""
uow_kit.db.unit_of_work

Unit of work: one session, one repository per record type, one atomic commit.

Responsibilities:
- Own exactly one `AsyncSession` for the lifetime of a logical operation.
- Hand out memoized `GenericRepository` instances per record type.
- Commit all pending changes atomically and translate lost updates into
  `ConcurrencyConflictError`.
- Release the session exactly once, discarding anything not committed.

Usage::

    async with UnitOfWork(sessionmaker) as uow:
        blogs = uow.repository(Blog)
        blog = await blogs.get_by_id(1)
        blog.name = "renamed"
        await uow.commit()
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from uow_kit.db.capabilities import capabilities_for
from uow_kit.db.errors import ConcurrencyConflictError, ConflictedEntry, UnitOfWorkClosedError
from uow_kit.db.repositories.generic import GenericRepository
from uow_kit.db.soft_delete import INCLUDE_DELETED
from uow_kit.db.tracking import TrackingEntry
from uow_kit.observability.logging import get_logger

T = TypeVar("T")

log = get_logger(__name__)


class UnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory()
        self._repositories: dict[type, GenericRepository[Any]] = {}
        self._closed = False
        # Correlates commit and conflict events of one logical operation.
        self._log = log.bind(uow_id=uuid.uuid4().hex[:12])

    async def __aenter__(self) -> UnitOfWork:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def session(self) -> AsyncSession:
        self._ensure_open()
        return self._session

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise UnitOfWorkClosedError()

    def repository(self, record_type: type[T]) -> GenericRepository[T]:
        self._ensure_open()
        repo = self._repositories.get(record_type)
        if repo is None:
            repo = GenericRepository(self._session, record_type)
            self._repositories[record_type] = repo
        return repo

    def pending_count(self) -> int:
        session = self._session
        modified = [r for r in session.dirty if session.is_modified(r, include_collections=False)]
        return len(session.new) + len(modified) + len(session.deleted)

    def _versioned_changes(self) -> list[tuple[type, tuple[Any, ...], Any]]:
        # (record type, identity, original token) for every write that will be version-checked.
        session = self._session
        changes = []
        for record in [*session.dirty, *session.deleted]:
            caps = capabilities_for(type(record))
            if caps.concurrency_token is None:
                continue
            original = TrackingEntry(session, record).original_token
            identity = inspect(record).identity
            if original is not None and identity is not None:
                changes.append((type(record), identity, original))
        return changes

    async def _stored_token(self, record_type: type, identity: tuple[Any, ...]) -> Any:
        mapper = inspect(record_type)
        token = getattr(record_type, capabilities_for(record_type).concurrency_token)
        stmt = (
            select(token)
            .where(*[col == value for col, value in zip(mapper.primary_key, identity)])
            .execution_options(**{INCLUDE_DELETED: True})
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def _adopt_cleared_tokens(self) -> None:
        # A cleared token carries no version expectation: check against what is stored now.
        session = self._session
        for record in [*session.dirty, *session.deleted]:
            caps = capabilities_for(type(record))
            identity = inspect(record).identity
            if caps.concurrency_token is None or identity is None:
                continue
            entry = TrackingEntry(session, record)
            if entry.original_token is not None:
                continue
            stored = await self._stored_token(type(record), identity)
            if stored is not None:
                entry.original_token = stored

    async def _stale_entries(
        self, changes: list[tuple[type, tuple[Any, ...], Any]]
    ) -> list[ConflictedEntry]:
        conflicts = []
        for record_type, identity, original in changes:
            stored = await self._stored_token(record_type, identity)
            if stored != original:
                key = identity[0] if len(identity) == 1 else identity
                conflicts.append(ConflictedEntry(record_type=record_type, key=key))
        return conflicts

    async def commit(self) -> int:
        """
        Flush every added, modified and deleted record in one transaction.

        Returns the number of records written. On a stale concurrency token the
        transaction is rolled back (storage untouched, pending changes discarded) and
        `ConcurrencyConflictError` is raised; other store errors propagate unchanged.
        Records whose row version was cleared are checked against the stored version
        at commit time, so they never conflict.
        """

        self._ensure_open()
        await self._adopt_cleared_tokens()
        affected = self.pending_count()
        versioned = self._versioned_changes()
        try:
            await self._session.commit()
        except StaleDataError as exc:
            await self._session.rollback()
            conflicts = await self._stale_entries(versioned)
            if not conflicts:
                conflicts = [
                    ConflictedEntry(record_type=t, key=i[0] if len(i) == 1 else i)
                    for t, i, _ in versioned
                ]
            self._log.warning(
                "concurrency_conflict",
                conflicts=[(c.record_type.__name__, c.key) for c in conflicts],
            )
            raise ConcurrencyConflictError(conflicts) from exc

        self._log.debug("unit_of_work_committed", affected=affected)
        return affected

    async def rollback(self) -> None:
        self._ensure_open()
        await self._session.rollback()

    async def close(self) -> None:
        # Idempotent: hosting layers may close explicitly and again via `async with`.
        if self._closed:
            return
        self._closed = True
        self._repositories.clear()
        await self._session.close()


@asynccontextmanager
async def unit_of_work_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[UnitOfWork]:
    """
    Explicit unit-of-work scope for non-HTTP callers (scripts, workers, tests).
    The HTTP layer uses `uow_kit.api.deps.unit_of_work` instead.
    """

    async with UnitOfWork(session_factory) as uow:
        yield uow
