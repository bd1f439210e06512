"""
uow_kit.db.repositories.generic

Generic repository for any mapped record type.

Responsibilities:
- Tracked and untracked queries, with optional eager-loaded include paths.
- Mutations: add, full-row update, physical delete, soft delete, value copy.
- Concurrency-token and tracking-state control (detach, entries, row versions).
- On-demand loading of reference and collection navigations.

Store-side predicates are SQLAlchemy column expressions (``Blog.name == "A"``);
predicates over tracked in-memory records are plain callables.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import QueryableAttribute, Session, with_parent
from sqlalchemy.orm.attributes import flag_modified, set_committed_value

from uow_kit.db.capabilities import RecordCapabilities, capabilities_for
from uow_kit.db.includes import IncludePath, load_options
from uow_kit.db.session import TrackingSession
from uow_kit.db.soft_delete import INCLUDE_DELETED, mark_deleted
from uow_kit.db.tracking import TrackingEntry, attach, mark_modified
from uow_kit.observability.logging import get_logger

T = TypeVar("T")
R = TypeVar("R")

log = get_logger(__name__)


class GenericRepository(Generic[T]):
    """
    Façade over one unit of work's session for record type `T`.

    Holds no records itself. Tracked reads return instances registered in the session
    (use them when you are about to mutate); untracked reads return detached copies
    that never enter the session's identity map.
    """

    def __init__(self, session: AsyncSession, record_type: type[T]) -> None:
        self._session = session
        self._record_type = record_type
        self._caps = capabilities_for(record_type)
        # Composite keys fail here, before any query runs.
        self._key_column = getattr(record_type, self._caps.key_attribute)

    @property
    def record_type(self) -> type[T]:
        return self._record_type

    @property
    def capabilities(self) -> RecordCapabilities:
        return self._caps

    # -- query plumbing ----------------------------------------------------

    def _select(self, includes: tuple[IncludePath, ...] = ()) -> Select[tuple[T]]:
        stmt = select(self._record_type)
        if includes:
            stmt = stmt.options(*load_options(includes))
        return stmt

    async def _tracked(self, stmt: Select[tuple[T]]) -> list[T]:
        return list((await self._session.execute(stmt)).scalars().all())

    async def _untracked(self, stmt: Select[tuple[R]]) -> list[R]:
        def run(session: Session) -> list[R]:
            # Same connection and transaction as the unit of work, separate identity map.
            reader = TrackingSession(
                bind=session.connection(), autoflush=False, expire_on_commit=False
            )
            try:
                return list(reader.execute(stmt).scalars().all())
            finally:
                reader.close()

        return await self._session.run_sync(run)

    async def _untracked_first(self, stmt: Select[tuple[T]]) -> T | None:
        rows = await self._untracked(stmt.limit(1))
        return rows[0] if rows else None

    # -- collections -------------------------------------------------------

    async def get_all(self) -> list[T]:
        return await self._tracked(self._select())

    async def get_all_no_tracking(self, *includes: IncludePath) -> list[T]:
        return await self._untracked(self._select(includes))

    async def get_all_no_tracking_ordered(
        self, order_by: Any, *includes: IncludePath, descending: bool = False
    ) -> list[T]:
        stmt = self._select(includes).order_by(order_by.desc() if descending else order_by)
        return await self._untracked(stmt)

    async def get_all_with_filter(
        self, predicate: ColumnElement[bool], ignore_soft_delete_filter: bool = True
    ) -> list[T]:
        stmt = self._select().where(predicate)
        if ignore_soft_delete_filter:
            stmt = stmt.execution_options(**{INCLUDE_DELETED: True})
        return await self._untracked(stmt)

    async def get_all_with_includes(
        self, predicate: ColumnElement[bool], *includes: IncludePath
    ) -> list[T]:
        return await self._untracked(self._select(includes).where(predicate))

    # -- single records ----------------------------------------------------

    async def get_by_id(self, key: Any) -> T | None:
        stmt = self._select().where(self._key_column == key)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_id_no_tracking(self, key: Any) -> T | None:
        return await self._untracked_first(self._select().where(self._key_column == key))

    async def get_by_id_ignoring_soft_delete(self, key: Any) -> T | None:
        stmt = (
            self._select()
            .where(self._key_column == key)
            .execution_options(**{INCLUDE_DELETED: True})
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_id_with_includes(self, key: Any, *includes: IncludePath) -> T | None:
        return await self._untracked_first(self._select(includes).where(self._key_column == key))

    async def get_by_filter_no_tracking(
        self, filter: ColumnElement[bool], *includes: IncludePath
    ) -> T | None:
        return await self._untracked_first(self._select(includes).where(filter))

    async def exists(self, predicate: ColumnElement[bool]) -> bool:
        return await self._untracked_first(self._select().where(predicate)) is not None

    async def exists_ignoring_soft_delete(self, predicate: ColumnElement[bool]) -> bool:
        stmt = self._select().where(predicate).execution_options(**{INCLUDE_DELETED: True})
        return await self._untracked_first(stmt) is not None

    # -- mutations ---------------------------------------------------------

    def add(self, record: T) -> None:
        self._session.add(record)

    def update(self, record: T) -> None:
        """
        Mark `record` modified so its whole row is rewritten on commit.

        Untracked records are attached as existing rows (never inserted); their current
        concurrency token becomes the version the update is checked against.
        """

        attach(self._session, record)
        mark_modified(record)

    async def delete(self, record: T) -> None:
        if inspect(record).pending:
            # Never flushed: forgetting it is the whole delete.
            self._session.expunge(record)
            return
        attach(self._session, record)
        await self._session.delete(record)

    def soft_delete(self, record: T) -> bool:
        """
        Flag `record` deleted instead of removing its row.

        Returns False, and changes nothing, when the record type has no soft-delete
        flag; check `capabilities.supports_soft_delete` up front to avoid relying on that.
        """

        if not self._caps.supports_soft_delete:
            log.debug("soft_delete_unsupported", record_type=self._record_type)
            return False
        attach(self._session, record)
        mark_deleted(record, self._caps)
        flag_modified(record, self._caps.soft_delete_flag)
        return True

    def apply_values(self, target: T, source: T) -> None:
        """
        Copy loaded column values from `source` onto `target`.

        Primary key and concurrency token are not copied; navigations are untouched.
        """

        skipped = set(self._caps.primary_key)
        if self._caps.concurrency_token is not None:
            skipped.add(self._caps.concurrency_token)

        source_state = inspect(source)
        unloaded = source_state.unloaded
        for attr in inspect(target).mapper.column_attrs:
            if attr.key in skipped or attr.key in unloaded:
                continue
            setattr(target, attr.key, source_state.dict[attr.key])

    def set_original_row_version(self, record: T, row_version: bytes) -> None:
        if not self._caps.supports_concurrency_token:
            return
        self.get_entry(record).original_token = row_version

    def clear_row_version(self, record: T) -> None:
        if self._caps.concurrency_token is None:
            return
        set_committed_value(record, self._caps.concurrency_token, None)

    # -- tracking ----------------------------------------------------------

    def get_entry(self, record: T) -> TrackingEntry:
        return TrackingEntry(self._session, record)

    def _tracked_records(self) -> list[T]:
        candidates = [*self._session.identity_map.values(), *self._session.new]
        return [r for r in candidates if isinstance(r, self._record_type)]

    def is_tracked_by_key(self, predicate: Callable[[T], bool]) -> bool:
        return any(predicate(record) for record in self._tracked_records())

    def detach(self, record: T) -> None:
        if record in self._session:
            self._session.expunge(record)

    def detach_where(self, predicate: Callable[[T], bool]) -> None:
        matched = [record for record in self._tracked_records() if predicate(record)]
        for record in matched:
            self._session.expunge(record)
        if matched:
            log.debug(
                "records_detached", record_type=self._record_type, count=len(matched)
            )

    # -- navigations -------------------------------------------------------

    async def _load_navigation(self, record: T, navigation: QueryableAttribute[Any]) -> None:
        if record not in self._session:
            log.debug(
                "navigation_load_skipped",
                record_type=self._record_type,
                navigation=navigation.key,
                reason="untracked",
            )
            return
        if navigation.key not in inspect(record).unloaded:
            return
        await self._session.refresh(record, attribute_names=[navigation.key])

    async def load_collection(self, record: T, navigation: QueryableAttribute[Any]) -> None:
        await self._load_navigation(record, navigation)

    async def reload_collection(
        self, record: T, navigation: QueryableAttribute[Any]
    ) -> list[Any]:
        prop = navigation.property
        stmt = select(prop.mapper.class_).where(with_parent(record, navigation))
        if prop.order_by:
            stmt = stmt.order_by(*prop.order_by)
        return await self._untracked(stmt)

    async def load_reference(self, record: T, navigation: QueryableAttribute[Any]) -> None:
        await self._load_navigation(record, navigation)

    async def load_reference_safe(self, record: T, navigation: QueryableAttribute[Any]) -> None:
        attach(self._session, record)
        await self._load_navigation(record, navigation)

    async def reload_entity(self, record: T) -> T:
        await self._session.refresh(record)
        return record


# --- Module Notes -----------------------------------------------------------
# Untracked reads share the unit of work's connection, so they see rows it has
# already flushed but never its unflushed in-memory edits.
