"""
uow_kit.db.tracking

Tracking entries over SQLAlchemy instance state.

Responsibilities:
- Report a record's tracked state (`EntryState`) within one session.
- Expose the concurrency token's current and original values independently.
- Attach untracked records without duplicating identities or overwriting fields.
- Flag every loaded column of a record as modified (full-row update).
- Hold tracked records strongly for the life of their session.
"""

from __future__ import annotations

import enum
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, make_transient_to_detached
from sqlalchemy.orm.attributes import flag_modified, set_committed_value

from uow_kit.db.capabilities import RecordCapabilities, capabilities_for
from uow_kit.db.errors import IdentityConflictError, MissingKeyError
from uow_kit.observability.logging import get_logger

log = get_logger(__name__)

TRACKED_RECORDS = "tracked_records"


class EntryState(enum.StrEnum):
    unchanged = "unchanged"
    added = "added"
    modified = "modified"
    deleted = "deleted"
    detached = "detached"


class TrackingEntry:
    """
    Live view of one record's tracking state in a session.

    Nothing is cached: every property reads the session and the instance state, so an
    entry stays accurate across detach/attach and commit.
    """

    def __init__(self, session: AsyncSession, record: Any) -> None:
        self._session = session
        self.record = record
        self.capabilities: RecordCapabilities = capabilities_for(type(record))

    def __repr__(self) -> str:
        return f"<TrackingEntry {type(self.record).__name__} state={self.state.value}>"

    @property
    def state(self) -> EntryState:
        session = self._session
        insp = inspect(self.record)
        if self.record in session.deleted or (insp.deleted and insp.session_id is not None):
            return EntryState.deleted
        if self.record not in session:
            return EntryState.detached
        if insp.pending:
            return EntryState.added
        if session.is_modified(self.record, include_collections=False):
            return EntryState.modified
        return EntryState.unchanged

    @property
    def is_tracked(self) -> bool:
        return self.state is not EntryState.detached

    @property
    def current_token(self) -> Any:
        name = self.capabilities.concurrency_token
        if name is None:
            return None
        # Read the instance dict directly; an expired token must not trigger a load.
        return inspect(self.record).dict.get(name)

    @current_token.setter
    def current_token(self, value: Any) -> None:
        name = self.capabilities.concurrency_token
        if name is not None:
            setattr(self.record, name, value)

    @property
    def original_token(self) -> Any:
        name = self.capabilities.concurrency_token
        if name is None:
            return None
        history = inspect(self.record).attrs[name].history
        if history.deleted:
            return history.deleted[0]
        if history.unchanged:
            return history.unchanged[0]
        return None

    @original_token.setter
    def original_token(self, value: Any) -> None:
        name = self.capabilities.concurrency_token
        if name is None:
            return
        insp = inspect(self.record)
        explicit_current = bool(insp.attrs[name].history.added)
        current = insp.dict.get(name)
        set_committed_value(self.record, name, value)
        if explicit_current and current != value:
            # Keep a caller-assigned current token; the flush writes it instead of a new one.
            setattr(self.record, name, current)


def attach(session: AsyncSession, record: Any) -> None:
    """
    Start tracking `record` as an existing row without touching its field values.

    Transient records are given an identity from their primary-key value; records
    whose key is already tracked by another instance are rejected.
    """

    if record in session:
        return

    insp = inspect(record)
    identity_key = insp.key
    if identity_key is None:
        identity_key = insp.mapper.identity_key_from_instance(record)
        if any(value is None for value in identity_key[1]):
            raise MissingKeyError(type(record))

    existing = session.identity_map.get(identity_key)
    if existing is not None and existing is not record:
        key = identity_key[1][0] if len(identity_key[1]) == 1 else identity_key[1]
        raise IdentityConflictError(type(record), key)

    if insp.key is None:
        make_transient_to_detached(record)
    session.add(record)
    log.debug("record_attached", record_type=type(record), key=identity_key[1])


def mark_modified(record: Any) -> None:
    """
    Flag every loaded, non-key column as modified so the flush rewrites the whole row.

    The concurrency token is left alone so the version generator still produces the
    new token.
    """

    caps = capabilities_for(type(record))
    insp = inspect(record)
    skipped = set(caps.primary_key)
    if caps.concurrency_token is not None:
        skipped.add(caps.concurrency_token)

    unloaded = insp.unloaded
    for attr in insp.mapper.column_attrs:
        if attr.key in skipped or attr.key in unloaded:
            continue
        flag_modified(record, attr.key)


def _hold(session: Session, record: Any) -> None:
    session.info.setdefault(TRACKED_RECORDS, {})[id(record)] = record


def _release(session: Session, record: Any) -> None:
    session.info.get(TRACKED_RECORDS, {}).pop(id(record), None)


_HOLD_EVENTS = (
    "pending_to_persistent",
    "deleted_to_persistent",
    "detached_to_persistent",
    "loaded_as_persistent",
)
_RELEASE_EVENTS = ("persistent_to_detached", "persistent_to_deleted", "persistent_to_transient")


def install_strong_references(session_class: type[Session]) -> None:
    """
    Keep every persistent record of a session strongly referenced until it leaves it.

    The identity map holds records weakly; without this, a tracked record the caller no
    longer references is collected and silently drops out of tracking.
    """

    for name in _HOLD_EVENTS:
        if not event.contains(session_class, name, _hold):
            event.listen(session_class, name, _hold)
    for name in _RELEASE_EVENTS:
        if not event.contains(session_class, name, _release):
            event.listen(session_class, name, _release)


# --- Module Notes -----------------------------------------------------------
# Pending records need no extra reference: `Session.new` already holds them strongly.
