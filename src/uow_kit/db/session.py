"""
uow_kit.db.session

Async SQLAlchemy engine + session factory helpers.

Responsibilities:
- Create the async engine from settings.
- Create the async sessionmaker whose sessions back every unit of work.
- Define `TrackingSession`, the sync session class carrying the soft-delete read filter
  and the strong references that keep tracked records alive.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session

from uow_kit.db.soft_delete import install_soft_delete_filter
from uow_kit.db.tracking import install_strong_references
from uow_kit.settings import Settings


class TrackingSession(Session):
    """Session class used behind `AsyncSession` for units of work and untracked readers."""


install_soft_delete_filter(TrackingSession)
install_strong_references(TrackingSession)


def create_engine(settings: Settings) -> AsyncEngine:
    # pool_pre_ping helps detect stale connections in long-lived processes.
    # SQL echo is a logging concern (see `observability.logging.configure_logging`).
    return create_async_engine(
        settings.database_url,
        pool_pre_ping=True,
    )


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps committed records readable without lazy loads.
    # autoflush=False: nothing reaches the store before UnitOfWork.commit().
    return async_sessionmaker(
        bind=engine,
        sync_session_class=TrackingSession,
        expire_on_commit=False,
        autoflush=False,
    )


# --- Module Notes -----------------------------------------------------------
# Units of work are built from the sessionmaker (see `uow_kit.db.unit_of_work`); the
# API layer scopes one per request via `uow_kit.api.deps.unit_of_work`.
