"""
uow_kit.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide the per-request unit-of-work and service dependencies.
- Encapsulate app.state access patterns (engine/sessionmaker).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from uow_kit.db.unit_of_work import UnitOfWork
from uow_kit.services.blog_service import BlogService


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # The sessionmaker is created on app startup in `uow_kit.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def unit_of_work(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[UnitOfWork]:
    # One unit of work per request, released even when the handler raises.
    async with UnitOfWork(session_factory) as uow:
        yield uow


def blog_service(uow: UnitOfWork = Depends(unit_of_work)) -> BlogService:
    return BlogService(uow)
