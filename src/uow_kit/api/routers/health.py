"""
uow_kit.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) with DB connectivity validation.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text

from uow_kit.api.deps import unit_of_work
from uow_kit.db.unit_of_work import UnitOfWork

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(uow: UnitOfWork = Depends(unit_of_work)) -> dict[str, str]:
    # Readiness: the store answers through a real unit-of-work session.
    await uow.session.execute(text("SELECT 1"))
    return {"status": "ready"}
