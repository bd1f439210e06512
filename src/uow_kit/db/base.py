"""
uow_kit.db.base

SQLAlchemy declarative base.

Responsibilities:
- Provide a shared DeclarativeBase for all record types.
- Provide the store-side row-version generator used as a concurrency token.
"""

from __future__ import annotations

import uuid

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def new_row_version(_previous: bytes | None = None) -> bytes:
    # Opaque 16-byte token, regenerated on every INSERT and UPDATE.
    return uuid.uuid4().bytes
