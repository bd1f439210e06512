"""
uow_kit.db.capabilities

Per-record-type capability descriptors.

Responsibilities:
- Resolve, once per mapped class, which attribute is the primary key, which is the
  optimistic-concurrency token, and which carry the soft-delete state.
- Fail fast on key shapes the repositories cannot address (composite keys).

Everything is read from SQLAlchemy mapper metadata:
- primary key: ``Mapper.primary_key``
- concurrency token: ``Mapper.version_id_col`` (``__mapper_args__["version_id_col"]``)
- soft delete: mapped attributes named ``is_deleted`` / ``deleted_at``
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper

from uow_kit.db.errors import UnknownRecordTypeError, UnsupportedKeyShapeError

SOFT_DELETE_FLAG = "is_deleted"
DELETED_AT = "deleted_at"


@dataclass(frozen=True)
class RecordCapabilities:
    record_type: type
    primary_key: tuple[str, ...]
    concurrency_token: str | None = None
    soft_delete_flag: str | None = None
    deleted_at: str | None = None

    @property
    def key_attribute(self) -> str:
        if len(self.primary_key) != 1:
            raise UnsupportedKeyShapeError(self.record_type, self.primary_key)
        return self.primary_key[0]

    @property
    def supports_soft_delete(self) -> bool:
        return self.soft_delete_flag is not None

    @property
    def supports_concurrency_token(self) -> bool:
        return self.concurrency_token is not None


def mapper_for(record_type: type) -> Mapper[Any]:
    try:
        return inspect(record_type)
    except NoInspectionAvailable as exc:
        raise UnknownRecordTypeError(record_type) from exc


@lru_cache(maxsize=None)
def capabilities_for(record_type: type) -> RecordCapabilities:
    mapper = mapper_for(record_type)
    primary_key = tuple(mapper.get_property_by_column(col).key for col in mapper.primary_key)

    token: str | None = None
    if mapper.version_id_col is not None:
        token = mapper.get_property_by_column(mapper.version_id_col).key

    columns = mapper.column_attrs.keys()
    return RecordCapabilities(
        record_type=record_type,
        primary_key=primary_key,
        concurrency_token=token,
        soft_delete_flag=SOFT_DELETE_FLAG if SOFT_DELETE_FLAG in columns else None,
        deleted_at=DELETED_AT if DELETED_AT in columns else None,
    )


# --- Module Notes -----------------------------------------------------------
# Mappings are static for the life of the process, so the cache is never invalidated.
