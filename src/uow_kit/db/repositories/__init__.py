"""
uow_kit.db.repositories

Repository package.

Responsibilities:
- Group data-access repositories for the persistence layer.
"""

from uow_kit.db.repositories.generic import GenericRepository

__all__ = ["GenericRepository"]


# --- Module Notes -----------------------------------------------------------
# Repositories stay generic; per-record business rules belong in services.
