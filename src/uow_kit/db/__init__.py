"""
uow_kit.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Generic repository, unit of work and tracking entries.
- Capability descriptors, soft-delete policy and include paths.
- Engine/session setup and the example record types.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Nothing in this package is specific to a record type except `models`, which only the
# HTTP host and tests import.
