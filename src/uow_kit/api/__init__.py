"""
uow_kit.api

HTTP host for the persistence layer.

Responsibilities:
- FastAPI app factory and router modules.
- Per-request unit-of-work wiring and request/response models.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer stays thin: request validation + delegation to services.
