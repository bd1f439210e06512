"""
uow_kit.services

Service-layer package.

Responsibilities:
- Own unit-of-work boundaries (when to commit) for the hosting layer.
"""

# Package marker.
