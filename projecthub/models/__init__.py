"""SQLAlchemy ORM models package."""

from .document import DocumentRecord

__all__ = [
    "DocumentRecord",
]
