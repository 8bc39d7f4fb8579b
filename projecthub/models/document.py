"""Document SQLAlchemy model backing the hierarchical document store."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB

from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentRecord(Base):
    """
    One document of the hierarchical store, addressed by its full path.

    A path alternates collection and document segments, e.g.
    ``projects/p1/issues/i1``. The parent collection path
    (``projects/p1/issues``) is stored separately so children of a
    collection can be listed with an indexed equality lookup.

    Attributes:
        path: Full slash-separated document path (primary key)
        collection: Path of the collection that contains the document
        doc_id: Last path segment
        data: Encoded field map of the document (JSONB on PostgreSQL)
        created_at: When the document was first written
        updated_at: When the document was last written
    """

    __tablename__ = "Documents"

    path = Column(
        String(1024),
        primary_key=True,
        nullable=False,
    )
    collection = Column(
        String(1024),
        nullable=False,
        index=True,
    )
    doc_id = Column(
        String(255),
        nullable=False,
    )
    data = Column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        Index("ix_Documents_collection_doc_id", "collection", "doc_id"),
        # Serves array-membership filters (JSONB @>) on PostgreSQL
        Index("ix_Documents_data", "data", postgresql_using="gin").ddl_if(dialect="postgresql"),
    )

    def __repr__(self) -> str:
        return f"<DocumentRecord(path={self.path})>"
