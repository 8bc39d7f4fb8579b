"""Hierarchical document store client.

Defines the interface the archival and notification core depends on, and a
SQLAlchemy-backed implementation of it:

- Get / set / delete a single document by path
- List every document of a collection or subcollection
- Query a collection with equality, range and array-membership filters
- Atomic write batches bounded by a maximum operation count

Paths alternate collection and document segments
(``projects/{projectId}/issues/{issueId}``). Deleting a document never
deletes its subcollections; callers walk the tree explicitly.
"""

import logging
import operator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from sqlalchemy import func, literal, select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..models.document import DocumentRecord

logger = logging.getLogger(__name__)


class BatchLimitExceededError(Exception):
    """Raised when a batch holds more operations than the store accepts."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"Batch of {size} operations exceeds the store limit of {limit}"
        )


# ============================================================================
# Paths
# ============================================================================


def split_path(path: str) -> List[str]:
    """Split a slash-separated path into non-empty segments."""
    return [segment for segment in path.strip("/").split("/") if segment]


def join_path(*segments: str) -> str:
    """Join path segments, ignoring empty segments."""
    return "/".join(s.strip("/") for s in segments if s and s.strip("/"))


def parent_collection(document_path: str) -> str:
    """Return the collection path that contains a document."""
    segments = split_path(document_path)
    if len(segments) < 2 or len(segments) % 2:
        raise ValueError(f"Not a document path: {document_path!r}")
    return "/".join(segments[:-1])


def document_id(document_path: str) -> str:
    """Return the last segment of a document path."""
    segments = split_path(document_path)
    if len(segments) < 2 or len(segments) % 2:
        raise ValueError(f"Not a document path: {document_path!r}")
    return segments[-1]


# ============================================================================
# Snapshots and filters
# ============================================================================


@dataclass
class DocumentSnapshot:
    """A document read from the store: its path and field map."""

    path: str
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return document_id(self.path)

    @property
    def collection(self) -> str:
        return parent_collection(self.path)

    def to_dict(self) -> Dict[str, Any]:
        """Field map with the document id under ``id``."""
        return {"id": self.id, **self.data}


def _lookup(data: Dict[str, Any], field_path: str) -> Any:
    """Resolve a dotted field path; raises KeyError if any part is missing."""
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, dict):
            raise KeyError(field_path)
        value = value[part]
    return value


def _array_contains(value: Any, expected: Any) -> bool:
    return isinstance(value, (list, tuple)) and expected in value


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "array_contains": _array_contains,
}


@dataclass(frozen=True)
class FieldFilter:
    """
    A single query predicate.

    Documents missing the field never match, mirroring Firestore.
    Values of incomparable types never match a range predicate.
    """

    field_path: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op!r}")

    def matches(self, data: Dict[str, Any]) -> bool:
        try:
            actual = _lookup(data, self.field_path)
        except KeyError:
            return False
        try:
            return bool(_OPERATORS[self.op](actual, self.value))
        except TypeError:
            return False


def matches_all(data: Dict[str, Any], filters: Sequence[FieldFilter]) -> bool:
    """Check a field map against every filter."""
    return all(f.matches(data) for f in filters)


# ============================================================================
# Interface
# ============================================================================


@runtime_checkable
class WriteBatch(Protocol):
    """A set of writes/deletes applied all-or-nothing on commit."""

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None: ...

    def delete(self, path: str) -> None: ...

    def __len__(self) -> int: ...

    async def commit(self) -> None: ...


@runtime_checkable
class DocumentStore(Protocol):
    """Client for the hierarchical document store."""

    max_batch_size: int

    async def get(self, path: str) -> Optional[DocumentSnapshot]: ...

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None: ...

    async def delete(self, path: str) -> None: ...

    async def list_children(self, collection_path: str) -> List[DocumentSnapshot]: ...

    async def query(
        self, collection_path: str, filters: Sequence[FieldFilter]
    ) -> List[DocumentSnapshot]: ...

    def batch(self) -> WriteBatch: ...


# ============================================================================
# JSON encoding
# ============================================================================

_DATETIME_KEY = "$datetime"


def encode_value(value: Any) -> Any:
    """Encode a field value for JSON storage, tagging datetimes."""
    if isinstance(value, datetime):
        return {_DATETIME_KEY: value.isoformat()}
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any) -> Any:
    """Inverse of encode_value."""
    if isinstance(value, dict):
        if len(value) == 1 and _DATETIME_KEY in value:
            return datetime.fromisoformat(value[_DATETIME_KEY])
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


# ============================================================================
# SQLAlchemy implementation
# ============================================================================


@dataclass
class _WriteOp:
    kind: str  # "set" | "delete"
    path: str
    data: Optional[Dict[str, Any]] = None
    merge: bool = False


async def _apply_set(db: AsyncSession, op: _WriteOp) -> None:
    record = await db.get(DocumentRecord, op.path)
    if record is None:
        db.add(
            DocumentRecord(
                path=op.path,
                collection=parent_collection(op.path),
                doc_id=document_id(op.path),
                data=encode_value(op.data or {}),
            )
        )
    elif op.merge:
        merged = decode_value(record.data or {})
        merged.update(op.data or {})
        record.data = encode_value(merged)
    else:
        record.data = encode_value(op.data or {})
    await db.flush()


async def _apply_delete(db: AsyncSession, op: _WriteOp) -> None:
    record = await db.get(DocumentRecord, op.path)
    if record is not None:
        await db.delete(record)
        await db.flush()


async def _apply(db: AsyncSession, op: _WriteOp) -> None:
    if op.kind == "delete":
        await _apply_delete(db, op)
    else:
        await _apply_set(db, op)


def _nested(field_path: str, leaf: Any) -> Dict[str, Any]:
    """``a.b`` and ``leaf`` -> ``{"a": {"b": leaf}}``."""
    value = leaf
    for part in reversed(field_path.split(".")):
        value = {part: value}
    return value


def sql_predicate(field_filter: FieldFilter, dialect: str) -> Optional[Any]:
    """
    SQL pre-filter for a FieldFilter, or None when it is only checked in Python.

    Only string values are pushed down: ``==`` through a JSON path lookup on
    any backend, ``array_contains`` through JSONB ``@>`` on PostgreSQL and
    ``json_each`` on SQLite. The result may match a superset of documents.
    """
    value = field_filter.value
    if not isinstance(value, str):
        return None

    parts = tuple(field_filter.field_path.split("."))
    element = DocumentRecord.data[parts if len(parts) > 1 else parts[0]]

    if field_filter.op == "==":
        return element.as_string() == value

    if field_filter.op == "array_contains":
        if dialect == "postgresql":
            return type_coerce(DocumentRecord.data, JSONB).contains(
                _nested(field_filter.field_path, [value])
            )
        if dialect == "sqlite":
            items = func.json_each(
                DocumentRecord.data, f"$.{field_filter.field_path}"
            ).table_valued("value")
            return select(literal(1)).select_from(items).where(items.c.value == value).exists()

    return None


class SqlWriteBatch:
    """Write batch committed as a single database transaction."""

    def __init__(self, session_maker: async_sessionmaker, max_batch_size: int) -> None:
        self._session_maker = session_maker
        self._max_batch_size = max_batch_size
        self._ops: List[_WriteOp] = []
        self._committed = False

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        parent_collection(path)  # validate early
        self._ops.append(_WriteOp("set", path, dict(data), merge))

    def delete(self, path: str) -> None:
        parent_collection(path)
        self._ops.append(_WriteOp("delete", path))

    def __len__(self) -> int:
        return len(self._ops)

    async def commit(self) -> None:
        if self._committed:
            raise RuntimeError("Batch already committed")
        if len(self._ops) > self._max_batch_size:
            raise BatchLimitExceededError(len(self._ops), self._max_batch_size)

        async with self._session_maker() as db:
            async with db.begin():
                for op in self._ops:
                    await _apply(db, op)

        self._committed = True
        logger.debug(f"Batch committed: {len(self._ops)} operations")


class SqlDocumentStore:
    """
    DocumentStore backed by the ``Documents`` table.

    Each single-document call runs in its own transaction; a batch commit
    runs every operation inside one transaction.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        max_batch_size: Optional[int] = None,
    ) -> None:
        self._session_maker = session_maker
        self.max_batch_size = max_batch_size or settings.store_max_batch_size

    async def get(self, path: str) -> Optional[DocumentSnapshot]:
        async with self._session_maker() as db:
            record = await db.get(DocumentRecord, path)
            if record is None:
                return None
            return DocumentSnapshot(path=record.path, data=decode_value(record.data or {}))

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        async with self._session_maker() as db:
            async with db.begin():
                await _apply_set(db, _WriteOp("set", path, dict(data), merge))

    async def delete(self, path: str) -> None:
        async with self._session_maker() as db:
            async with db.begin():
                await _apply_delete(db, _WriteOp("delete", path))

    async def list_children(self, collection_path: str) -> List[DocumentSnapshot]:
        collection = join_path(collection_path)
        async with self._session_maker() as db:
            result = await db.execute(
                select(DocumentRecord)
                .where(DocumentRecord.collection == collection)
                .order_by(DocumentRecord.doc_id)
            )
            records = result.scalars().all()

        return [
            DocumentSnapshot(path=r.path, data=decode_value(r.data or {}))
            for r in records
        ]

    async def query(
        self, collection_path: str, filters: Sequence[FieldFilter]
    ) -> List[DocumentSnapshot]:
        """
        Documents of a collection matching every filter.

        String equality and array membership narrow the rows in SQL; every
        filter is then checked again on the decoded documents, which is where
        range predicates on tagged datetimes are evaluated.
        """
        collection = join_path(collection_path)
        async with self._session_maker() as db:
            dialect = db.get_bind().dialect.name
            stmt = select(DocumentRecord).where(DocumentRecord.collection == collection)
            for field_filter in filters:
                predicate = sql_predicate(field_filter, dialect)
                if predicate is not None:
                    stmt = stmt.where(predicate)
            result = await db.execute(stmt.order_by(DocumentRecord.doc_id))
            records = result.scalars().all()

        documents = [
            DocumentSnapshot(path=r.path, data=decode_value(r.data or {}))
            for r in records
        ]
        return [doc for doc in documents if matches_all(doc.data, filters)]

    def batch(self) -> SqlWriteBatch:
        return SqlWriteBatch(self._session_maker, self.max_batch_size)
