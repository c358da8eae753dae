"""
Document store over the `documents` table.

Gives services a collection/document API (paths such as "accounts" or
"accounts/acc-1/patients") with filtered queries, collection-group queries
across every collection of the same kind, and atomic write batches.

Single writes on a DocumentReference commit immediately; a WriteBatch applies
all of its operations in one transaction and commits once.
"""

import copy
import logging
import operator
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .models import Document
from .shared.table import comparable, resolve_key, sort_key

logger = logging.getLogger(__name__)


class DocumentNotFoundError(Exception):
    """Raised when updating a document that does not exist"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Document not found: {path}")


def _in(value, options) -> bool:
    return value in (options or [])


def _array_contains(value, item) -> bool:
    return isinstance(value, list) and item in value


OPERATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": _in,
    "not-in": lambda value, options: not _in(value, options),
    "array-contains": _array_contains,
}


def encode_value(value: Any) -> Any:
    """Convert a value into something the JSON column can hold"""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {str(k): encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [encode_value(v) for v in value]
    return value


def set_field(data: dict, field_path: str, value: Any) -> None:
    """Assign a dotted field path, creating intermediate maps"""
    parts = field_path.split(".")
    target = data
    for part in parts[:-1]:
        nested = target.get(part)
        if not isinstance(nested, dict):
            nested = {}
            target[part] = nested
        target = nested
    target[parts[-1]] = value


def _split_path(path: str) -> list[str]:
    return [segment for segment in path.strip("/").split("/") if segment]


def _owner_account_id(collection: str, data: dict) -> Optional[str]:
    account_id = data.get("accountId")
    if account_id:
        return str(account_id)
    segments = _split_path(collection)
    # accounts/{id}/<kind> sub-collections belong to {id}
    if len(segments) >= 3 and segments[0] == "accounts":
        return segments[1]
    return None


class DocumentSnapshot:
    def __init__(self, reference: "DocumentReference", data: Optional[dict]):
        self.reference = reference
        self._data = data

    @property
    def id(self) -> str:
        return self.reference.id

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[dict]:
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field_path: str) -> Any:
        if self._data is None:
            return None
        return resolve_key(self._data, field_path)


class DocumentReference:
    def __init__(self, store: "DocumentStore", collection: str, doc_id: str):
        self._store = store
        self.collection_path = collection
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self.collection_path}/{self.id}"

    def collection(self, name: str) -> "CollectionReference":
        return CollectionReference(self._store, f"{self.path}/{name}")

    def get(self) -> DocumentSnapshot:
        row = self._store._get_row(self.collection_path, self.id)
        return DocumentSnapshot(self, copy.deepcopy(row.data) if row else None)

    def set(self, data: dict, merge: bool = False) -> None:
        batch = self._store.batch()
        batch.set(self, data, merge=merge)
        batch.commit()

    def update(self, updates: dict) -> None:
        batch = self._store.batch()
        batch.update(self, updates)
        batch.commit()

    def delete(self) -> None:
        batch = self._store.batch()
        batch.delete(self)
        batch.commit()


class Query:
    """Filters run in SQL where an index exists, everything else in Python"""

    def __init__(self, store: "DocumentStore", collection: Optional[str] = None, kind: Optional[str] = None):
        self._store = store
        self._collection = collection
        self._kind = kind
        self._filters: list[tuple[str, str, Any]] = []
        self._orders: list[tuple[str, str]] = []
        self._limit: Optional[int] = None

    def _copy(self) -> "Query":
        clone = Query(self._store, self._collection, self._kind)
        clone._filters = list(self._filters)
        clone._orders = list(self._orders)
        clone._limit = self._limit
        return clone

    def where(self, field_path: str, op: str, value: Any) -> "Query":
        if op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {op}")
        clone = self._copy()
        clone._filters.append((field_path, op, value))
        return clone

    def order_by(self, field_path: str, direction: str = "asc") -> "Query":
        direction = direction.lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"Unsupported direction: {direction}")
        clone = self._copy()
        clone._orders.append((field_path, direction))
        return clone

    def limit(self, count: int) -> "Query":
        clone = self._copy()
        clone._limit = count
        return clone

    def _rows(self) -> list[Document]:
        query = self._store.db.query(Document)
        if self._collection is not None:
            query = query.filter(Document.collection == self._collection)
        else:
            query = query.filter(Document.kind == self._kind)

        for field_path, op, value in self._filters:
            if field_path == "accountId" and op == "==":
                query = query.filter(Document.account_id == str(value))

        return query.order_by(Document.id).all()

    def _matches(self, data: dict) -> bool:
        for field_path, op, value in self._filters:
            current = resolve_key(data, field_path)
            if op in ("in", "not-in", "array-contains"):
                matched = OPERATORS[op](current, value)
            elif op in ("==", "!="):
                matched = OPERATORS[op](comparable(current), comparable(encode_value(value)))
            else:
                if current is None:
                    return False
                try:
                    matched = OPERATORS[op](comparable(current), comparable(encode_value(value)))
                except TypeError:
                    return False
            if not matched:
                return False
        return True

    def stream(self) -> list[DocumentSnapshot]:
        rows = [row for row in self._rows() if self._matches(row.data or {})]

        # Apply orderings from the last to the first so the first one wins
        for field_path, direction in reversed(self._orders):
            present = [r for r in rows if resolve_key(r.data, field_path) is not None]
            missing = [r for r in rows if resolve_key(r.data, field_path) is None]
            present.sort(
                key=lambda r: sort_key(resolve_key(r.data, field_path)),
                reverse=direction == "desc",
            )
            rows = present + missing

        if self._limit is not None:
            rows = rows[: self._limit]

        return [
            DocumentSnapshot(
                DocumentReference(self._store, row.collection, row.doc_id),
                copy.deepcopy(row.data),
            )
            for row in rows
        ]

    def get(self) -> list[DocumentSnapshot]:
        return self.stream()

    def count(self) -> int:
        return len(self.stream())


class CollectionReference(Query):
    def __init__(self, store: "DocumentStore", path: str):
        segments = _split_path(path)
        if not segments or len(segments) % 2 == 0:
            raise ValueError(f"Invalid collection path: {path}")
        super().__init__(store, collection="/".join(segments))
        self.path = "/".join(segments)
        self.id = segments[-1]

    def document(self, doc_id: Optional[str] = None) -> DocumentReference:
        return DocumentReference(self._store, self.path, doc_id or uuid.uuid4().hex[:20])

    def add(self, data: dict) -> DocumentReference:
        ref = self.document()
        ref.set(data)
        return ref


class WriteBatch:
    """Queued writes applied in a single transaction"""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._operations: list[tuple[str, DocumentReference, Any, bool]] = []

    def __len__(self) -> int:
        return len(self._operations)

    def set(self, ref: DocumentReference, data: dict, merge: bool = False) -> "WriteBatch":
        self._operations.append(("set", ref, copy.deepcopy(data), merge))
        return self

    def update(self, ref: DocumentReference, updates: dict) -> "WriteBatch":
        self._operations.append(("update", ref, copy.deepcopy(updates), False))
        return self

    def delete(self, ref: DocumentReference) -> "WriteBatch":
        self._operations.append(("delete", ref, None, False))
        return self

    def commit(self) -> int:
        db = self._store.db
        try:
            for action, ref, payload, merge in self._operations:
                self._apply(action, ref, payload, merge)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Batch of {len(self._operations)} writes rolled back: {e}")
            raise

        committed = len(self._operations)
        self._operations = []
        return committed

    def _apply(self, action: str, ref: DocumentReference, payload: Any, merge: bool) -> None:
        db = self._store.db
        row = self._store._get_row(ref.collection_path, ref.id)

        if action == "delete":
            if row is not None:
                db.delete(row)
            return

        if action == "update":
            if row is None:
                raise DocumentNotFoundError(ref.path)
            data = copy.deepcopy(row.data or {})
            for field_path, value in payload.items():
                set_field(data, field_path, encode_value(value))
        elif merge and row is not None:
            data = copy.deepcopy(row.data or {})
            for key, value in payload.items():
                data[key] = encode_value(value)
        else:
            data = encode_value(payload)

        if row is None:
            row = Document(
                collection=ref.collection_path,
                kind=_split_path(ref.collection_path)[-1],
                doc_id=ref.id,
            )
            db.add(row)

        # Reassign so SQLAlchemy notices the JSON change
        row.data = data
        row.account_id = _owner_account_id(ref.collection_path, data)
        db.flush()


class DocumentStore:
    def __init__(self, db: Session):
        self.db = db

    def collection(self, path: str) -> CollectionReference:
        return CollectionReference(self, path)

    def document(self, path: str) -> DocumentReference:
        segments = _split_path(path)
        if len(segments) < 2 or len(segments) % 2 != 0:
            raise ValueError(f"Invalid document path: {path}")
        return DocumentReference(self, "/".join(segments[:-1]), segments[-1])

    def collection_group(self, kind: str) -> Query:
        """Query every collection whose last path segment is `kind`"""
        return Query(self, kind=kind)

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def descendants(self, document_path: str) -> list[DocumentSnapshot]:
        """Every document in any sub-collection below `document_path`, at any depth"""
        prefix = document_path.strip("/") + "/"
        rows = (
            self.db.query(Document)
            .filter(Document.collection.startswith(prefix, autoescape=True))
            .order_by(Document.id)
            .all()
        )
        return [
            DocumentSnapshot(DocumentReference(self, row.collection, row.doc_id), copy.deepcopy(row.data))
            for row in rows
        ]

    def _get_row(self, collection: str, doc_id: str) -> Optional[Document]:
        return (
            self.db.query(Document)
            .filter(Document.collection == collection, Document.doc_id == doc_id)
            .first()
        )


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    """Dependency injection for DocumentStore"""
    return DocumentStore(db)
