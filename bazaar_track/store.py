"""
Document store abstraction for MongoDB, SQLAlchemy and an in-memory test implementation.

All stores speak the same small query language: field equality, the
operators ``$in``, ``$nin``, ``$ne``, ``$gt``, ``$gte``, ``$lt``, ``$lte``,
``$regex`` (with ``$options``), ``$exists`` and a top-level ``$or``.
Documents come back as plain dicts with their identifier under ``_id`` as a
string.
"""

from __future__ import annotations

import copy
import logging
import re
import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Protocol, Sequence

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.errors import PyMongoError
from pymongo.server_api import ServerApi
from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from bazaar_track.errors import UpstreamFailure

logger = logging.getLogger(__name__)

SortSpec = Sequence[tuple[str, int]]

ASCENDING = 1
DESCENDING = -1


class DocumentStore(Protocol):
    """Interface for document access."""

    def insert_one(self, collection: str, document: dict) -> str:
        ...

    def find_one(self, collection: str, filters: Optional[dict] = None) -> Optional[dict]:
        ...

    def find(
        self,
        collection: str,
        filters: Optional[dict] = None,
        *,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict]:
        ...

    def count(self, collection: str, filters: Optional[dict] = None) -> int:
        ...

    def update_one(self, collection: str, filters: dict, changes: dict) -> int:
        """Set ``changes`` on the first match. Returns the matched count."""
        ...

    def delete_one(self, collection: str, filters: dict) -> int:
        """Returns the deleted count."""
        ...

    def ping(self) -> bool:
        ...

    def close(self) -> None:
        ...


_COMPARATORS = {
    "$gt": lambda value, operand: value > operand,
    "$gte": lambda value, operand: value >= operand,
    "$lt": lambda value, operand: value < operand,
    "$lte": lambda value, operand: value <= operand,
}


def _match_operators(value: Any, condition: dict) -> bool:
    for op, operand in condition.items():
        if op == "$options":
            continue
        if op == "$in":
            ok = value in operand
        elif op == "$nin":
            ok = value not in operand
        elif op == "$ne":
            ok = value != operand
        elif op == "$exists":
            ok = (value is not None) == bool(operand)
        elif op == "$regex":
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            ok = isinstance(value, str) and re.search(operand, value, flags) is not None
        elif op in _COMPARATORS:
            try:
                ok = value is not None and _COMPARATORS[op](value, operand)
            except TypeError:
                ok = False
        else:
            raise ValueError(f"Unsupported query operator: {op}")
        if not ok:
            return False
    return True


def matches(document: dict, filters: Optional[dict]) -> bool:
    """Evaluate a Mongo-style filter against a plain document."""
    if not filters:
        return True
    for key, condition in filters.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
            continue
        value = document.get(key)
        if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
            if not _match_operators(value, condition):
                return False
        elif value != condition:
            return False
    return True


def _sort_key(value: Any) -> tuple:
    # Missing values sort first, as they do in MongoDB.
    return (value is not None, value)


def apply_window(
    documents: list[dict],
    sort: Optional[SortSpec] = None,
    skip: int = 0,
    limit: int = 0,
) -> list[dict]:
    """Sort, skip and limit an already filtered list of documents."""
    items = list(documents)
    for field, direction in reversed(list(sort or [])):
        items.sort(key=lambda d: _sort_key(d.get(field)), reverse=direction < 0)
    if skip:
        items = items[skip:]
    if limit:
        items = items[:limit]
    return items


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}

    def _collection(self, name: str) -> Dict[str, dict]:
        return self.collections.setdefault(name, {})

    def _first_match(self, collection: str, filters: Optional[dict]) -> Optional[dict]:
        for document in self._collection(collection).values():
            if matches(document, filters):
                return document
        return None

    def insert_one(self, collection: str, document: dict) -> str:
        doc_id = uuid.uuid4().hex
        self._collection(collection)[doc_id] = {**copy.deepcopy(document), "_id": doc_id}
        return doc_id

    def find_one(self, collection: str, filters: Optional[dict] = None) -> Optional[dict]:
        found = self._first_match(collection, filters)
        return copy.deepcopy(found) if found else None

    def find(
        self,
        collection: str,
        filters: Optional[dict] = None,
        *,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict]:
        found = [d for d in self._collection(collection).values() if matches(d, filters)]
        return copy.deepcopy(apply_window(found, sort, skip, limit))

    def count(self, collection: str, filters: Optional[dict] = None) -> int:
        return sum(1 for d in self._collection(collection).values() if matches(d, filters))

    def update_one(self, collection: str, filters: dict, changes: dict) -> int:
        found = self._first_match(collection, filters)
        if not found:
            return 0
        found.update(copy.deepcopy(changes))
        return 1

    def delete_one(self, collection: str, filters: dict) -> int:
        found = self._first_match(collection, filters)
        if not found:
            return 0
        del self._collection(collection)[found["_id"]]
        return 1

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()


class _NoMatch(Exception):
    """Raised when a filter references an id that cannot exist."""


def _object_id(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return value
    # ObjectId(None) would mint a fresh id.
    if value is None:
        raise _NoMatch(value)
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise _NoMatch(value)


def _to_mongo_filters(filters: Optional[dict]) -> dict:
    if not filters:
        return {}
    converted = dict(filters)
    if "_id" in converted:
        condition = converted["_id"]
        if isinstance(condition, dict) and "$in" in condition:
            ids = []
            for value in condition["$in"]:
                try:
                    ids.append(_object_id(value))
                except _NoMatch:
                    continue
            converted["_id"] = {**condition, "$in": ids}
        else:
            converted["_id"] = _object_id(condition)
    if "$or" in converted:
        converted["$or"] = [_to_mongo_filters(sub) for sub in converted["$or"]]
    return converted


def _from_mongo(document: Optional[dict]) -> Optional[dict]:
    if document is None:
        return None
    document["_id"] = str(document["_id"])
    return document


class MongoDocumentStore:
    """pymongo-backed implementation."""

    def __init__(self, uri: str, database_name: str):
        if not uri:
            raise ValueError("MONGODB_URI is required for MongoDocumentStore")
        self.client = MongoClient(
            uri,
            server_api=ServerApi("1", strict=True, deprecation_errors=True),
        )
        self.db = self.client[database_name]

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PyMongoError as exc:
            logger.exception("MongoDB %s failed", operation)
            raise UpstreamFailure(str(exc)) from exc

    def insert_one(self, collection: str, document: dict) -> str:
        with self._translate_errors("insert_one"):
            result = self.db[collection].insert_one(dict(document))
        return str(result.inserted_id)

    def find_one(self, collection: str, filters: Optional[dict] = None) -> Optional[dict]:
        try:
            query = _to_mongo_filters(filters)
        except _NoMatch:
            return None
        with self._translate_errors("find_one"):
            return _from_mongo(self.db[collection].find_one(query))

    def find(
        self,
        collection: str,
        filters: Optional[dict] = None,
        *,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict]:
        try:
            query = _to_mongo_filters(filters)
        except _NoMatch:
            return []
        with self._translate_errors("find"):
            cursor = self.db[collection].find(query)
            if sort:
                cursor = cursor.sort(list(sort))
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return [_from_mongo(doc) for doc in cursor]

    def count(self, collection: str, filters: Optional[dict] = None) -> int:
        try:
            query = _to_mongo_filters(filters)
        except _NoMatch:
            return 0
        with self._translate_errors("count"):
            return self.db[collection].count_documents(query)

    def update_one(self, collection: str, filters: dict, changes: dict) -> int:
        try:
            query = _to_mongo_filters(filters)
        except _NoMatch:
            return 0
        with self._translate_errors("update_one"):
            result = self.db[collection].update_one(query, {"$set": changes})
        return result.matched_count

    def delete_one(self, collection: str, filters: dict) -> int:
        try:
            query = _to_mongo_filters(filters)
        except _NoMatch:
            return 0
        with self._translate_errors("delete_one"):
            result = self.db[collection].delete_one(query)
        return result.deleted_count

    def ping(self) -> bool:
        with self._translate_errors("ping"):
            self.client.admin.command("ping")
        return True

    def close(self) -> None:
        self.client.close()


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    id = Column(String, primary_key=True)
    collection = Column(String, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False)


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation storing each document as a JSON row.
    Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDocumentStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.exception("SQL %s failed", operation)
            raise UpstreamFailure(str(exc)) from exc

    @staticmethod
    def _to_document(row: DocumentRow) -> dict:
        return {**copy.deepcopy(row.data), "_id": row.id}

    def _matching_rows(
        self, session: Session, collection: str, filters: Optional[dict]
    ) -> list[DocumentRow]:
        doc_id = (filters or {}).get("_id")
        if isinstance(doc_id, str) and len(filters) == 1:
            row = session.get(DocumentRow, doc_id)
            if row is None or row.collection != collection:
                return []
            return [row]
        stmt = (
            select(DocumentRow)
            .where(DocumentRow.collection == collection)
            .order_by(DocumentRow.created_at.asc())
        )
        rows = session.execute(stmt).scalars().all()
        return [row for row in rows if matches(self._to_document(row), filters)]

    def insert_one(self, collection: str, document: dict) -> str:
        doc_id = uuid.uuid4().hex
        with self._session("insert_one") as session:
            session.add(
                DocumentRow(
                    id=doc_id,
                    collection=collection,
                    data=copy.deepcopy(document),
                    created_at=time.time(),
                )
            )
            session.commit()
        return doc_id

    def find_one(self, collection: str, filters: Optional[dict] = None) -> Optional[dict]:
        with self._session("find_one") as session:
            rows = self._matching_rows(session, collection, filters)
            return self._to_document(rows[0]) if rows else None

    def find(
        self,
        collection: str,
        filters: Optional[dict] = None,
        *,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict]:
        with self._session("find") as session:
            rows = self._matching_rows(session, collection, filters)
            documents = [self._to_document(row) for row in rows]
        return apply_window(documents, sort, skip, limit)

    def count(self, collection: str, filters: Optional[dict] = None) -> int:
        with self._session("count") as session:
            return len(self._matching_rows(session, collection, filters))

    def update_one(self, collection: str, filters: dict, changes: dict) -> int:
        with self._session("update_one") as session:
            rows = self._matching_rows(session, collection, filters)
            if not rows:
                return 0
            row = rows[0]
            # JSON columns only persist on reassignment.
            row.data = {**row.data, **copy.deepcopy(changes)}
            session.commit()
            return 1

    def delete_one(self, collection: str, filters: dict) -> int:
        with self._session("delete_one") as session:
            rows = self._matching_rows(session, collection, filters)
            if not rows:
                return 0
            session.delete(rows[0])
            session.commit()
            return 1

    def ping(self) -> bool:
        with self._session("ping") as session:
            session.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()
