"""
Document store abstraction for Firestore, SQL and an in-memory test implementation.

Every implementation assigns document ids and the ``createdAt`` /
``updatedAt`` timestamps itself; values supplied by callers are overwritten.
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, Optional, Protocol

from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP, Query
from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from wedding_api.errors import NotFoundError, UpstreamError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"
SERVER_FIELDS = ("id", CREATED_AT, UPDATED_AT)


class DocumentStore(Protocol):
    """Interface for the schema-less document database."""

    def add(self, collection: str, data: dict) -> str:
        ...

    def list(self, collection: str, *, newest_first: bool = False) -> list[dict]:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def get_many(self, collection: str, doc_ids: Iterable[str]) -> Dict[str, dict]:
        ...

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _strip_server_fields(data: dict) -> dict:
    return {k: v for k, v in data.items() if k not in SERVER_FIELDS}


class InMemoryDocumentStore:
    """
    Simple in-memory document store for development and tests.

    Calls arrive from worker threads, so every access holds ``_lock``.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self._lock = threading.RLock()

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        doc = _strip_server_fields(data)
        doc[CREATED_AT] = _utcnow()
        with self._lock:
            self.collections.setdefault(collection, {})[doc_id] = doc
        return doc_id

    def list(self, collection: str, *, newest_first: bool = False) -> list[dict]:
        with self._lock:
            docs = [
                {"id": doc_id, **doc}
                for doc_id, doc in self.collections.get(collection, {}).items()
            ]
        if newest_first:
            docs.reverse()
        return docs

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            doc = self.collections.get(collection, {}).get(doc_id)
            if doc is None:
                return None
            return {"id": doc_id, **doc}

    def get_many(self, collection: str, doc_ids: Iterable[str]) -> Dict[str, dict]:
        found: Dict[str, dict] = {}
        with self._lock:
            for doc_id in set(doc_ids):
                doc = self.get(collection, doc_id)
                if doc is not None:
                    found[doc_id] = doc
        return found

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        with self._lock:
            doc = self.collections.get(collection, {}).get(doc_id)
            if doc is None:
                raise NotFoundError(f"Document {doc_id} not found in {collection}")
            doc.update(_strip_server_fields(fields))
            doc[UPDATED_AT] = _utcnow()

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            docs = self.collections.get(collection, {})
            if doc_id not in docs:
                raise NotFoundError(f"Document {doc_id} not found in {collection}")
            del docs[doc_id]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()


@contextmanager
def _google_errors(action: str, *, missing: Optional[str] = None) -> Iterator[None]:
    try:
        yield
    except google_exceptions.NotFound as e:
        if missing is None:
            logger.exception("Firestore call failed while trying to %s", action)
            raise UpstreamError(
                f"Document store error: failed to {action}", detail=str(e)
            ) from e
        raise NotFoundError(missing) from e
    except (
        google_exceptions.DeadlineExceeded,
        google_exceptions.ServiceUnavailable,
        google_exceptions.RetryError,
    ) as e:
        logger.error("Firestore unavailable while trying to %s: %s", action, e)
        raise UpstreamUnavailableError(
            f"Document store unavailable: failed to {action}", detail=str(e)
        ) from e
    except google_exceptions.GoogleAPICallError as e:
        logger.exception("Firestore call failed while trying to %s", action)
        raise UpstreamError(
            f"Document store error: failed to {action}", detail=str(e)
        ) from e


class FirestoreDocumentStore:
    """
    Firestore-backed implementation. Takes an already constructed client
    (``firebase_admin.firestore.client(app)``) so callers control the app.
    """

    def __init__(self, client, timeout: float = 10.0):
        self._client = client
        self.timeout = timeout

    def _snapshot_to_dict(self, snapshot) -> dict:
        return {"id": snapshot.id, **(snapshot.to_dict() or {})}

    def add(self, collection: str, data: dict) -> str:
        payload = _strip_server_fields(data)
        payload[CREATED_AT] = SERVER_TIMESTAMP
        with _google_errors(f"add document to {collection}"):
            _, doc_ref = self._client.collection(collection).add(
                payload, timeout=self.timeout
            )
        return doc_ref.id

    def list(self, collection: str, *, newest_first: bool = False) -> list[dict]:
        direction = Query.DESCENDING if newest_first else Query.ASCENDING
        query = self._client.collection(collection).order_by(
            CREATED_AT, direction=direction
        )
        with _google_errors(f"list {collection}"):
            return [
                self._snapshot_to_dict(snapshot)
                for snapshot in query.stream(timeout=self.timeout)
            ]

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with _google_errors(f"read {collection}/{doc_id}"):
            snapshot = (
                self._client.collection(collection)
                .document(doc_id)
                .get(timeout=self.timeout)
            )
        if not snapshot.exists:
            return None
        return self._snapshot_to_dict(snapshot)

    def get_many(self, collection: str, doc_ids: Iterable[str]) -> Dict[str, dict]:
        refs = [
            self._client.collection(collection).document(doc_id)
            for doc_id in sorted(set(doc_ids))
        ]
        if not refs:
            return {}
        found: Dict[str, dict] = {}
        with _google_errors(f"read {len(refs)} documents from {collection}"):
            for snapshot in self._client.get_all(refs, timeout=self.timeout):
                if snapshot.exists:
                    found[snapshot.id] = self._snapshot_to_dict(snapshot)
        return found

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        payload = _strip_server_fields(fields)
        payload[UPDATED_AT] = SERVER_TIMESTAMP
        doc_ref = self._client.collection(collection).document(doc_id)
        with _google_errors(
            f"update {collection}/{doc_id}",
            missing=f"Document {doc_id} not found in {collection}",
        ):
            doc_ref.update(payload, timeout=self.timeout)

    def delete(self, collection: str, doc_id: str) -> None:
        doc_ref = self._client.collection(collection).document(doc_id)
        # Firestore deletes are silent for missing documents unless guarded.
        option = self._client.write_option(exists=True)
        with _google_errors(
            f"delete {collection}/{doc_id}",
            missing=f"Document {doc_id} not found in {collection}",
        ):
            doc_ref.delete(option=option, timeout=self.timeout)


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(128), nullable=False, index=True)
    doc_id = Column(String(64), nullable=False, unique=True, index=True)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back out.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@contextmanager
def _sql_errors(action: str) -> Iterator[None]:
    try:
        yield
    except OperationalError as e:
        logger.error("Database unavailable while trying to %s: %s", action, e)
        raise UpstreamUnavailableError(
            f"Document store unavailable: failed to {action}", detail=str(e)
        ) from e
    except SQLAlchemyError as e:
        logger.exception("Database call failed while trying to %s", action)
        raise UpstreamError(
            f"Document store error: failed to {action}", detail=str(e)
        ) from e


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation storing each document as a JSON column.
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

    def _to_dict(self, row: DocumentRow) -> dict:
        doc = {"id": row.doc_id, **(row.data or {})}
        doc[CREATED_AT] = _as_utc(row.created_at)
        if row.updated_at is not None:
            doc[UPDATED_AT] = _as_utc(row.updated_at)
        return doc

    def _find(self, session: Session, collection: str, doc_id: str):
        stmt = select(DocumentRow).where(
            DocumentRow.collection == collection, DocumentRow.doc_id == doc_id
        )
        return session.execute(stmt).scalar_one_or_none()

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        with _sql_errors(f"add document to {collection}"):
            with self.Session() as session:
                session.add(
                    DocumentRow(
                        collection=collection,
                        doc_id=doc_id,
                        data=_strip_server_fields(data),
                        created_at=_utcnow(),
                    )
                )
                session.commit()
        return doc_id

    def list(self, collection: str, *, newest_first: bool = False) -> list[dict]:
        order = DocumentRow.seq.desc() if newest_first else DocumentRow.seq.asc()
        stmt = (
            select(DocumentRow)
            .where(DocumentRow.collection == collection)
            .order_by(order)
        )
        with _sql_errors(f"list {collection}"):
            with self.Session() as session:
                return [self._to_dict(row) for row in session.execute(stmt).scalars()]

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with _sql_errors(f"read {collection}/{doc_id}"):
            with self.Session() as session:
                row = self._find(session, collection, doc_id)
                return self._to_dict(row) if row else None

    def get_many(self, collection: str, doc_ids: Iterable[str]) -> Dict[str, dict]:
        ids = set(doc_ids)
        if not ids:
            return {}
        stmt = select(DocumentRow).where(
            DocumentRow.collection == collection, DocumentRow.doc_id.in_(ids)
        )
        with _sql_errors(f"read {len(ids)} documents from {collection}"):
            with self.Session() as session:
                return {
                    row.doc_id: self._to_dict(row)
                    for row in session.execute(stmt).scalars()
                }

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        with _sql_errors(f"update {collection}/{doc_id}"):
            with self.Session() as session:
                row = self._find(session, collection, doc_id)
                if row is None:
                    raise NotFoundError(f"Document {doc_id} not found in {collection}")
                # Reassign so the JSON column is flagged as modified.
                row.data = {**(row.data or {}), **_strip_server_fields(fields)}
                row.updated_at = _utcnow()
                session.commit()

    def delete(self, collection: str, doc_id: str) -> None:
        with _sql_errors(f"delete {collection}/{doc_id}"):
            with self.Session() as session:
                row = self._find(session, collection, doc_id)
                if row is None:
                    raise NotFoundError(f"Document {doc_id} not found in {collection}")
                session.delete(row)
                session.commit()
