"""Document store on top of SQLAlchemy (SQLite by default).

Each document is one row of the ``documents`` table holding its JSON data.
Live feeds are served in-process: every committed write redelivers the full
ordered snapshot of the affected collection to its watchers. Writes and
deliveries are serialised by one lock, so watchers observe snapshots in
commit order and never see a half-applied write.
"""

import logging
import os
import threading
import uuid
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from pydantic_core import to_jsonable_python
from sqlalchemy import Engine, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tableat.core.errors import NotFoundError, StoreUnavailableError, WriteFailedError
from tableat.db.base import Base
from tableat.db.session import create_db_engine, create_session_factory
from tableat.db.store import (
    DocumentCallback,
    DocumentSnapshot,
    DocumentStore,
    Snapshot,
    SnapshotCallback,
    sort_documents,
)
from tableat.models.document import Document

logger = logging.getLogger(__name__)


class _CollectionWatcher:
    def __init__(self, deliver: SnapshotCallback, order_by: Optional[str], descending: bool):
        self.deliver = deliver
        self.order_by = order_by
        self.descending = descending


class SqlDocumentStore(DocumentStore):
    backend = "sql"

    def __init__(self, engine: Engine, create_tables: bool = True):
        super().__init__()
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._write_lock = threading.RLock()
        self._collection_watchers: Dict[str, List[_CollectionWatcher]] = defaultdict(list)
        self._document_watchers: Dict[Tuple[str, str], List[DocumentCallback]] = defaultdict(list)
        if create_tables:
            Base.metadata.create_all(bind=engine)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlDocumentStore":
        if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
            db_file = database_url.replace("sqlite:///", "", 1)
            directory = os.path.dirname(db_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
        try:
            engine = create_db_engine(database_url, echo=echo)
            store = cls(engine)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Could not open document database: {e}") from e
        logger.info(f"SQL document store ready ({engine.url.get_backend_name()})")
        return store

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    @staticmethod
    def _encode(data: Dict[str, Any]) -> Dict[str, Any]:
        return to_jsonable_python(data)

    def _row(self, session: Session, path: str, doc_id: str) -> Optional[Document]:
        stmt = select(Document).where(Document.path == path, Document.doc_id == doc_id)
        return session.execute(stmt).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, path: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self._session() as session:
                row = self._row(session, path, doc_id)
                return dict(row.data) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Failed to read {path}/{doc_id}") from e

    def list_documents(
        self,
        path: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[DocumentSnapshot]:
        try:
            with self._session() as session:
                stmt = select(Document).where(Document.path == path).order_by(Document.id)
                rows = session.execute(stmt).scalars().all()
                documents = [DocumentSnapshot(id=row.doc_id, data=dict(row.data)) for row in rows]
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Failed to read {path}") from e
        return sort_documents(documents, order_by, descending)

    def ping(self) -> None:
        try:
            with self._session() as session:
                session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreUnavailableError("Document database is unreachable") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @contextmanager
    def _write(self, path: str, doc_id: str) -> Iterator[Session]:
        """Run one write in its own transaction, then notify watchers."""
        with self._write_lock:
            with self._session() as session:
                try:
                    yield session
                    session.commit()
                except SQLAlchemyError as e:
                    session.rollback()
                    logger.error(f"Write to {path}/{doc_id} failed: {e}")
                    raise WriteFailedError(f"Failed to write {path}/{doc_id}") from e
                except Exception:
                    session.rollback()
                    raise
            logger.info(f"Wrote {path}/{doc_id}")
            self._notify(path, doc_id)

    def set(self, path: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        encoded = self._encode(data)
        with self._write(path, doc_id) as session:
            row = self._row(session, path, doc_id)
            if row is None:
                session.add(Document(path=path, doc_id=doc_id, data=encoded))
            elif merge:
                row.data = {**row.data, **encoded}
            else:
                row.data = encoded

    def update(self, path: str, doc_id: str, patch: Dict[str, Any]) -> None:
        encoded = self._encode(patch)
        with self._write(path, doc_id) as session:
            row = self._row(session, path, doc_id)
            if row is None:
                raise NotFoundError(f"Document {path}/{doc_id} not found")
            row.data = {**row.data, **encoded}

    def add(self, path: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        encoded = self._encode(data)
        with self._write(path, doc_id) as session:
            session.add(Document(path=path, doc_id=doc_id, data=encoded))
        return doc_id

    def delete(self, path: str, doc_id: str) -> None:
        with self._write(path, doc_id) as session:
            row = self._row(session, path, doc_id)
            if row is not None:
                session.delete(row)

    # ------------------------------------------------------------------
    # Live feeds
    # ------------------------------------------------------------------

    def _notify(self, path: str, doc_id: str) -> None:
        watchers = list(self._collection_watchers.get(path, ()))
        if watchers:
            documents = self.list_documents(path)
            for watcher in watchers:
                ordered = sort_documents(documents, watcher.order_by, watcher.descending)
                self._safe_deliver(watcher.deliver, Snapshot(path=path, documents=tuple(ordered)))

        doc_watchers = list(self._document_watchers.get((path, doc_id), ()))
        if doc_watchers:
            document = self._document_snapshot(path, doc_id)
            for deliver in doc_watchers:
                self._safe_deliver(deliver, document)

    def _document_snapshot(self, path: str, doc_id: str) -> Optional[DocumentSnapshot]:
        data = self.get(path, doc_id)
        return DocumentSnapshot(id=doc_id, data=data) if data is not None else None

    @staticmethod
    def _safe_deliver(deliver: Callable[[Any], None], payload: Any) -> None:
        try:
            deliver(payload)
        except Exception:
            logger.exception("Snapshot listener raised; continuing with remaining listeners")

    def _watch_collection(
        self,
        path: str,
        deliver: SnapshotCallback,
        order_by: Optional[str],
        descending: bool,
    ) -> Callable[[], None]:
        watcher = _CollectionWatcher(deliver, order_by, descending)
        with self._write_lock:
            self._collection_watchers[path].append(watcher)
            documents = self.list_documents(path, order_by, descending)
            self._safe_deliver(deliver, Snapshot(path=path, documents=tuple(documents)))

        def stop() -> None:
            with self._write_lock:
                watchers = self._collection_watchers.get(path, [])
                if watcher in watchers:
                    watchers.remove(watcher)
                if not watchers:
                    self._collection_watchers.pop(path, None)

        return stop

    def _watch_document(
        self,
        path: str,
        doc_id: str,
        deliver: DocumentCallback,
    ) -> Callable[[], None]:
        key = (path, doc_id)
        with self._write_lock:
            self._document_watchers[key].append(deliver)
            self._safe_deliver(deliver, self._document_snapshot(path, doc_id))

        def stop() -> None:
            with self._write_lock:
                watchers = self._document_watchers.get(key, [])
                if deliver in watchers:
                    watchers.remove(deliver)
                if not watchers:
                    self._document_watchers.pop(key, None)

        return stop

    def close(self) -> None:
        super().close()
        self._engine.dispose()
