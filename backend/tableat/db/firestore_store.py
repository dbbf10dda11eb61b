"""Document store backed by Cloud Firestore through the Firebase Admin SDK.

Firestore already provides live queries; this adapter only maps its
``on_snapshot`` watches onto ``Snapshot`` deliveries and its API errors onto
the application's error categories.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from tableat.core.errors import NotFoundError, StoreUnavailableError, WriteFailedError
from tableat.db.store import (
    DocumentCallback,
    DocumentSnapshot,
    DocumentStore,
    Snapshot,
    SnapshotCallback,
    sort_documents,
)

logger = logging.getLogger(__name__)


class FirestoreDocumentStore(DocumentStore):
    backend = "firestore"

    def __init__(self, client):
        super().__init__()
        self._client = client

    @classmethod
    def from_credentials(
        cls,
        credentials_path: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> "FirestoreDocumentStore":
        """Initialize Firebase Admin SDK and open a Firestore client."""
        try:
            import firebase_admin
            from firebase_admin import credentials as fb_credentials
            from firebase_admin import firestore

            try:
                app = firebase_admin.get_app()
            except ValueError:
                cred = (
                    fb_credentials.Certificate(credentials_path)
                    if credentials_path
                    else fb_credentials.ApplicationDefault()
                )
                options = {"projectId": project_id} if project_id else None
                app = firebase_admin.initialize_app(cred, options)
            client = firestore.client(app)
        except Exception as e:
            raise StoreUnavailableError(f"Firestore initialization failed: {e}") from e

        logger.info("Firebase Admin SDK initialized, Firestore document store ready")
        return cls(client)

    @staticmethod
    def _to_snapshot(doc) -> DocumentSnapshot:
        return DocumentSnapshot(id=doc.id, data=doc.to_dict() or {})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, path: str, doc_id: str) -> Optional[Dict[str, Any]]:
        from google.api_core import exceptions as gexc

        try:
            snap = self._client.collection(path).document(doc_id).get()
        except gexc.GoogleAPIError as e:
            raise StoreUnavailableError(f"Failed to read {path}/{doc_id}: {e}") from e
        return snap.to_dict() if snap.exists else None

    def _sorted(self, docs, order_by: Optional[str], descending: bool) -> List[DocumentSnapshot]:
        # Sorted locally: a server-side order_by drops documents missing the field
        return sort_documents([self._to_snapshot(d) for d in docs], order_by, descending)

    def list_documents(
        self,
        path: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[DocumentSnapshot]:
        from google.api_core import exceptions as gexc

        try:
            docs = list(self._client.collection(path).stream())
        except gexc.GoogleAPIError as e:
            raise StoreUnavailableError(f"Failed to read {path}: {e}") from e
        return self._sorted(docs, order_by, descending)

    def ping(self) -> None:
        from google.api_core import exceptions as gexc

        try:
            next(iter(self._client.collections()), None)
        except gexc.GoogleAPIError as e:
            raise StoreUnavailableError(f"Firestore is unreachable: {e}") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _write(self, path: str, doc_id: str, op: Callable[[], Any]) -> Any:
        from google.api_core import exceptions as gexc

        try:
            result = op()
        except gexc.NotFound as e:
            raise NotFoundError(f"Document {path}/{doc_id} not found") from e
        except gexc.GoogleAPIError as e:
            logger.error(f"Write to {path}/{doc_id} failed: {e}")
            raise WriteFailedError(f"Failed to write {path}/{doc_id}") from e
        logger.info(f"Wrote {path}/{doc_id}")
        return result

    def set(self, path: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        ref = self._client.collection(path).document(doc_id)
        self._write(path, doc_id, lambda: ref.set(data, merge=merge))

    def update(self, path: str, doc_id: str, patch: Dict[str, Any]) -> None:
        ref = self._client.collection(path).document(doc_id)
        self._write(path, doc_id, lambda: ref.update(patch))

    def add(self, path: str, data: Dict[str, Any]) -> str:
        ref = self._client.collection(path).document()
        self._write(path, ref.id, lambda: ref.set(data))
        return ref.id

    def delete(self, path: str, doc_id: str) -> None:
        ref = self._client.collection(path).document(doc_id)
        self._write(path, doc_id, ref.delete)

    # ------------------------------------------------------------------
    # Live feeds
    # ------------------------------------------------------------------

    def _watch_collection(
        self,
        path: str,
        deliver: SnapshotCallback,
        order_by: Optional[str],
        descending: bool,
    ) -> Callable[[], None]:
        query = self._client.collection(path)

        def on_snapshot(docs, changes, read_time) -> None:
            try:
                deliver(Snapshot(
                    path=path,
                    documents=tuple(self._sorted(docs, order_by, descending)),
                    read_time=read_time,
                ))
            except Exception:
                logger.exception(f"Snapshot listener for {path} raised")

        watch = query.on_snapshot(on_snapshot)
        return watch.unsubscribe

    def _watch_document(
        self,
        path: str,
        doc_id: str,
        deliver: DocumentCallback,
    ) -> Callable[[], None]:
        ref = self._client.collection(path).document(doc_id)

        def on_snapshot(docs, changes, read_time) -> None:
            snap = docs[0] if docs else None
            try:
                deliver(self._to_snapshot(snap) if snap is not None and snap.exists else None)
            except Exception:
                logger.exception(f"Document listener for {path}/{doc_id} raised")

        watch = ref.on_snapshot(on_snapshot)
        return watch.unsubscribe
