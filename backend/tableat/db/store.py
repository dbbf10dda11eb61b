"""Document store interface and live collection subscriptions.

Every record lives in a hierarchical collection path scoped under its
restaurant (``restaurants/{restaurant_id}/{collection}``). Backends provide
plain reads/writes plus a push feed that redelivers the complete, ordered
contents of a collection after every change.

Subscriptions are the one resource views must release: each open one keeps
a live listener inside the backend until ``unsubscribe()`` is called. The
store keeps a registry of open subscriptions so leaks are observable via
``active_subscription_count()``.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from tableat.core.errors import ValidationError

logger = logging.getLogger(__name__)

RESTAURANTS = "restaurants"


class Collection(str, Enum):
    """Restaurant-scoped collections and their default delivery order."""

    TABLES = "tables"
    MENU = "menu"
    ORDERS = "orders"
    CUSTOMERS = "customers"
    NOTIFICATIONS = "notifications"

    @property
    def ordering(self) -> Tuple[str, bool]:
        """(field, descending) used for snapshots of this collection."""
        return _ORDERING[self]


_ORDERING: Dict[Collection, Tuple[str, bool]] = {
    Collection.TABLES: ("table_number", False),
    Collection.MENU: ("created_at", True),
    Collection.ORDERS: ("created_at", True),
    Collection.CUSTOMERS: ("last_visit", True),
    Collection.NOTIFICATIONS: ("created_at", True),
}


def collection_path(restaurant_id: str, collection: Collection) -> str:
    if not restaurant_id:
        raise ValidationError("Restaurant id is required")
    return f"{RESTAURANTS}/{restaurant_id}/{Collection(collection).value}"


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self.data}


@dataclass(frozen=True)
class Snapshot:
    """Complete, consistent ordered contents of a collection."""

    path: str
    documents: Tuple[DocumentSnapshot, ...]
    read_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[DocumentSnapshot]:
        return iter(self.documents)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [doc.to_dict() for doc in self.documents]


SnapshotCallback = Callable[[Snapshot], None]
DocumentCallback = Callable[[Optional[DocumentSnapshot]], None]


class Subscription:
    """Disposal handle for a live feed.

    ``unsubscribe()`` may be called any number of times; only the first call
    releases the backend listener. No callback fires once it has returned.
    """

    def __init__(self, description: str):
        self.description = description
        self._lock = threading.Lock()
        self._active = True
        self._dispose: Optional[Callable[[], None]] = None

    @classmethod
    def inert(cls, description: str) -> "Subscription":
        """A handle for a feed that was never established."""
        sub = cls(description)
        sub._active = False
        return sub

    @property
    def active(self) -> bool:
        return self._active

    def _attach(self, dispose: Callable[[], None]) -> None:
        self._dispose = dispose

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            dispose, self._dispose = self._dispose, None
        if dispose is not None:
            dispose()
        logger.debug(f"Subscription closed: {self.description}")

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "active" if self._active else "closed"
        return f"<Subscription {self.description} {state}>"


class DocumentStore(ABC):
    """Backend-neutral access to hierarchical document collections."""

    backend: str = "abstract"

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._subscriptions: set[Subscription] = set()

    # ------------------------------------------------------------------
    # Reads / writes
    # ------------------------------------------------------------------

    @abstractmethod
    def get(self, path: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document data or None."""

    @abstractmethod
    def list_documents(
        self,
        path: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[DocumentSnapshot]:
        """Return every document of a collection in delivery order."""

    @abstractmethod
    def set(self, path: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        """Create or replace (or merge into) a document."""

    @abstractmethod
    def update(self, path: str, doc_id: str, patch: Dict[str, Any]) -> None:
        """Merge fields into an existing document. NotFoundError if missing."""

    @abstractmethod
    def add(self, path: str, data: Dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""

    @abstractmethod
    def delete(self, path: str, doc_id: str) -> None:
        """Delete a document. Deleting a missing document is a no-op."""

    @abstractmethod
    def ping(self) -> None:
        """Raise StoreUnavailableError if the backend cannot be reached."""

    # ------------------------------------------------------------------
    # Live feeds
    # ------------------------------------------------------------------

    @abstractmethod
    def _watch_collection(
        self,
        path: str,
        deliver: SnapshotCallback,
        order_by: Optional[str],
        descending: bool,
    ) -> Callable[[], None]:
        """Start a backend listener and return the function that stops it."""

    @abstractmethod
    def _watch_document(
        self,
        path: str,
        doc_id: str,
        deliver: DocumentCallback,
    ) -> Callable[[], None]:
        """Start a single-document listener and return its stop function."""

    def subscribe(
        self,
        path: str,
        callback: SnapshotCallback,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Subscription:
        """Deliver the full ordered collection now and after every change."""
        sub = Subscription(path)

        def deliver(snapshot: Snapshot) -> None:
            if sub.active:
                callback(snapshot)

        return self._open(sub, lambda: self._watch_collection(path, deliver, order_by, descending))

    def subscribe_document(
        self,
        path: str,
        doc_id: str,
        callback: DocumentCallback,
    ) -> Subscription:
        """Deliver one document (None while it does not exist) on every change."""
        sub = Subscription(f"{path}/{doc_id}")

        def deliver(document: Optional[DocumentSnapshot]) -> None:
            if sub.active:
                callback(document)

        return self._open(sub, lambda: self._watch_document(path, doc_id, deliver))

    def _open(self, sub: Subscription, start: Callable[[], Callable[[], None]]) -> Subscription:
        with self._registry_lock:
            self._subscriptions.add(sub)
        try:
            stop = start()
        except Exception:
            with self._registry_lock:
                self._subscriptions.discard(sub)
            sub.unsubscribe()
            raise

        def dispose() -> None:
            stop()
            with self._registry_lock:
                self._subscriptions.discard(sub)

        sub._attach(dispose)
        if not sub.active:
            # unsubscribed from inside the initial delivery
            dispose()
        logger.debug(f"Subscription opened: {sub.description}")
        return sub

    def active_subscription_count(self) -> int:
        with self._registry_lock:
            return len(self._subscriptions)

    def close(self) -> None:
        """Dispose every open subscription."""
        with self._registry_lock:
            open_subs = list(self._subscriptions)
        for sub in open_subs:
            sub.unsubscribe()
        if open_subs:
            logger.info(f"Closed {len(open_subs)} live subscription(s) on shutdown")


def sort_documents(
    documents: List[DocumentSnapshot],
    order_by: Optional[str],
    descending: bool,
) -> List[DocumentSnapshot]:
    """Order documents by a field; documents missing the field go last."""
    if not order_by:
        return list(documents)
    present = [d for d in documents if d.data.get(order_by) is not None]
    missing = [d for d in documents if d.data.get(order_by) is None]
    present.sort(key=lambda d: d.data[order_by], reverse=descending)
    return present + missing


def create_store(settings) -> DocumentStore:
    """Build the configured backend once at process start."""
    if settings.store_backend == "firestore":
        from tableat.db.firestore_store import FirestoreDocumentStore

        return FirestoreDocumentStore.from_credentials(
            settings.firebase_credentials_path,
            settings.firebase_project_id,
        )

    from tableat.db.sql_store import SqlDocumentStore

    return SqlDocumentStore.from_url(settings.database_url, echo=False)
