"""Typed live feeds of restaurant-scoped collections.

Views subscribe here rather than on the raw store: records arrive as parsed
schema objects, in the collection's default order. A blank restaurant id
opens nothing - the returned handle is already closed and the callback never
fires.
"""

import logging
from typing import Callable, List, Optional, Type, TypeVar

from tableat.db.store import (
    RESTAURANTS,
    Collection,
    DocumentSnapshot,
    DocumentStore,
    Snapshot,
    Subscription,
    collection_path,
)
from tableat.schemas.base import Record

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


def parse_snapshot(snapshot: Snapshot, model: Type[R]) -> List[R]:
    return [model.from_document(doc.id, doc.data) for doc in snapshot]


def subscribe_records(
    store: DocumentStore,
    restaurant_id: str,
    collection: Collection,
    model: Type[R],
    callback: Callable[[List[R]], None],
) -> Subscription:
    if not restaurant_id:
        logger.debug(f"No restaurant id, not subscribing to {collection.value}")
        return Subscription.inert(f"{RESTAURANTS}/-/{collection.value}")

    order_by, descending = collection.ordering
    return store.subscribe(
        collection_path(restaurant_id, collection),
        lambda snapshot: callback(parse_snapshot(snapshot, model)),
        order_by=order_by,
        descending=descending,
    )


def subscribe_record(
    store: DocumentStore,
    path: str,
    doc_id: str,
    model: Type[R],
    callback: Callable[[Optional[R]], None],
) -> Subscription:
    if not doc_id:
        return Subscription.inert(f"{path}/-")

    def deliver(document: Optional[DocumentSnapshot]) -> None:
        callback(model.from_document(document.id, document.data) if document else None)

    return store.subscribe_document(path, doc_id, deliver)


def list_records(
    store: DocumentStore,
    restaurant_id: str,
    collection: Collection,
    model: Type[R],
) -> List[R]:
    order_by, descending = collection.ordering
    documents = store.list_documents(
        collection_path(restaurant_id, collection),
        order_by=order_by,
        descending=descending,
    )
    return [model.from_document(doc.id, doc.data) for doc in documents]
