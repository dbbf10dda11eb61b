"""Tests for the Firestore adapter against a mocked client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gexc

from tableat.core.errors import NotFoundError, StoreUnavailableError, WriteFailedError
from tableat.db.firestore_store import FirestoreDocumentStore

PATH = "restaurants/BY_THE_WAY/tables"


def _doc(doc_id, data, exists=True):
    doc = MagicMock()
    doc.id = doc_id
    doc.exists = exists
    doc.to_dict.return_value = data if exists else None
    return doc


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def store(client):
    return FirestoreDocumentStore(client)


class TestFirestoreWrites:

    def test_get(self, client, store):
        client.collection.return_value.document.return_value.get.return_value = _doc("1", {"capacity": 4})
        assert store.get(PATH, "1") == {"capacity": 4}
        client.collection.assert_called_with(PATH)

    def test_get_missing(self, client, store):
        client.collection.return_value.document.return_value.get.return_value = _doc("1", None, exists=False)
        assert store.get(PATH, "1") is None

    def test_read_error_is_unavailable(self, client, store):
        client.collection.return_value.stream.side_effect = gexc.ServiceUnavailable("down")
        with pytest.raises(StoreUnavailableError):
            store.list_documents(PATH)

    def test_list_sorted_locally(self, client, store):
        client.collection.return_value.stream.return_value = [
            _doc("b", {"table_number": 2}),
            _doc("x", {}),
            _doc("a", {"table_number": 1}),
        ]
        assert [d.id for d in store.list_documents(PATH, "table_number")] == ["a", "b", "x"]

    def test_update_missing_is_not_found(self, client, store):
        client.collection.return_value.document.return_value.update.side_effect = gexc.NotFound("no doc")
        with pytest.raises(NotFoundError):
            store.update(PATH, "9", {"occupied": True})

    def test_failed_write(self, client, store):
        client.collection.return_value.document.return_value.set.side_effect = gexc.PermissionDenied("rules")
        with pytest.raises(WriteFailedError):
            store.set(PATH, "1", {"capacity": 2})

    def test_add_returns_generated_id(self, client, store):
        ref = client.collection.return_value.document.return_value
        ref.id = "generated123"
        assert store.add(PATH, {"capacity": 2}) == "generated123"
        ref.set.assert_called_once_with({"capacity": 2})

    def test_set_merge(self, client, store):
        ref = client.collection.return_value.document.return_value
        store.set(PATH, "1", {"capacity": 2}, merge=True)
        ref.set.assert_called_once_with({"capacity": 2}, merge=True)


class TestFirestoreWatches:

    def test_collection_watch(self, client, store):
        watch = MagicMock()
        listeners = []
        query = client.collection.return_value

        def on_snapshot(callback):
            listeners.append(callback)
            return watch

        query.on_snapshot.side_effect = on_snapshot
        received = []
        sub = store.subscribe(PATH, received.append, order_by="table_number")

        read_time = datetime(2026, 3, 10, tzinfo=timezone.utc)
        listeners[0]([
            _doc("2", {"table_number": 2}),
            _doc("x", {}),
            _doc("1", {"table_number": 1}),
        ], [], read_time)
        # documents without the order field are kept and sort last
        assert [d.id for d in received[0]] == ["1", "2", "x"]
        query.order_by.assert_not_called()
        assert received[0].read_time == read_time
        assert store.active_subscription_count() == 1

        sub.unsubscribe()
        sub.unsubscribe()
        watch.unsubscribe.assert_called_once()
        assert store.active_subscription_count() == 0

        # late delivery from the watch thread is dropped
        listeners[0]([], [], read_time)
        assert len(received) == 1

    def test_document_watch(self, client, store):
        watch = MagicMock()
        listeners = []
        ref = client.collection.return_value.document.return_value

        def on_snapshot(callback):
            listeners.append(callback)
            return watch

        ref.on_snapshot.side_effect = on_snapshot
        received = []
        with store.subscribe_document("restaurants", "BY_THE_WAY", received.append):
            listeners[0]([_doc("BY_THE_WAY", None, exists=False)], [], None)
            listeners[0]([_doc("BY_THE_WAY", {"name": "By The Way"})], [], None)

        assert received[0] is None
        assert received[1].data == {"name": "By The Way"}
        watch.unsubscribe.assert_called_once()
