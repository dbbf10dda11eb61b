"""Tests for table management and occupancy."""

import pytest

from tableat.core.errors import NotFoundError, ValidationError
from tableat.db.store import Collection, collection_path
from tableat.schemas.table import TableCreate
from tableat.services import table_service

from conftest import NOW, RESTAURANT_ID

BASE = f"/api/v1/restaurants/{RESTAURANT_ID}/tables"


def _add(store, number, capacity=4):
    return table_service.add_table(store, RESTAURANT_ID, TableCreate(table_number=number, capacity=capacity))


class TestTableService:

    def test_add_uses_number_as_id(self, store):
        assert _add(store, 7) == "7"
        table = table_service.get_table(store, RESTAURANT_ID, 7)
        assert table.capacity == 4
        assert table.occupied is False

    def test_duplicate_number_rejected(self, store):
        _add(store, 1)
        with pytest.raises(ValidationError):
            _add(store, 1, capacity=8)
        assert table_service.get_table(store, RESTAURANT_ID, 1).capacity == 4

    def test_tables_listed_by_number(self, store):
        for number in (10, 2, 5):
            _add(store, number)
        assert [t.table_number for t in table_service.list_tables(store, RESTAURANT_ID)] == [2, 5, 10]

    def test_toggle_twice_restores_state(self, store):
        _add(store, 3)
        assert table_service.toggle_table_occupancy(store, RESTAURANT_ID, 3) is True
        assert table_service.toggle_table_occupancy(store, RESTAURANT_ID, 3) is False
        assert table_service.get_table(store, RESTAURANT_ID, 3).occupied is False

    def test_toggle_missing_table(self, store):
        with pytest.raises(NotFoundError):
            table_service.toggle_table_occupancy(store, RESTAURANT_ID, 99)

    def test_freeing_table_drops_order_link(self, store):
        _add(store, 4)
        table_service.set_table_occupancy(store, RESTAURANT_ID, 4, True, order_id="abc")
        assert table_service.get_table(store, RESTAURANT_ID, 4).current_order_id == "abc"
        table_service.set_table_occupancy(store, RESTAURANT_ID, 4, False, order_id="abc")
        assert table_service.get_table(store, RESTAURANT_ID, 4).current_order_id is None

    def test_mark_for_order_skips_unknown_tables(self, store):
        assert table_service.mark_table_for_order(store, RESTAURANT_ID, 0, True) is False
        assert table_service.mark_table_for_order(store, RESTAURANT_ID, 42, True) is False
        _add(store, 42)
        assert table_service.mark_table_for_order(store, RESTAURANT_ID, 42, True, "o1") is True

    def test_delete(self, store):
        _add(store, 6)
        table_service.delete_table(store, RESTAURANT_ID, 6)
        assert table_service.get_table(store, RESTAURANT_ID, 6) is None
        with pytest.raises(NotFoundError):
            table_service.delete_table(store, RESTAURANT_ID, 6)


class TestOccupancySync:

    def test_sync_follows_open_orders(self, store):
        for number in (1, 2, 3):
            _add(store, number)
        # table 3 toggled by hand with no order behind it
        table_service.toggle_table_occupancy(store, RESTAURANT_ID, 3)
        orders = collection_path(RESTAURANT_ID, Collection.ORDERS)
        open_id = store.add(orders, {
            "table_number": 1, "items": [], "total_amount": 0, "status": "preparing", "created_at": NOW,
        })
        store.add(orders, {
            "table_number": 2, "items": [], "total_amount": 0, "status": "served", "created_at": NOW,
        })

        changed = table_service.sync_tables_with_orders(store, RESTAURANT_ID)

        assert changed == {1: True, 3: False}
        assert table_service.get_table(store, RESTAURANT_ID, 1).current_order_id == open_id
        assert table_service.sync_tables_with_orders(store, RESTAURANT_ID) == {}

    def test_sync_relinks_stale_order(self, store):
        _add(store, 1)
        orders = collection_path(RESTAURANT_ID, Collection.ORDERS)
        closed_id = store.add(orders, {
            "table_number": 1, "items": [], "total_amount": 0, "status": "served", "created_at": NOW,
        })
        open_id = store.add(orders, {
            "table_number": 1, "items": [], "total_amount": 0, "status": "pending", "created_at": NOW,
        })
        table_service.set_table_occupancy(store, RESTAURANT_ID, 1, True, order_id=closed_id)

        assert table_service.sync_tables_with_orders(store, RESTAURANT_ID) == {1: True}
        assert table_service.get_table(store, RESTAURANT_ID, 1).current_order_id == open_id
        assert table_service.sync_tables_with_orders(store, RESTAURANT_ID) == {}


class TestTableRoutes:

    def test_add_and_list(self, client):
        assert client.post(f"{BASE}/", json={"table_number": 1, "capacity": 2}).status_code == 201
        client.post(f"{BASE}/", json={"table_number": 2, "capacity": 6})
        client.post(f"{BASE}/1/toggle")

        data = client.get(f"{BASE}/").json()
        assert data["total"] == 2
        assert data["occupied"] == 1
        assert data["available"] == 1

        free = client.get(f"{BASE}/", params={"occupied": False}).json()
        assert [t["table_number"] for t in free["items"]] == [2]

    def test_write_returns_only_outcome(self, client):
        response = client.post(f"{BASE}/", json={"table_number": 9, "capacity": 4})
        assert response.json() == {"success": True, "id": "9"}

    def test_toggle_reports_new_value(self, client):
        client.post(f"{BASE}/", json={"table_number": 5, "capacity": 4})
        assert client.post(f"{BASE}/5/toggle").json()["occupied"] is True

    def test_duplicate_returns_422(self, client):
        client.post(f"{BASE}/", json={"table_number": 1, "capacity": 2})
        response = client.post(f"{BASE}/", json={"table_number": 1, "capacity": 2})
        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_invalid_capacity(self, client):
        response = client.post(f"{BASE}/", json={"table_number": 1, "capacity": 0})
        assert response.status_code == 422

    def test_missing_table_returns_404(self, client):
        assert client.post(f"{BASE}/77/toggle").status_code == 404
