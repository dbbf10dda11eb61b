"""Tests for order placement and the status workflow."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from tableat.core.errors import NotFoundError, ValidationError
from tableat.schemas.order import OrderCreate, OrderItemCreate, OrderStatus
from tableat.schemas.table import TableCreate
from tableat.services import (
    customer_service,
    notification_service,
    order_service,
    table_service,
)

from conftest import NOW, RESTAURANT_ID

BASE = f"/api/v1/restaurants/{RESTAURANT_ID}/orders"


def _order(table_number=1, **overrides):
    data = {
        "customer_name": "Asha",
        "customer_phone": "+91 98765 43210",
        "table_number": table_number,
        "items": [
            OrderItemCreate(menu_item_id="masala_dosa", name="Masala Dosa", price=79, quantity=1),
            OrderItemCreate(menu_item_id="paneer_tikka", name="Paneer Tikka", price=119, quantity=2),
        ],
    }
    data.update(overrides)
    return OrderCreate(**data)


@pytest.fixture
def table(store):
    table_service.add_table(store, RESTAURANT_ID, TableCreate(table_number=1, capacity=4))
    return 1


class TestCreateOrder:

    def test_total_defaults_to_items_total(self, store):
        order_id = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW)
        order = order_service.get_order(store, RESTAURANT_ID, order_id)
        assert order.total_amount == 317
        assert order.status == "pending"
        assert order.status_history == []

    def test_explicit_total_is_kept(self, store):
        order_id = order_service.create_order(store, RESTAURANT_ID, _order(total_amount=300), now=NOW)
        assert order_service.get_order(store, RESTAURANT_ID, order_id).total_amount == 300

    def test_follow_up_writes(self, store, table):
        order_id = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW)

        customer = customer_service.get_customer(store, RESTAURANT_ID, "+91 98765 43210")
        assert customer.total_orders == 0
        assert customer.favorite_items == ["Masala Dosa", "Paneer Tikka"]

        [notification] = notification_service.list_notifications(store, RESTAURANT_ID)
        assert notification.type == "new_order"
        assert notification.message == "Table 1 has placed a new order"
        assert notification.order_id == order_id

        t = table_service.get_table(store, RESTAURANT_ID, 1)
        assert t.occupied is True
        assert t.current_order_id == order_id

    def test_anonymous_order_skips_customer(self, store):
        order_service.create_order(store, RESTAURANT_ID, _order(customer_name="", customer_phone=""), now=NOW)
        assert customer_service.list_customers(store, RESTAURANT_ID) == []

    def test_failed_follow_up_keeps_order(self, store, table):
        with patch.object(notification_service, "notify_new_order", side_effect=RuntimeError("down")):
            order_id = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW)
        assert order_service.get_order(store, RESTAURANT_ID, order_id) is not None
        assert table_service.get_table(store, RESTAURANT_ID, 1).occupied is True

    def test_daily_order_number_uses_local_day(self, store):
        # 23:30 IST on the previous day
        order_service.create_order(store, RESTAURANT_ID, _order(), now=datetime(2026, 3, 9, 18, 0, tzinfo=timezone.utc))
        # 01:30 IST, same local day as NOW
        order_service.create_order(store, RESTAURANT_ID, _order(), now=datetime(2026, 3, 9, 20, 0, tzinfo=timezone.utc))
        order_id = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW)
        assert order_service.get_order(store, RESTAURANT_ID, order_id).daily_order_number == 2


class TestOrderStatus:

    def test_duration_is_minutes_since_previous_change(self, store):
        order_id = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW)
        first = order_service.update_order_status(
            store, RESTAURANT_ID, order_id, OrderStatus.PREPARING, now=NOW + timedelta(minutes=5)
        )
        second = order_service.update_order_status(
            store, RESTAURANT_ID, order_id, OrderStatus.READY, now=NOW + timedelta(minutes=17)
        )
        assert first.duration == 5
        assert second.duration == 12
        order = order_service.get_order(store, RESTAURANT_ID, order_id)
        assert [h.status for h in order.status_history] == ["preparing", "ready"]
        assert order.status == "ready"

    def test_ready_raises_notification(self, store):
        order_id = order_service.create_order(store, RESTAURANT_ID, _order(table_number=4), now=NOW)
        order_service.update_order_status(store, RESTAURANT_ID, order_id, OrderStatus.READY, now=NOW)
        ready = [n for n in notification_service.list_notifications(store, RESTAURANT_ID) if n.type == "order_ready"]
        assert len(ready) == 1
        assert ready[0].message == "Order for Table 4 is ready"

    def test_served_counts_order_and_frees_table(self, store, table):
        order_id = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW)
        order_service.update_order_status(store, RESTAURANT_ID, order_id, OrderStatus.SERVED, now=NOW)

        assert customer_service.get_customer(store, RESTAURANT_ID, "919876543210").total_orders == 1
        t = table_service.get_table(store, RESTAURANT_ID, 1)
        assert t.occupied is False
        assert t.current_order_id is None

    def test_cancelled_frees_table_without_counting(self, store, table):
        order_id = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW)
        order_service.update_order_status(store, RESTAURANT_ID, order_id, OrderStatus.CANCELLED, now=NOW)
        assert customer_service.get_customer(store, RESTAURANT_ID, "919876543210").total_orders == 0
        assert table_service.get_table(store, RESTAURANT_ID, 1).occupied is False

    def test_table_stays_occupied_while_another_order_is_open(self, store, table):
        first = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW)
        second = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW + timedelta(minutes=3))

        order_service.update_order_status(store, RESTAURANT_ID, second, OrderStatus.SERVED, now=NOW)
        t = table_service.get_table(store, RESTAURANT_ID, 1)
        assert t.occupied is True
        assert t.current_order_id == first

        order_service.update_order_status(store, RESTAURANT_ID, first, OrderStatus.CANCELLED, now=NOW)
        t = table_service.get_table(store, RESTAURANT_ID, 1)
        assert t.occupied is False
        assert t.current_order_id is None

    def test_served_order_counted_when_visit_was_lost(self, store):
        with patch.object(customer_service, "register_customer_visit", side_effect=RuntimeError("down")):
            order_id = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW)
        order_service.update_order_status(store, RESTAURANT_ID, order_id, OrderStatus.SERVED, now=NOW)

        customer = customer_service.get_customer(store, RESTAURANT_ID, "919876543210")
        assert customer.total_orders == 1
        assert customer.name == "Asha"
        assert customer.favorite_items == ["Masala Dosa", "Paneer Tikka"]

    def test_served_order_is_final(self, store):
        order_id = order_service.create_order(store, RESTAURANT_ID, _order(), now=NOW)
        order_service.update_order_status(store, RESTAURANT_ID, order_id, OrderStatus.SERVED, now=NOW)
        with pytest.raises(ValidationError):
            order_service.update_order_status(store, RESTAURANT_ID, order_id, OrderStatus.PENDING, now=NOW)

    def test_unknown_order(self, store):
        with pytest.raises(NotFoundError):
            order_service.update_order_status(store, RESTAURANT_ID, "missing", OrderStatus.READY)


class TestOrderRoutes:

    def _payload(self, table_number=2):
        return {
            "customer_name": "Ravi",
            "customer_phone": "9123456780",
            "table_number": table_number,
            "items": [{"menu_item_id": "chai", "name": "Chai", "price": 20, "quantity": 3}],
        }

    def test_create_then_read(self, client):
        response = client.post(f"{BASE}/", json=self._payload())
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True

        order = client.get(f"{BASE}/{body['id']}").json()
        assert order["total_amount"] == 60
        assert order["daily_order_number"] == 1

    def test_item_text_escaped_once_through_the_api(self, client):
        payload = self._payload()
        payload["items"] = [{"menu_item_id": "mac", "name": "Mac & Cheese", "price": 150, "quantity": 1, "notes": "<no onion>"}]
        order_id = client.post(f"{BASE}/", json=payload).json()["id"]

        for _ in range(2):
            item = client.get(f"{BASE}/{order_id}").json()["items"][0]
            assert item["name"] == "Mac &amp; Cheese"
            assert item["notes"] == "&lt;no onion&gt;"

        client.put(f"{BASE}/{order_id}/status", json={"status": "served"})
        customer = client.get(f"/api/v1/restaurants/{RESTAURANT_ID}/customers/9123456780").json()
        assert customer["favorite_items"] == ["Mac &amp; Cheese"]

    def test_empty_items_rejected(self, client):
        payload = self._payload()
        payload["items"] = []
        assert client.post(f"{BASE}/", json=payload).status_code == 422

    def test_list_filters_and_counts(self, client):
        first = client.post(f"{BASE}/", json=self._payload(2)).json()["id"]
        client.post(f"{BASE}/", json=self._payload(3))
        client.put(f"{BASE}/{first}/status", json={"status": "ready"})

        data = client.get(f"{BASE}/", params={"status": "ready"}).json()
        assert [o["id"] for o in data["items"]] == [first]
        assert data["total"] == 2
        assert data["by_status"]["ready"] == 1
        assert data["by_status"]["pending"] == 1

        by_table = client.get(f"{BASE}/", params={"table_number": 3}).json()
        assert [o["table_number"] for o in by_table["items"]] == [3]

    def test_status_update_response(self, client):
        order_id = client.post(f"{BASE}/", json=self._payload()).json()["id"]
        body = client.put(f"{BASE}/{order_id}/status", json={"status": "preparing"}).json()
        assert body["success"] is True
        assert body["status"] == "preparing"
        assert body["duration"] >= 0

    def test_served_order_rejects_changes(self, client):
        order_id = client.post(f"{BASE}/", json=self._payload()).json()["id"]
        client.put(f"{BASE}/{order_id}/status", json={"status": "served"})
        response = client.put(f"{BASE}/{order_id}/status", json={"status": "ready"})
        assert response.status_code == 422

    def test_unknown_order_returns_404(self, client):
        assert client.get(f"{BASE}/nope").status_code == 404

    def test_export_download(self, client):
        client.post(f"{BASE}/", json=self._payload())
        response = client.get(f"{BASE}/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert "attachment; filename=orders_" in response.headers["content-disposition"]
