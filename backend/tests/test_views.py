"""Tests for dashboard view models and their live binding."""

from tableat.schemas.customer import Customer
from tableat.schemas.menu import MenuItem
from tableat.schemas.notification import Notification
from tableat.schemas.order import Order
from tableat.schemas.table import Table, TableCreate
from tableat.services import table_service, views

from conftest import RESTAURANT_ID


def _tables():
    return [
        Table(id="1", table_number=1, capacity=2, occupied=True),
        Table(id="2", table_number=2, capacity=4),
        Table(id="3", table_number=3, capacity=6),
    ]


class TestReducers:

    def test_tables(self):
        view = views.tables_view(_tables(), {"occupied": False})
        assert [t.table_number for t in view.tables] == [2, 3]
        assert (view.total, view.occupied, view.available) == (3, 1, 2)

    def test_customers_counters_follow_search(self):
        customers = [
            Customer(name="Asha Rao", phone="+91 9876543210", total_orders=4),
            Customer(name="Ravi", phone="+91 9123456780", total_orders=1),
            Customer(name="Meera", phone="+91 9000000000", total_orders=0),
        ]
        everyone = views.customers_view(customers)
        assert everyone.total == 3
        assert everyone.total_orders == 5
        assert everyone.average_orders == 1.7
        assert everyone.loyal == 1

        searched = views.customers_view(customers, {"search": "RAO"})
        assert [c.name for c in searched.customers] == ["Asha Rao"]
        assert searched.average_orders == 4.0

    def test_customers_empty(self):
        view = views.customers_view([], {"search": "x"})
        assert view.average_orders == 0.0
        assert view.total == 0

    def test_notifications(self):
        notifications = [
            Notification(id="a", type="new_order", title="A", message="m", is_read=True),
            Notification(id="b", type="order_ready", title="B", message="m"),
        ]
        view = views.notifications_view(notifications, {"unread_only": True})
        assert [n.id for n in view.notifications] == ["b"]
        assert view.unread == 1
        assert view.total == 2

    def test_orders(self):
        orders = [
            Order(id="o1", table_number=1, items=[], total_amount=10, status="ready"),
            Order(id="o2", table_number=2, items=[], total_amount=10),
            Order(id="o3", table_number=1, items=[], total_amount=10),
        ]
        view = views.orders_view(orders, {"table_number": 1})
        assert [o.id for o in view.orders] == ["o1", "o3"]
        assert view.by_status == {"pending": 2, "preparing": 0, "ready": 1, "served": 0, "cancelled": 0}

        ready = views.orders_view(orders, {"status": "ready"})
        assert [o.id for o in ready.orders] == ["o1"]

    def test_menu(self):
        items = [
            MenuItem(id="dosa", name="Masala Dosa", category="South Indian", price=79, is_best_seller=True),
            MenuItem(id="idli", name="Idli", category="South Indian", price=40, available=False),
            MenuItem(id="chai", name="Masala Chai", category="Beverages", price=20),
        ]
        view = views.menu_view(items, {"search": "masala"})
        assert [i.id for i in view.items] == ["dosa", "chai"]
        assert view.categories == ["Beverages", "South Indian"]
        assert (view.total, view.available, view.best_sellers) == (3, 2, 1)

        by_category = views.menu_view(items, {"category": "Beverages"})
        assert [i.id for i in by_category.items] == ["chai"]


class TestLiveView:

    def test_recomputes_on_every_delivery(self, store):
        states = []
        view = views.LiveView(views.tables_view, on_change=states.append)
        view.bind(table_service.subscribe_to_tables(store, RESTAURANT_ID, view.on_snapshot))
        assert view.loaded
        assert view.state.total == 0

        table_service.add_table(store, RESTAURANT_ID, TableCreate(table_number=1, capacity=2))
        table_service.toggle_table_occupancy(store, RESTAURANT_ID, 1)

        assert view.deliveries == 3
        assert view.state.occupied == 1
        assert [s.total for s in states] == [0, 1, 1]
        view.close()

    def test_filter_change_recomputes_immediately(self, store):
        for number in (1, 2):
            table_service.add_table(store, RESTAURANT_ID, TableCreate(table_number=number, capacity=2))
        table_service.toggle_table_occupancy(store, RESTAURANT_ID, 2)

        with views.LiveView(views.tables_view) as view:
            view.bind(table_service.subscribe_to_tables(store, RESTAURANT_ID, view.on_snapshot))
            state = view.set_filters(occupied=True)
            assert [t.table_number for t in state.tables] == [2]
            assert view.filters == {"occupied": True}
            assert view.deliveries == 1

        assert store.active_subscription_count() == 0

    def test_filters_before_first_delivery(self):
        view = views.LiveView(views.tables_view)
        assert view.set_filters(occupied=True) is None
        assert not view.loaded
        view.on_snapshot(_tables())
        assert [t.table_number for t in view.state.tables] == [1]

    def test_no_delivery_after_close(self, store):
        view = views.LiveView(views.tables_view)
        view.bind(table_service.subscribe_to_tables(store, RESTAURANT_ID, view.on_snapshot))
        view.close()
        view.close()
        table_service.add_table(store, RESTAURANT_ID, TableCreate(table_number=1, capacity=2))
        assert view.deliveries == 1
        assert view.state.total == 0
