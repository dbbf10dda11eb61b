"""Tests for restaurant signup, status, subscription and navigation."""

from datetime import datetime, timedelta, timezone

import pytest

from tableat.core.errors import NotFoundError, ValidationError
from tableat.db.store import RESTAURANTS
from tableat.schemas.restaurant import RestaurantCreate, RestaurantStatusUpdate
from tableat.services import navigation, restaurant_service
from tableat.services.permissions import PERMISSION_DEFAULTS

from conftest import NOW, RESTAURANT_ID, seed_restaurant

BASE = "/api/v1/restaurants"


def _titles(restaurant):
    return [entry.title for entry in navigation.visible_entries(restaurant)]


class TestRestaurantIds:

    @pytest.mark.parametrize("name,expected", [
        ("By The Way!", "BYTHEWAY"),
        ("cafe_42", "CAFE_42"),
        ("Spice & Co.", "SPICECO"),
    ])
    def test_normalize(self, name, expected):
        assert restaurant_service.normalize_restaurant_id(name) == expected

    def test_add_months_clamps_to_month_end(self):
        moment = datetime(2026, 1, 31, 9, 0, tzinfo=timezone.utc)
        assert restaurant_service.add_months(moment, 1) == datetime(2026, 2, 28, 9, 0, tzinfo=timezone.utc)
        assert restaurant_service.add_months(moment, 12) == datetime(2027, 1, 31, 9, 0, tzinfo=timezone.utc)


class TestCreateRestaurant:

    def test_defaults(self, store):
        restaurant = restaurant_service.create_restaurant(
            store, RestaurantCreate(name="By The Way", admin_email="Owner@ByTheWay.in"), now=NOW
        )
        assert restaurant.id == "BYTHEWAY"
        saved = store.get(RESTAURANTS, "BYTHEWAY")
        assert saved["admin_email"] == "owner@bytheway.in"
        assert saved["restaurant_open"] is True
        assert saved["subscription_status"] == "active"
        for flag, value in PERMISSION_DEFAULTS.items():
            assert saved[flag] is value
        assert restaurant.subscription_end == datetime(2026, 4, 10, 12, 0, tzinfo=timezone.utc)

    def test_duplicate_rejected(self, store):
        data = RestaurantCreate(name="By The Way", admin_email="owner@bytheway.in")
        restaurant_service.create_restaurant(store, data)
        with pytest.raises(ValidationError):
            restaurant_service.create_restaurant(store, data)

    def test_name_without_letters_rejected(self, store):
        with pytest.raises(ValidationError):
            restaurant_service.create_restaurant(store, RestaurantCreate(name="!!!", admin_email="a@b.in"))


class TestRestaurantStatus:

    def test_only_given_fields_written(self, store):
        seed_restaurant(store, analytics_approved=False, tax_rate=5.0)
        restaurant_service.update_restaurant_status(
            store, RESTAURANT_ID, RestaurantStatusUpdate(analytics_approved=True)
        )
        saved = store.get(RESTAURANTS, RESTAURANT_ID)
        assert saved["analytics_approved"] is True
        assert saved["tax_rate"] == 5.0
        assert saved["restaurant_open"] is True

    def test_open_flag(self, store):
        seed_restaurant(store)
        restaurant_service.set_restaurant_open(store, RESTAURANT_ID, False)
        assert restaurant_service.get_restaurant(store, RESTAURANT_ID).restaurant_open is False

    def test_unknown_restaurant(self, store):
        with pytest.raises(NotFoundError):
            restaurant_service.set_restaurant_open(store, "GHOST", True)

    def test_subscription_feed(self, store):
        seen = []
        sub = restaurant_service.subscribe_to_restaurant(store, RESTAURANT_ID, seen.append)
        seed_restaurant(store)
        restaurant_service.set_restaurant_open(store, RESTAURANT_ID, False)
        sub.unsubscribe()

        assert seen[0] is None
        assert seen[-1].restaurant_open is False
        assert store.active_subscription_count() == 0


class TestSubscriptionWindow:

    def test_days_remaining_rounds_up(self, store):
        seed_restaurant(store)
        restaurant = restaurant_service.get_restaurant(store, RESTAURANT_ID)
        info = restaurant_service.subscription_status(restaurant, now=datetime(2026, 3, 30, 12, 0, tzinfo=timezone.utc))
        assert info.is_valid
        assert info.days_remaining == 2
        assert info.status == "active"

    def test_expired(self, store):
        seed_restaurant(store)
        restaurant = restaurant_service.get_restaurant(store, RESTAURANT_ID)
        info = restaurant_service.subscription_status(restaurant, now=datetime(2026, 4, 2, tzinfo=timezone.utc))
        assert not info.is_valid
        assert info.days_remaining == 0
        assert info.status == "expired"

    def test_renew_running_subscription_extends_end(self, store):
        seed_restaurant(store)
        new_end = restaurant_service.renew_subscription(store, RESTAURANT_ID, months=2, now=NOW)
        assert new_end == datetime(2026, 6, 1, tzinfo=timezone.utc)

    def test_renew_expired_subscription_restarts_now(self, store):
        seed_restaurant(store, subscription_status="expired")
        now = datetime(2026, 5, 15, tzinfo=timezone.utc)
        new_end = restaurant_service.renew_subscription(store, RESTAURANT_ID, now=now)
        assert new_end == datetime(2026, 6, 15, tzinfo=timezone.utc)
        assert store.get(RESTAURANTS, RESTAURANT_ID)["subscription_status"] == "active"

    def test_legacy_document_without_window(self, store):
        store.set(RESTAURANTS, "OLDONE", {"name": "OLDONE", "quick_order_approved": True})
        restaurant = restaurant_service.get_restaurant(store, "OLDONE")
        assert restaurant.admin_email is None
        info = restaurant_service.subscription_status(restaurant, now=NOW)
        assert not info.is_valid
        assert info.days_remaining == 0
        assert info.status == "expired"

        new_end = restaurant_service.renew_subscription(store, "OLDONE", now=NOW)
        assert new_end == datetime(2026, 4, 10, 12, 0, tzinfo=timezone.utc)
        renewed = restaurant_service.get_restaurant(store, "OLDONE")
        assert renewed.subscription_start == NOW
        assert restaurant_service.subscription_status(renewed, now=NOW).is_valid


class TestNavigation:

    def test_not_loaded_shows_ungated_entries(self):
        assert _titles(None) == [
            "Overview", "Menu Management", "Order History", "Notifications", "Table Status", "Profile",
        ]

    def test_flags_must_be_exactly_true(self, store):
        seed_restaurant(store, quick_order_approved=True, analytics_approved=False, customer_approved=None)
        titles = _titles(restaurant_service.get_restaurant(store, RESTAURANT_ID))
        assert "Quick Order" in titles
        assert "Analytics" not in titles
        assert "Customers" not in titles
        assert "Inventory" not in titles

    def test_entry_order_is_stable(self, store):
        seed_restaurant(store, **{flag: True for flag in PERMISSION_DEFAULTS})
        titles = _titles(restaurant_service.get_restaurant(store, RESTAURANT_ID))
        assert titles == [entry.title for entry in navigation.NAV_ENTRIES]


class TestRestaurantRoutes:

    def test_signup_then_read(self, client):
        response = client.post(f"{BASE}/", json={"name": "Chai Point", "admin_email": "ops@chaipoint.in"})
        assert response.status_code == 201
        assert response.json() == {"success": True, "id": "CHAIPOINT"}

        data = client.get(f"{BASE}/CHAIPOINT").json()
        assert data["name"] == "Chai Point"
        assert data["customer_approved"] is True

    def test_invalid_email(self, client):
        response = client.post(f"{BASE}/", json={"name": "Chai Point", "admin_email": "nope"})
        assert response.status_code == 422

    def test_status_patch(self, client, restaurant):
        response = client.patch(f"{BASE}/{restaurant}/status", json={"analytics_approved": True, "tax_rate": 5})
        assert response.status_code == 200
        data = client.get(f"{BASE}/{restaurant}").json()
        assert data["analytics_approved"] is True
        assert data["tax_rate"] == 5

    def test_open_toggle(self, client, restaurant):
        client.put(f"{BASE}/{restaurant}/open", json={"restaurant_open": False})
        assert client.get(f"{BASE}/{restaurant}").json()["restaurant_open"] is False

    def test_subscription_endpoints(self, client, restaurant):
        info = client.get(f"{BASE}/{restaurant}/subscription").json()
        assert set(info) >= {"is_valid", "days_remaining", "status", "subscription_end"}

        renewed = client.post(f"{BASE}/{restaurant}/subscription/renew", json={"months": 1}).json()
        assert renewed["success"] is True
        assert renewed["subscription_end"] > info["subscription_end"]

    def test_navigation(self, client, store):
        seed_restaurant(store, analytics_approved=True)
        data = client.get(f"{BASE}/{RESTAURANT_ID}/navigation").json()
        assert data["loaded"] is True
        titles = [item["title"] for item in data["items"]]
        assert "Analytics" in titles
        assert "Quick Order" not in titles
        assert data["total"] == len(titles)

    def test_navigation_for_unknown_restaurant(self, client):
        data = client.get(f"{BASE}/GHOST/navigation").json()
        assert data["loaded"] is False
        assert len(data["items"]) == 6

    def test_legacy_restaurant_still_served(self, client, store):
        store.set(RESTAURANTS, "OLDONE", {"name": "OLDONE", "quick_order_approved": True})

        nav = client.get(f"{BASE}/OLDONE/navigation")
        assert nav.status_code == 200
        assert nav.json()["loaded"] is True
        assert "Quick Order" in [item["title"] for item in nav.json()["items"]]

        sub = client.get(f"{BASE}/OLDONE/subscription")
        assert sub.status_code == 200
        assert sub.json()["is_valid"] is False
        assert sub.json()["subscription_end"] is None

    def test_per_restaurant_backfill(self, client, store):
        seed_restaurant(store, "OTHER", customer_approved=False)
        data = client.post(f"{BASE}/OTHER/permissions/defaults").json()
        assert "customer_approved" not in data["addedFields"]
        assert data["addedFields"]["analytics_approved"] is False

    def test_unknown_restaurant_returns_404(self, client):
        assert client.get(f"{BASE}/GHOST").status_code == 404
