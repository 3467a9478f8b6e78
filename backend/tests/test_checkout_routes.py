# Overview: Pytest coverage for the checkout, cancellation and notification HTTP API.

import re

import pytest

from pastil.services import inventory_service
from pastil.services.concurrency import PersistenceError


def checkout_payload(pantry, **overrides):
    payload = {
        "items": [
            {"product_id": pantry["pastil"].id, "quantity": 2},
            {"product_id": pantry["extra_rice"].id, "quantity": 1},
        ],
        "payment_method": "Cash",
        "customer_type": "Walk-in",
        "dine_in_takeout": "dine_in",
    }
    payload.update(overrides)
    return payload


class TestCheckoutApi:

    def test_list_products(self, client, pantry, make_product):
        make_product("Empty", 100)
        response = client.get('/api/checkout/products')
        assert response.status_code == 200

        products = {p["name"]: p for p in response.json["products"]}
        assert products["Pastil"]["available"] is True
        assert products["Empty"]["available"] is False

    def test_checkout_created(self, client, pantry, window):
        response = client.post('/api/checkout', json=checkout_payload(pantry, customer_payment_cents=11000))
        assert response.status_code == 201

        body = response.json["checkout"]
        assert body["state"] == "COMMITTED"
        assert re.match(r"^\d{2}-\d{2}-\d{5}$", body["transaction_number"])
        assert len(body["sales"]) == 2
        assert body["total_cents"] == 10500
        assert body["change_cents"] == 500
        assert body["expires_at"] is not None

    def test_checkout_partial(self, client, pantry, window, monkeypatch):
        real_deduct = inventory_service.deduct_stock
        leaf_id = pantry["leaf"].id

        def deduct(item_id, quantity):
            if item_id == leaf_id:
                raise PersistenceError("Failed to deduct inventory")
            return real_deduct(item_id, quantity)

        monkeypatch.setattr(inventory_service, "deduct_stock", deduct)

        response = client.post('/api/checkout', json=checkout_payload(pantry))
        assert response.status_code == 207
        assert response.json["checkout"]["state"] == "PARTIALLY_FAILED"
        assert [f["item_id"] for f in response.json["checkout"]["failed_items"]] == [leaf_id]

    def test_empty_cart(self, client, pantry, window):
        response = client.post('/api/checkout', json=checkout_payload(pantry, items=[]))
        assert response.status_code == 400
        assert response.json["error"] == "Cart is empty"

    def test_unknown_product(self, client, pantry, window):
        response = client.post('/api/checkout', json=checkout_payload(pantry, items=[{"product_id": 9999}]))
        assert response.status_code == 400
        assert "not found" in response.json["error"]

    @pytest.mark.parametrize("quantity", [0, -2, 1.5, "3"])
    def test_bad_quantity(self, client, pantry, window, quantity):
        items = [{"product_id": pantry["pastil"].id, "quantity": quantity}]
        response = client.post('/api/checkout', json=checkout_payload(pantry, items=items))
        assert response.status_code == 400

    def test_validation_details(self, client, pantry, window):
        response = client.post('/api/checkout', json=checkout_payload(pantry, dine_in_takeout="drive_thru"))
        assert response.status_code == 400
        assert response.json["details"]["field"] == "dine_in_takeout"

    def test_sale_write_failure(self, client, pantry, window, monkeypatch):
        from pastil.services import sales_service

        def broken(rows):
            raise PersistenceError("Failed to record sale", details={"transaction_id": rows[0].transaction_id})

        monkeypatch.setattr(sales_service, "record_sales", broken)

        response = client.post('/api/checkout', json=checkout_payload(pantry))
        assert response.status_code == 500
        assert response.json["error"] == "Failed to process sale"


class TestCancelApi:

    def commit(self, client, pantry):
        response = client.post('/api/checkout', json=checkout_payload(pantry))
        assert response.status_code == 201
        return response.json["checkout"]["transaction_id"]

    def test_pending_then_cancel(self, client, pantry, window, clock):
        transaction_id = self.commit(client, pantry)

        pending = client.get('/api/checkout/pending').json["pending"]
        assert pending["transaction_id"] == transaction_id
        assert pending["seconds_remaining"] == 30

        response = client.post(f'/api/checkout/{transaction_id}/cancel')
        assert response.status_code == 200
        assert all(s["cancelled"] for s in response.json["cancellation"]["sales"])

        assert client.get('/api/checkout/pending').json["pending"] is None

    def test_cancel_twice_is_not_found(self, client, pantry, window):
        transaction_id = self.commit(client, pantry)
        client.post(f'/api/checkout/{transaction_id}/cancel')

        response = client.post(f'/api/checkout/{transaction_id}/cancel')
        assert response.status_code == 404

    def test_cancel_after_window_is_gone(self, client, pantry, window, clock):
        transaction_id = self.commit(client, pantry)
        clock.advance(31)

        response = client.post(f'/api/checkout/{transaction_id}/cancel')
        assert response.status_code == 410
        assert response.json["error"] == "Sale cannot be cancelled - time expired"

    def test_dismiss(self, client, pantry, window):
        transaction_id = self.commit(client, pantry)

        response = client.post(f'/api/checkout/{transaction_id}/dismiss')
        assert response.json == {"dismissed": True}
        assert client.post(f'/api/checkout/{transaction_id}/cancel').status_code == 404


class TestNotificationsApi:

    def test_drain_events(self, client, pantry, window):
        transaction_id = TestCancelApi().commit(client, pantry)
        client.post(f'/api/checkout/{transaction_id}/cancel')

        events = client.get('/api/notifications?peek=1').json["events"]
        assert [e["kind"] for e in events] == ["sale_committed", "sale_cancelled"]

        events = client.get('/api/notifications').json["events"]
        assert len(events) == 2
        assert client.get('/api/notifications').json["events"] == []

    def test_storage_check(self, app, client, make_product, sink, monkeypatch):
        monkeypatch.setitem(app.config, "STORAGE_LIMIT_MB", 0.1)
        make_product("Pastil", 4500, image_path="products/pastil.webp")

        response = client.post('/api/notifications/storage-check')
        assert response.status_code == 200
        assert response.json["warning"]["level"] == "critical"


class TestNextNumberApi:

    def test_preview(self, client, db_session):
        response = client.get('/api/checkout/next-number?period=24-05')
        assert response.status_code == 200
        assert response.json == {"transaction_number": "24-05-00001"}

    def test_bad_period(self, client, db_session):
        assert client.get('/api/checkout/next-number?period=May').status_code == 400
