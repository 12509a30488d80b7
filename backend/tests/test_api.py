"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401
- Role capabilities (cashier cannot reopen or manage pricing data) return 403
- Store-bound users cannot act on another store
- Day lifecycle over HTTP: 201 open, 409 conflicts, close response body
- Pricing, promotion and VAT configuration endpoints
"""

import pytest

from conftest import BUSINESS_DATE, add_sale


DATE = BUSINESS_DATE.isoformat()


def _open_day(client, headers, store_id, business_date=DATE, cash="500.00", bank="1000.00"):
    return client.post("/api/day-operations/open", json={
        "store_id": store_id,
        "business_date": business_date,
        "opening_cash": cash,
        "opening_bank": bank,
    }, headers=headers)


# =============================================================================
# AUTHENTICATION
# =============================================================================


class TestAuthentication:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/day-operations/status"),
            ("GET", "/api/day-operations"),
            ("POST", "/api/day-operations/open"),
            ("POST", "/api/day-operations/1/close"),
            ("POST", "/api/day-operations/1/reopen"),
            ("POST", "/api/pricing/vat"),
            ("GET", "/api/promotions"),
            ("GET", "/api/vat-configurations"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_invalid_token(self, client, db_session):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_login_returns_token_and_permissions(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "cashier", "password": "Password123!"})
        assert resp.status_code == 200
        assert resp.json["token"]
        assert "CLOSE_DAY" in resp.json["permissions"]
        assert "REOPEN_DAY" not in resp.json["permissions"]

    def test_wrong_password(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "cashier", "password": "wrong"})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, cashier_headers):
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 200
        assert client.post("/api/auth/logout", headers=cashier_headers).status_code == 200
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# DAY OPERATIONS
# =============================================================================


class TestDayOperationsApi:
    def test_open_returns_201(self, client, store, cashier_headers):
        resp = _open_day(client, cashier_headers, store.id)
        assert resp.status_code == 201
        day = resp.json["day_operation"]
        assert day["status"] == "OPEN"
        assert day["opening_cash_cents"] == 50000
        assert day["opening_bank"] == "1000.00"

    def test_open_defaults_to_users_store(self, client, store, cashier_headers):
        resp = client.post("/api/day-operations/open", json={"business_date": DATE, "opening_cash_cents": 100,
                                                           "opening_bank_cents": 0}, headers=cashier_headers)
        assert resp.status_code == 201
        assert resp.json["day_operation"]["store_id"] == store.id

    def test_second_open_conflicts(self, client, store, cashier_headers):
        _open_day(client, cashier_headers, store.id)
        resp = _open_day(client, cashier_headers, store.id, "2024-01-16")
        assert resp.status_code == 409

    def test_negative_opening_amount(self, client, store, cashier_headers):
        resp = _open_day(client, cashier_headers, store.id, cash="-5.00")
        assert resp.status_code == 400

    def test_too_many_decimals(self, client, store, cashier_headers):
        resp = _open_day(client, cashier_headers, store.id, cash="5.005")
        assert resp.status_code == 400

    def test_other_store_forbidden(self, client, store, other_store, cashier_headers):
        resp = _open_day(client, cashier_headers, other_store.id)
        assert resp.status_code == 403

    def test_admin_may_use_any_store(self, client, other_store, admin_headers):
        resp = _open_day(client, admin_headers, other_store.id)
        assert resp.status_code == 201

    def test_close_returns_snapshot_and_variance(self, client, db_session, store, cashier_headers):
        day_id = _open_day(client, cashier_headers, store.id).json["day_operation"]["id"]
        add_sale(db_session, store.id, 13500, "cash")

        resp = client.post(f"/api/day-operations/{day_id}/close", json={
            "actual_cash": "640.00",
            "actual_bank": "1000.00",
        }, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["day_operation"]["status"] == "CLOSED"
        assert resp.json["day_operation"]["expected_cash"] == "635.00"
        assert resp.json["variance"]["cash_variance_cents"] == 500
        assert resp.json["variance"]["cash_status"] == "OVER"
        assert resp.json["variance"]["bank_status"] == "BALANCED"

    def test_close_with_misc_cash(self, client, store, cashier_headers):
        day_id = _open_day(client, cashier_headers, store.id).json["day_operation"]["id"]
        resp = client.post(f"/api/day-operations/{day_id}/close", json={
            "actual_cash": "495.00",
            "cash_misc": "5.00",
            "misc_notes": "Coin bag",
            "actual_bank": "1000.00",
        }, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["day_operation"]["actual_cash_count"] == "500.00"
        assert resp.json["day_operation"]["cash_misc"] == "5.00"
        assert resp.json["day_operation"]["misc_notes"] == "Coin bag"
        assert resp.json["variance"]["cash_status"] == "BALANCED"

    def test_negative_misc_cash(self, client, store, cashier_headers):
        day_id = _open_day(client, cashier_headers, store.id).json["day_operation"]["id"]
        resp = client.post(f"/api/day-operations/{day_id}/close", json={
            "actual_cash": "500.00",
            "cash_misc": "-5.00",
            "actual_bank": "1000.00",
        }, headers=cashier_headers)
        assert resp.status_code == 400

    def test_close_requires_counts(self, client, store, cashier_headers):
        day_id = _open_day(client, cashier_headers, store.id).json["day_operation"]["id"]
        resp = client.post(f"/api/day-operations/{day_id}/close", json={}, headers=cashier_headers)
        assert resp.status_code == 400

    def test_close_unknown_day(self, client, db_session, cashier_headers):
        resp = client.post("/api/day-operations/999999/close", json={"actual_cash_cents": 0,
                                                                     "actual_bank_cents": 0},
                           headers=cashier_headers)
        assert resp.status_code == 404

    def test_close_preview(self, client, store, cashier_headers):
        day_id = _open_day(client, cashier_headers, store.id).json["day_operation"]["id"]
        resp = client.post(f"/api/day-operations/{day_id}/close-preview", json={
            "cash_denominations": {"500": 1},
        }, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["expected_cash_cents"] == 50000
        assert resp.json["variance"]["cash_status"] == "BALANCED"

    def test_cashier_cannot_reopen(self, client, store, cashier_headers):
        day_id = _open_day(client, cashier_headers, store.id).json["day_operation"]["id"]
        client.post(f"/api/day-operations/{day_id}/close", json={"actual_cash": "500.00", "actual_bank": "1000.00"},
                    headers=cashier_headers)

        resp = client.post(f"/api/day-operations/{day_id}/reopen", json={"note": "x"}, headers=cashier_headers)
        assert resp.status_code == 403

    def test_admin_reopens(self, client, store, cashier_headers, admin_headers):
        day_id = _open_day(client, cashier_headers, store.id).json["day_operation"]["id"]
        client.post(f"/api/day-operations/{day_id}/close", json={"actual_cash": "500.00", "actual_bank": "1000.00"},
                    headers=cashier_headers)

        resp = client.post(f"/api/day-operations/{day_id}/reopen", json={"note": ""}, headers=admin_headers)
        assert resp.status_code == 400

        resp = client.post(f"/api/day-operations/{day_id}/reopen", json={"reason": "Recount"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["day_operation"]["status"] == "REOPENED"

        resp = client.post(f"/api/day-operations/{day_id}/reopen", json={"note": "Again"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_status_and_history(self, client, store, cashier_headers):
        resp = client.get(f"/api/day-operations/status?date={DATE}", headers=cashier_headers)
        assert resp.json["status"] == "NO_DAY"
        assert resp.json["can_open"] is True

        day_id = _open_day(client, cashier_headers, store.id).json["day_operation"]["id"]
        resp = client.get(f"/api/day-operations/status?date={DATE}", headers=cashier_headers)
        assert resp.json["status"] == "OPEN"
        assert resp.json["can_close"] is True

        resp = client.get("/api/day-operations?limit=5", headers=cashier_headers)
        assert [d["id"] for d in resp.json["day_operations"]] == [day_id]

        resp = client.get(f"/api/day-operations/{day_id}/events", headers=cashier_headers)
        assert [e["event_type"] for e in resp.json["events"]] == ["DAY_OPENED"]

    def test_status_requires_date(self, client, store, cashier_headers):
        resp = client.get("/api/day-operations/status", headers=cashier_headers)
        assert resp.status_code == 400

    def test_day_of_other_store_hidden(self, client, other_store, admin_headers, cashier_headers):
        day_id = _open_day(client, admin_headers, other_store.id).json["day_operation"]["id"]
        resp = client.get(f"/api/day-operations/{day_id}", headers=cashier_headers)
        assert resp.status_code == 403

    def test_movements(self, client, store, cashier_headers):
        day_id = _open_day(client, cashier_headers, store.id).json["day_operation"]["id"]

        resp = client.post(f"/api/day-operations/{day_id}/movements", json={
            "movement_type": "bank_transfer",
            "amount": "-20.00",
        }, headers=cashier_headers)
        assert resp.status_code == 201
        assert resp.json["movement"]["amount_cents"] == -2000

        resp = client.post(f"/api/day-operations/{day_id}/movements", json={
            "movement_type": "EXPENSE",
            "amount": "-20.00",
        }, headers=cashier_headers)
        assert resp.status_code == 400

        resp = client.get(f"/api/day-operations/{day_id}/movements", headers=cashier_headers)
        assert len(resp.json["movements"]) == 1


# =============================================================================
# PRICING
# =============================================================================


class TestPricingApi:
    def test_vat(self, client, store, cashier_headers):
        resp = client.post("/api/pricing/vat", json={"amount": "99.99", "product_rate": "7.5"},
                           headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["vat"] == "7.50"
        assert resp.json["total"] == "107.49"
        assert resp.json["rate_source"] == "product-specific"

    def test_vat_with_store_rates(self, client, db_session, store, manager_headers):
        client.post("/api/vat-configurations", json={"category": "food", "rate": "5"}, headers=manager_headers)
        resp = client.post("/api/pricing/vat", json={"amount": "10.00", "category": "Food", "store_id": store.id},
                           headers=manager_headers)
        assert resp.json["vat_cents"] == 50
        assert resp.json["rate_source"] == "store-category"

    def test_cart_vat(self, client, store, cashier_headers):
        resp = client.post("/api/pricing/cart-vat", json={
            "items": [{"product_id": 7, "price": "25.00", "quantity": 4, "vat_rate": "10"}],
        }, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["total"] == "110.00"
        assert resp.json["items"][0]["vat_amount"] == "10.00"

    def test_bad_cart(self, client, store, cashier_headers):
        resp = client.post("/api/pricing/cart-vat", json={"items": "nope"}, headers=cashier_headers)
        assert resp.status_code == 400

    def test_discounts(self, client, store, cashier_headers):
        resp = client.post("/api/pricing/discount", json={
            "discount_type": "PERCENTAGE", "cart_total": "1000.00", "percent": "20", "max_discount": "100.00",
        }, headers=cashier_headers)
        assert resp.json["discount"] == "100.00"

        resp = client.post("/api/pricing/discount", json={
            "discount_type": "BUY_X_GET_Y",
            "items": [{"price": "20.00", "quantity": 2}, {"price": "10.00", "quantity": 3}],
            "buy_quantity": 2,
            "get_quantity": 1,
        }, headers=cashier_headers)
        assert resp.json["discount_cents"] == 2000

    def test_unknown_discount_type(self, client, store, cashier_headers):
        resp = client.post("/api/pricing/discount", json={"discount_type": "MAGIC"}, headers=cashier_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("payload", [
        {"amount": "100.00", "product_rate": "-10"},
        {"amount": "100.00", "product_rate": "100.01"},
        {"amount": "100.00", "product_rate_bps": 10001},
        {"amount": "100.00", "product_rate_bps": -1},
    ])
    def test_vat_rate_out_of_range(self, client, store, cashier_headers, payload):
        resp = client.post("/api/pricing/vat", json=payload, headers=cashier_headers)
        assert resp.status_code == 400
        assert "between 0 and 100 percent" in resp.json["error"]

    def test_vat_rate_bounds_accepted(self, client, store, cashier_headers):
        resp = client.post("/api/pricing/vat", json={"amount": "10.00", "product_rate": "100"},
                           headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["vat"] == "10.00"

        resp = client.post("/api/pricing/vat", json={"amount": "10.00", "product_rate": "0"},
                           headers=cashier_headers)
        assert resp.json["vat_cents"] == 0
        assert resp.json["rate_source"] == "product-specific"

    def test_cart_item_rate_out_of_range(self, client, store, cashier_headers):
        resp = client.post("/api/pricing/cart-vat", json={
            "items": [{"price": "25.00", "quantity": 1, "vat_rate": "150"}],
        }, headers=cashier_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("percent", ["-5", "150"])
    def test_discount_percent_out_of_range(self, client, store, cashier_headers, percent):
        resp = client.post("/api/pricing/discount", json={
            "discount_type": "PERCENTAGE", "cart_total": "1000.00", "percent": percent,
        }, headers=cashier_headers)
        assert resp.status_code == 400


class TestPromotionsApi:
    def test_cashier_cannot_create(self, client, store, cashier_headers):
        resp = client.post("/api/promotions", json={"name": "x", "promo_type": "FIXED_AMOUNT",
                                                    "discount_value": 100}, headers=cashier_headers)
        assert resp.status_code == 403

    def test_create_evaluate_and_use(self, client, store, manager_headers, cashier_headers):
        resp = client.post("/api/promotions", json={
            "store_id": store.id,
            "name": "Ten percent",
            "promo_type": "PERCENTAGE",
            "discount_percent": "10",
            "usage_limit": 1,
        }, headers=manager_headers)
        assert resp.status_code == 201
        promo_id = resp.json["promotion"]["id"]

        resp = client.post("/api/promotions/evaluate", json={
            "items": [{"product_id": 1, "price": "50.00", "quantity": 2}],
        }, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["best"]["promotion_id"] == promo_id
        assert resp.json["discount_cents"] == 1000

        assert client.post(f"/api/promotions/{promo_id}/use", headers=cashier_headers).status_code == 200
        assert client.post(f"/api/promotions/{promo_id}/use", headers=cashier_headers).status_code == 409

    def test_invalid_promotion(self, client, store, manager_headers):
        resp = client.post("/api/promotions", json={"name": "x", "promo_type": "NOPE"}, headers=manager_headers)
        assert resp.status_code == 400


class TestVatConfigurationsApi:
    def test_cashier_cannot_manage(self, client, store, cashier_headers):
        resp = client.post("/api/vat-configurations", json={"rate": "5"}, headers=cashier_headers)
        assert resp.status_code == 403

    def test_create_list_update(self, client, store, manager_headers):
        resp = client.post("/api/vat-configurations", json={"category": "books", "rate": "7.5"},
                           headers=manager_headers)
        assert resp.status_code == 201
        config_id = resp.json["vat_configuration"]["id"]

        resp = client.post("/api/vat-configurations", json={"category": "Books", "rate": "5"},
                           headers=manager_headers)
        assert resp.status_code == 409

        resp = client.patch(f"/api/vat-configurations/{config_id}", json={"rate_bps": 800}, headers=manager_headers)
        assert resp.json["vat_configuration"]["rate"] == "8.00"

        resp = client.get("/api/vat-configurations", headers=manager_headers)
        assert [c["id"] for c in resp.json["vat_configurations"]] == [config_id]

    def test_other_store_forbidden(self, client, other_store, manager_headers):
        resp = client.post("/api/vat-configurations", json={"store_id": other_store.id, "rate": "5"},
                           headers=manager_headers)
        assert resp.status_code == 403
