"""
Supplier purchases.

Verifies:
- net_total = items - reduce + expenses, credit = net_total - paid
- paid can never exceed net_total
- Receiving adds stock exactly once
- RECEIVED and CANCELLED are final; RECEIVED purchases cannot be deleted
"""

import pytest

from conftest import stock_of
from phonepos.extensions import db
from phonepos.models import Purchase
from phonepos.services import purchase_service
from phonepos.services.purchase_service import PurchaseItemInput, reconcile
from phonepos.validation import ValidationError


def _purchase_body(supplier, product, **extra):
    body = {
        "supplier_id": supplier.id,
        "items": [{"product_id": product.id, "quantity": 2, "unit_cost_cents": 50_000}],
        "expenses": [{"label": "Delivery", "amount_cents": 2_000}],
        "reduce_cents": 1_000,
    }
    body.update(extra)
    return body


# =============================================================================
# RECONCILIATION
# =============================================================================


class TestReconcile:

    def test_credit_is_net_minus_paid(self):
        totals = reconcile(
            [PurchaseItemInput(product_id=1, quantity=3, unit_cost_cents=10_000)],
            reduce_cents=500,
            paid_cents=20_000,
        )
        assert totals.items_total_cents == 30_000
        assert totals.total_cents == 29_500
        assert totals.credit_cents == 9_500

    def test_paid_above_net_total_rejected(self):
        with pytest.raises(ValidationError, match="cannot exceed net total"):
            reconcile([PurchaseItemInput(1, 1, 1_000)], paid_cents=1_001)

    def test_reduce_above_amount_rejected(self):
        with pytest.raises(ValidationError, match="reduce_cents"):
            reconcile([PurchaseItemInput(1, 1, 1_000)], reduce_cents=1_001)

    def test_fully_paid_has_no_credit(self):
        totals = reconcile([PurchaseItemInput(1, 2, 1_000)], paid_cents=2_000)
        assert totals.credit_cents == 0


# =============================================================================
# CREATE / PAY
# =============================================================================


class TestCreatePurchase:

    def test_create_with_split_payments(self, client, admin_headers, supplier, make_product):
        product = make_product(stock=0)
        body = _purchase_body(
            supplier,
            product,
            payments=[
                {"method": "CASH", "amount_cents": 40_000},
                {"method": "KPAY", "amount_cents": 20_000},
            ],
        )

        resp = client.post("/api/purchases", json=body, headers=admin_headers)

        assert resp.status_code == 201
        purchase = resp.json["purchase"]
        assert purchase["status"] == "PENDING"
        assert purchase["items_total_cents"] == 100_000
        assert purchase["expenses_total_cents"] == 2_000
        assert purchase["total_cents"] == 101_000
        assert purchase["paid_cents"] == 60_000
        assert purchase["credit_cents"] == 41_000
        assert [p["method"] for p in purchase["payments"]] == ["CASH", "KPAY"]
        assert stock_of(product.id) == 0

    def test_paid_cents_shorthand(self, supplier, make_product):
        product = make_product()
        purchase = purchase_service.create_purchase(
            _purchase_body(supplier, product, paid_cents=101_000, payment_method="BANK_TRANSFER")
        )
        assert purchase.credit_cents == 0
        assert purchase.payments[0].method.value == "BANK_TRANSFER"

    def test_overpayment_writes_nothing(self, client, admin_headers, supplier, make_product):
        product = make_product()
        body = _purchase_body(supplier, product, paid_cents=200_000)

        resp = client.post("/api/purchases", json=body, headers=admin_headers)

        assert resp.status_code == 400
        assert db.session.query(Purchase).count() == 0

    def test_unknown_supplier(self, client, admin_headers, make_product):
        product = make_product()
        body = {"supplier_id": 999_999, "items": [{"product_id": product.id, "quantity": 1, "unit_cost_cents": 1}]}
        resp = client.post("/api/purchases", json=body, headers=admin_headers)
        assert resp.status_code == 404

    def test_seller_cannot_create(self, client, seller_headers, supplier, make_product):
        product = make_product()
        resp = client.post("/api/purchases", json=_purchase_body(supplier, product), headers=seller_headers)
        assert resp.status_code == 403

    def test_later_payment_reduces_credit(self, client, admin_headers, supplier, make_product):
        product = make_product()
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product))

        resp = client.post(
            f"/api/purchases/{purchase.id}/payments",
            json={"method": "WAVE_PAY", "amount_cents": 1_000},
            headers=admin_headers,
        )

        assert resp.status_code == 201
        assert resp.json["purchase"]["paid_cents"] == 1_000
        assert resp.json["purchase"]["credit_cents"] == 100_000

    def test_payment_beyond_credit_rejected(self, supplier, make_product):
        product = make_product()
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product, paid_cents=100_000))
        with pytest.raises(ValidationError):
            purchase_service.add_payment(purchase.id, {"amount_cents": 1_001})


# =============================================================================
# LIFECYCLE
# =============================================================================


class TestPurchaseLifecycle:

    def test_receive_adds_stock_exactly_once(self, client, admin_headers, supplier, make_product):
        product = make_product(stock=1)
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product))

        first = client.post(f"/api/purchases/{purchase.id}/status", json={"status": "RECEIVED"}, headers=admin_headers)
        second = client.post(f"/api/purchases/{purchase.id}/status", json={"status": "RECEIVED"}, headers=admin_headers)

        assert first.status_code == 200
        assert first.json["purchase"]["received_at"] is not None
        assert second.status_code == 200
        assert second.json["purchase"]["status"] == "RECEIVED"
        assert stock_of(product.id) == 3

    def test_received_purchase_cannot_be_cancelled(self, supplier, make_product, client, admin_headers):
        product = make_product()
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product))
        purchase_service.change_status(purchase.id, "RECEIVED")

        resp = client.post(f"/api/purchases/{purchase.id}/status", json={"status": "CANCELLED"}, headers=admin_headers)

        assert resp.status_code == 409
        assert resp.json["details"]["current_status"] == "RECEIVED"
        assert stock_of(product.id) == 2

    def test_cancelled_purchase_cannot_be_received(self, supplier, make_product, client, admin_headers):
        product = make_product()
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product))
        purchase_service.change_status(purchase.id, "CANCELLED")

        resp = client.post(f"/api/purchases/{purchase.id}/status", json={"status": "RECEIVED"}, headers=admin_headers)

        assert resp.status_code == 409
        assert stock_of(product.id) == 0

    def test_received_purchase_cannot_be_deleted(self, client, admin_headers, supplier, make_product):
        product = make_product()
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product))
        purchase_service.change_status(purchase.id, "RECEIVED")

        resp = client.delete(f"/api/purchases/{purchase.id}", headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "Cannot delete a received purchase"
        assert db.session.query(Purchase).count() == 1

    def test_pending_purchase_can_be_deleted(self, client, admin_headers, supplier, make_product):
        product = make_product()
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product))

        resp = client.delete(f"/api/purchases/{purchase.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert db.session.query(Purchase).count() == 0

    def test_edit_recomputes_totals(self, client, admin_headers, supplier, make_product):
        product = make_product()
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product, paid_cents=10_000))

        resp = client.put(
            f"/api/purchases/{purchase.id}",
            json={"items": [{"product_id": product.id, "quantity": 1, "unit_cost_cents": 30_000}], "reduce_cents": 0},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        body = resp.json["purchase"]
        assert body["total_cents"] == 32_000
        assert body["credit_cents"] == 22_000

    def test_edit_then_receive_in_one_call(self, supplier, make_product):
        product = make_product()
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product))

        updated = purchase_service.update_purchase(purchase.id, {"note": "Checked", "status": "RECEIVED"})

        assert updated.status.value == "RECEIVED"
        assert updated.note == "Checked"
        assert stock_of(product.id) == 2

    def test_refused_status_keeps_edit_unsaved(self, client, admin_headers, supplier, make_product):
        product = make_product()
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product))

        resp = client.put(
            f"/api/purchases/{purchase.id}",
            json={"note": "Checked", "reduce_cents": 0, "status": "PENDING"},
            headers=admin_headers,
        )

        assert resp.status_code == 409
        db.session.expire_all()
        stored = db.session.get(Purchase, purchase.id)
        assert stored.note is None
        assert stored.reduce_cents == 1_000
        assert stored.status.value == "PENDING"

    def test_received_purchase_cannot_be_edited(self, supplier, make_product, client, admin_headers):
        product = make_product()
        purchase = purchase_service.create_purchase(_purchase_body(supplier, product))
        purchase_service.change_status(purchase.id, "RECEIVED")

        resp = client.put(f"/api/purchases/{purchase.id}", json={"note": "late"}, headers=admin_headers)

        assert resp.status_code == 400
