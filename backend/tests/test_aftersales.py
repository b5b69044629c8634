"""
Repairs, trade-ins and warranties.
"""

import re
from datetime import timedelta

import pytest

from phonepos.extensions import db
from phonepos.models import Imei, ImeiStatus, RepairStatus
from phonepos.services import aftersales_service, imei_service
from phonepos.time_utils import utcnow
from phonepos.validation import ConflictError, ValidationError


# =============================================================================
# REPAIRS
# =============================================================================


class TestRepairs:

    def _ticket(self, customer, **extra):
        body = {"customer_id": customer.id, "device_info": "iPhone 12, blue", "issue": "Cracked screen"}
        body.update(extra)
        return aftersales_service.create_repair(body)

    def test_create_assigns_ticket(self, client, seller_headers, customer):
        resp = client.post(
            "/api/repairs",
            json={"customer_id": customer.id, "device_info": "Redmi 9", "issue": "Won't charge"},
            headers=seller_headers,
        )

        assert resp.status_code == 201
        assert re.fullmatch(r"RPR-\d{8}-0001", resp.json["repair"]["ticket_no"])
        assert resp.json["repair"]["status"] == "RECEIVED"

    def test_tickets_increase(self, customer):
        first = self._ticket(customer)
        second = self._ticket(customer)
        assert first.ticket_no[:-4] == second.ticket_no[:-4]
        assert second.ticket_no.endswith("0002")

    def test_walk_through_workflow(self, client, admin_headers, customer):
        repair = self._ticket(customer)

        for status in ("DIAGNOSING", "REPAIRING", "COMPLETED"):
            resp = client.put(f"/api/repairs/{repair.id}", json={"status": status}, headers=admin_headers)
            assert resp.status_code == 200, resp.json

        assert resp.json["repair"]["completed_at"] is not None
        resp = client.put(f"/api/repairs/{repair.id}", json={"status": "DELIVERED"}, headers=admin_headers)
        assert resp.json["repair"]["delivered_at"] is not None

    def test_skipping_ahead_is_rejected(self, client, admin_headers, customer):
        repair = self._ticket(customer)

        resp = client.put(f"/api/repairs/{repair.id}", json={"status": "DELIVERED"}, headers=admin_headers)

        assert resp.status_code == 409
        assert resp.json["details"]["current_status"] == "RECEIVED"

    def test_cancelled_is_final(self, customer):
        repair = self._ticket(customer)
        aftersales_service.update_repair(repair.id, {"status": "CANCELLED"})
        with pytest.raises(ConflictError, match="is final"):
            aftersales_service.update_repair(repair.id, {"status": "DIAGNOSING"})

    def test_diagnosis_and_cost_edit(self, customer):
        repair = self._ticket(customer)
        updated = aftersales_service.update_repair(repair.id, {"diagnosis": "LCD", "repair_cost_cents": 45_000})
        assert updated.diagnosis == "LCD"
        assert updated.repair_cost_cents == 45_000
        assert updated.status == RepairStatus.RECEIVED

    def test_missing_issue(self, customer):
        with pytest.raises(ValidationError):
            aftersales_service.create_repair({"customer_id": customer.id, "device_info": "Pixel"})

    def test_filter_by_status(self, client, admin_headers, customer):
        self._ticket(customer)
        other = self._ticket(customer)
        aftersales_service.update_repair(other.id, {"status": "DIAGNOSING"})

        body = client.get("/api/repairs?status=DIAGNOSING", headers=admin_headers).json

        assert [r["id"] for r in body["items"]] == [other.id]


# =============================================================================
# TRADE-INS
# =============================================================================


class TestTradeIns:

    def test_accepting_marks_imei_traded_in(self, client, admin_headers, customer, make_product):
        product = make_product()
        imei = imei_service.create_imei({"imei": "490154203237518", "product_id": product.id, "status": "RESERVED"})
        trade_in = aftersales_service.create_trade_in({
            "customer_id": customer.id,
            "imei_id": imei.id,
            "product_id": product.id,
            "device_name": "Galaxy S10",
            "condition": "Good",
            "offered_price_cents": 150_000,
        })

        resp = client.put(f"/api/trade-ins/{trade_in.id}", json={"status": "ACCEPTED"}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["trade_in"]["status"] == "ACCEPTED"
        assert db.session.get(Imei, imei.id).status == ImeiStatus.TRADED_IN

    def test_rejected_is_final(self, customer):
        trade_in = aftersales_service.create_trade_in(
            {"customer_id": customer.id, "device_name": "Nokia", "condition": "Poor", "offered_price_cents": 5_000}
        )
        aftersales_service.change_trade_in_status(trade_in.id, "REJECTED")
        with pytest.raises(ConflictError):
            aftersales_service.change_trade_in_status(trade_in.id, "ACCEPTED")

    def test_cannot_resell_before_accepting(self, customer):
        trade_in = aftersales_service.create_trade_in(
            {"device_name": "Nokia", "condition": "Poor", "offered_price_cents": 5_000}
        )
        with pytest.raises(ConflictError):
            aftersales_service.change_trade_in_status(trade_in.id, "RESOLD")

    def test_offer_must_be_positive(self):
        with pytest.raises(ValidationError):
            aftersales_service.create_trade_in({"device_name": "Nokia", "condition": "Poor", "offered_price_cents": 0})


# =============================================================================
# WARRANTIES
# =============================================================================


class TestWarranties:

    def _warranty(self, product, *, start, end, **extra):
        body = {
            "product_id": product.id,
            "type": "SHOP",
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
        }
        body.update(extra)
        return aftersales_service.create_warranty(body)

    def test_active_warranty_can_be_claimed(self, client, admin_headers, make_product, customer):
        product = make_product()
        now = utcnow()
        warranty = self._warranty(product, start=now, end=now + timedelta(days=365), customer_id=customer.id)

        resp = client.put(f"/api/warranties/{warranty.id}", json={"status": "CLAIMED"}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["warranty"]["status"] == "CLAIMED"

    def test_past_end_date_reads_as_expired(self, client, admin_headers, make_product):
        product = make_product()
        now = utcnow()
        warranty = self._warranty(product, start=now - timedelta(days=400), end=now - timedelta(days=35))

        expired = client.get("/api/warranties?status=EXPIRED", headers=admin_headers).json
        active = client.get("/api/warranties?status=ACTIVE", headers=admin_headers).json

        assert [w["id"] for w in expired["items"]] == [warranty.id]
        assert expired["items"][0]["status"] == "EXPIRED"
        assert active["count"] == 0

    def test_expired_warranty_cannot_be_claimed(self, client, admin_headers, make_product):
        product = make_product()
        now = utcnow()
        warranty = self._warranty(product, start=now - timedelta(days=30), end=now - timedelta(days=1))

        resp = client.put(f"/api/warranties/{warranty.id}", json={"status": "CLAIMED"}, headers=admin_headers)

        assert resp.status_code == 409

    def test_expired_cannot_be_set(self, make_product):
        product = make_product()
        now = utcnow()
        warranty = self._warranty(product, start=now, end=now + timedelta(days=30))
        with pytest.raises(ValidationError):
            aftersales_service.change_warranty_status(warranty.id, "EXPIRED")

    def test_end_before_start(self, make_product):
        product = make_product()
        now = utcnow()
        with pytest.raises(ValidationError):
            self._warranty(product, start=now, end=now - timedelta(days=1))

    def test_imei_must_match_product(self, make_product):
        product, other = make_product(), make_product()
        imei = imei_service.create_imei({"imei": "490154203237518", "product_id": other.id})
        now = utcnow()
        with pytest.raises(ValidationError):
            self._warranty(product, start=now, end=now + timedelta(days=30), imei_id=imei.id)

    def test_only_admin_deletes(self, client, admin_headers, seller_headers, make_product):
        product = make_product()
        now = utcnow()
        warranty = self._warranty(product, start=now, end=now + timedelta(days=30))

        assert client.delete(f"/api/warranties/{warranty.id}", headers=seller_headers).status_code == 403
        assert client.delete(f"/api/warranties/{warranty.id}", headers=admin_headers).status_code == 200
