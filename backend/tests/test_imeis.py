"""
IMEI registry: uniqueness, bulk intake, and the SOLD flag being owned by sales.
"""

import pytest

from phonepos.extensions import db
from phonepos.models import Imei, ImeiStatus
from phonepos.services import imei_service, sales_service
from phonepos.validation import ConflictError, GuardError, ValidationError


IMEI_A = "356938035643809"
IMEI_B = "356938035643817"
IMEI_C = "356938035643825"


class TestCreateImei:

    def test_create(self, client, admin_headers, make_product):
        product = make_product()
        resp = client.post("/api/imeis", json={"imei": f" {IMEI_A} ", "product_id": product.id}, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["imei"]["imei"] == IMEI_A
        assert resp.json["imei"]["status"] == "IN_STOCK"

    @pytest.mark.parametrize("value", ["12345", "1" * 21, ""])
    def test_length_bounds(self, make_product, value):
        product = make_product()
        with pytest.raises(ValidationError):
            imei_service.create_imei({"imei": value, "product_id": product.id})

    def test_duplicate_rejected(self, client, admin_headers, make_product):
        product = make_product()
        imei_service.create_imei({"imei": IMEI_A, "product_id": product.id})

        resp = client.post("/api/imeis", json={"imei": IMEI_A, "product_id": product.id}, headers=admin_headers)

        assert resp.status_code == 409
        assert resp.json["error"] == "IMEI already exists in the system"

    def test_cannot_create_as_sold(self, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            imei_service.create_imei({"imei": IMEI_A, "product_id": product.id, "status": "SOLD"})

    def test_seller_cannot_register(self, client, seller_headers, make_product):
        product = make_product()
        resp = client.post("/api/imeis", json={"imei": IMEI_A, "product_id": product.id}, headers=seller_headers)
        assert resp.status_code == 403


class TestBulkCreate:

    def test_bulk_creates_all(self, client, admin_headers, make_product):
        product = make_product()
        resp = client.post(
            "/api/imeis/bulk",
            json={"product_id": product.id, "imeis": [IMEI_A, IMEI_B, IMEI_C]},
            headers=admin_headers,
        )

        assert resp.status_code == 201
        assert resp.json["count"] == 3

    def test_existing_duplicate_rejects_whole_batch(self, make_product):
        product = make_product()
        imei_service.create_imei({"imei": IMEI_B, "product_id": product.id})

        with pytest.raises(ConflictError) as exc:
            imei_service.bulk_create_imeis({"product_id": product.id, "imeis": [IMEI_A, IMEI_B, IMEI_C]})

        assert exc.value.details["duplicates"] == [IMEI_B]
        assert str(exc.value) == f"Duplicate IMEIs found: {IMEI_B}"
        assert db.session.query(Imei).count() == 1

    def test_repeated_within_request_rejected(self, make_product):
        product = make_product()
        with pytest.raises(ConflictError) as exc:
            imei_service.bulk_create_imeis({"product_id": product.id, "imeis": [IMEI_A, IMEI_A]})
        assert exc.value.details["duplicates"] == [IMEI_A]

    def test_empty_batch_rejected(self, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            imei_service.bulk_create_imeis({"product_id": product.id, "imeis": []})


class TestSoldFlag:

    @pytest.fixture
    def sold_imei(self, admin_user, make_product):
        product = make_product(stock=1)
        imei = imei_service.create_imei({"imei": IMEI_A, "product_id": product.id})
        sales_service.create_sale(
            {
                "items": [{"product_id": product.id, "quantity": 1, "imei_id": imei.id}],
                "paid_cents": product.price_cents,
            },
            user_id=admin_user.id,
        )
        return imei

    def test_sold_cannot_be_cleared_manually(self, sold_imei):
        with pytest.raises(ConflictError):
            imei_service.update_imei(sold_imei.id, {"status": "IN_STOCK"})

    def test_cannot_be_marked_sold_manually(self, make_product):
        product = make_product()
        imei = imei_service.create_imei({"imei": IMEI_B, "product_id": product.id})
        with pytest.raises(ConflictError):
            imei_service.update_imei(imei.id, {"status": "SOLD"})

    def test_sold_imei_cannot_be_deleted(self, client, admin_headers, sold_imei):
        resp = client.delete(f"/api/imeis/{sold_imei.id}", headers=admin_headers)
        assert resp.status_code == 400
        assert db.session.get(Imei, sold_imei.id).status == ImeiStatus.SOLD

    def test_sold_imei_cannot_change_product(self, sold_imei, make_product):
        other = make_product()
        with pytest.raises(GuardError):
            imei_service.update_imei(sold_imei.id, {"product_id": other.id})

    def test_manual_status_change_between_unsold_states(self, make_product):
        product = make_product()
        imei = imei_service.create_imei({"imei": IMEI_B, "product_id": product.id})

        updated = imei_service.update_imei(imei.id, {"status": "DEFECTIVE"})

        assert updated.status == ImeiStatus.DEFECTIVE


def test_list_filters_by_status_and_search(client, admin_headers, make_product):
    product = make_product("Galaxy A15")
    imei_service.bulk_create_imeis({"product_id": product.id, "imeis": [IMEI_A, IMEI_B]})
    imei_service.update_imei(
        db.session.query(Imei).filter_by(imei=IMEI_B).one().id, {"status": "RESERVED"}
    )

    in_stock = client.get("/api/imeis?status=IN_STOCK", headers=admin_headers).json
    by_name = client.get("/api/imeis?q=galaxy", headers=admin_headers).json

    assert [i["imei"] for i in in_stock["items"]] == [IMEI_A]
    assert by_name["count"] == 2
