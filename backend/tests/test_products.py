"""
Catalog management and bulk product import.
"""

import io

import pytest
from openpyxl import Workbook

from conftest import stock_of
from phonepos.extensions import db
from phonepos.models import Category, Product
from phonepos.services import import_service, products_service
from phonepos.validation import ConflictError, ValidationError


# =============================================================================
# CATALOG
# =============================================================================


class TestProducts:

    def test_opening_stock(self, client, admin_headers):
        resp = client.post(
            "/api/products",
            json={"name": "Galaxy S24", "price_cents": 2_500_000, "stock": 4},
            headers=admin_headers,
        )

        assert resp.status_code == 201
        assert stock_of(resp.json["product"]["id"]) == 4

    def test_opening_stock_must_be_non_negative(self):
        with pytest.raises(ValidationError):
            products_service.create_product({"name": "Galaxy S24", "price_cents": 1, "stock": -1})

    def test_stock_cannot_be_edited_directly(self, client, admin_headers, make_product):
        product = make_product(stock=1)
        resp = client.put(f"/api/products/{product.id}", json={"stock": 50}, headers=admin_headers)
        assert resp.status_code == 400
        assert stock_of(product.id) == 1

    def test_duplicate_barcode(self, make_product):
        make_product(barcode="4711")
        with pytest.raises(ConflictError):
            make_product(barcode="4711")

    def test_soft_delete_hides_product(self, client, admin_headers, make_product):
        product = make_product()

        assert client.delete(f"/api/products/{product.id}", headers=admin_headers).status_code == 200

        assert client.get(f"/api/products/{product.id}", headers=admin_headers).status_code == 404
        assert db.session.get(Product, product.id).is_deleted is True
        assert client.get("/api/products", headers=admin_headers).json["count"] == 0

    def test_seller_can_browse_but_not_edit(self, client, seller_headers, make_product):
        product = make_product()
        assert client.get("/api/products", headers=seller_headers).status_code == 200
        resp = client.put(f"/api/products/{product.id}", json={"name": "Cheap"}, headers=seller_headers)
        assert resp.status_code == 403

    def test_search_and_low_stock_filter(self, client, admin_headers, make_product):
        make_product("iPhone 15", stock=1)
        make_product("Redmi Note 13", stock=9)

        by_name = client.get("/api/products?q=redmi", headers=admin_headers).json
        low = client.get("/api/products?low_stock=2", headers=admin_headers).json

        assert [p["name"] for p in by_name["items"]] == ["Redmi Note 13"]
        assert [p["name"] for p in low["items"]] == ["iPhone 15"]


class TestCategories:

    def test_names_are_unique_case_insensitively(self):
        products_service.create_category("Phones")
        with pytest.raises(ConflictError):
            products_service.create_category("phones")

    def test_category_in_use_cannot_be_deleted(self, client, admin_headers):
        category = products_service.create_category("Phones")
        products_service.create_product(
            {"name": "A55", "brand": "Samsung", "model": "A55", "price_cents": 1, "category_id": category.id}
        )

        resp = client.delete(f"/api/categories/{category.id}", headers=admin_headers)

        assert resp.status_code == 409


# =============================================================================
# IMPORT
# =============================================================================


CSV_HEADER = "Name,Brand,Model,Price,Barcode,Stock,Category\n"


def _upload(client, headers, content: bytes, filename: str):
    return client.post(
        "/api/products/import",
        data={"file": (io.BytesIO(content), filename)},
        headers=headers,
        content_type="multipart/form-data",
    )


class TestImport:

    def test_csv_import(self, client, admin_headers):
        content = (
            CSV_HEADER
            + "Galaxy A15,Samsung,SM-A155,459.99,111,3,Phones\n"
            + "Redmi 13,Xiaomi,2404,320,222,,phones\n"
        ).encode()

        resp = _upload(client, admin_headers, content, "stock.csv")

        assert resp.status_code == 200
        assert resp.json == {"success_count": 2, "fail_count": 0, "errors": []}
        galaxy = db.session.query(Product).filter_by(barcode="111").one()
        assert galaxy.price_cents == 45_999
        assert stock_of(galaxy.id) == 3
        assert db.session.query(Category).count() == 1

    def test_bad_rows_are_reported_and_skipped(self, client, admin_headers, make_product):
        make_product(barcode="111")
        content = (
            CSV_HEADER
            + "Dup,Samsung,X,100,111,1,\n"
            + "No Price,Samsung,X,,333,1,\n"
            + "Good,Samsung,X,100,444,2,\n"
            + "Bad Stock,Samsung,X,100,555,many,\n"
        ).encode()

        resp = _upload(client, admin_headers, content, "stock.csv")

        body = resp.json
        assert body["success_count"] == 1
        assert body["fail_count"] == 3
        assert body["errors"][0] == {"row": 1, "barcode": "111", "error": "Product with barcode 111 already exists"}
        assert [e["row"] for e in body["errors"]] == [1, 2, 4]
        assert db.session.query(Product).filter_by(barcode="555").first() is None

    def test_xlsx_import(self, client, admin_headers):
        wb = Workbook()
        ws = wb.active
        ws.append(["Name", "Brand", "Model", "Price", "Barcode", "Stock", "Category", "Cost"])
        ws.append(["Pixel 8", "Google", "G9BQD", 699, 8_888, 2, "Phones", 550.5])
        buf = io.BytesIO()
        wb.save(buf)

        resp = _upload(client, admin_headers, buf.getvalue(), "stock.xlsx")

        assert resp.json["success_count"] == 1
        pixel = db.session.query(Product).filter_by(barcode="8888").one()
        assert pixel.price_cents == 69_900
        assert pixel.cost_price_cents == 55_050
        assert pixel.stock == 2

    def test_unsupported_extension(self, client, admin_headers):
        resp = _upload(client, admin_headers, b"whatever", "stock.pdf")
        assert resp.status_code == 400

    def test_file_is_required(self, client, admin_headers):
        resp = client.post("/api/products/import", data={}, headers=admin_headers, content_type="multipart/form-data")
        assert resp.status_code == 400
        assert resp.json["error"] == "file is required"

    def test_seller_cannot_import(self, client, seller_headers):
        resp = _upload(client, seller_headers, CSV_HEADER.encode(), "stock.csv")
        assert resp.status_code == 403

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            import_service._to_cents("Price", "-1")

    def test_non_finite_cells_fail_only_their_row(self, client, admin_headers):
        content = (
            CSV_HEADER
            + "Bad Price,Samsung,X,NaN,601,1,\n"
            + "Huge Price,Samsung,X,Infinity,602,1,\n"
            + "Bad Stock,Samsung,X,100,603,NaN,\n"
            + "Good,Samsung,X,10,604,1,\n"
        ).encode()

        resp = _upload(client, admin_headers, content, "stock.csv")

        assert resp.status_code == 200
        body = resp.json
        assert body["success_count"] == 1
        assert [e["row"] for e in body["errors"]] == [1, 2, 3]
        assert body["errors"][0]["error"] == "Price must be a number"
        assert body["errors"][2]["error"] == "Stock must be a number"
        assert db.session.query(Product).filter_by(barcode="604").one().price_cents == 1_000

    def test_fractional_stock_is_rejected(self, client, admin_headers):
        content = (CSV_HEADER + "Half,Samsung,X,100,701,2.7,\n" + "Whole,Samsung,X,100,702,2.0,\n").encode()

        body = _upload(client, admin_headers, content, "stock.csv").json

        assert body["success_count"] == 1
        assert body["errors"] == [{"row": 1, "barcode": "701", "error": "Stock must be a whole number"}]
        assert db.session.query(Product).filter_by(barcode="701").first() is None
        assert stock_of(db.session.query(Product).filter_by(barcode="702").one().id) == 2
