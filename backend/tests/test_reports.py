"""
Dashboard and reports.

Only COMPLETED sales count; voided and refunded sales never show up in
revenue figures.
"""

import pytest

from phonepos.services import expense_service, purchase_service, sales_service


@pytest.fixture
def trading_day(admin_user, supplier, make_product):
    """Three sales (one voided, one refunded), one received purchase, one expense."""
    phone = make_product("Galaxy A55", stock=5, price_cents=100_000, cost_price_cents=50_000)

    def sell(**extra):
        body = {"items": [{"product_id": phone.id, "quantity": 1}], "paid_cents": 200_000}
        body.update(extra)
        return sales_service.create_sale(body, user_id=admin_user.id)

    kept = sell(tax_cents=5_000)
    voided = sell()
    refunded = sell()
    sales_service.void_sale(voided.id, user_id=admin_user.id)
    sales_service.refund_sale(refunded.id, user_id=admin_user.id)

    purchase = purchase_service.create_purchase({
        "supplier_id": supplier.id,
        "items": [{"product_id": phone.id, "quantity": 2, "unit_cost_cents": 50_000}],
        "reduce_cents": 1_000,
        "expenses": [{"label": "Delivery", "amount_cents": 2_000}],
    })
    purchase_service.change_status(purchase.id, "RECEIVED")

    expense_service.create_expense({"title": "Rent", "amount_cents": 30_000})
    return {"product": phone, "kept": kept}


def test_sales_report_excludes_reversed_sales(client, admin_headers, trading_day):
    body = client.get("/api/reports/sales", headers=admin_headers).json

    assert body["summary"]["count"] == 1
    assert body["summary"]["total_sales_cents"] == 105_000
    assert body["summary"]["total_tax_cents"] == 5_000
    assert body["summary"]["net_revenue_cents"] == 100_000
    assert [s["invoice_no"] for s in body["sales"]] == [trading_day["kept"].invoice_no]
    assert len(body["grouped"]) == 1
    assert body["grouped"][0]["revenue_cents"] == 105_000


def test_sales_report_group_by_month(client, admin_headers, trading_day):
    body = client.get("/api/reports/sales?group_by=month", headers=admin_headers).json
    assert len(body["grouped"][0]["period"]) == len("2025-03")


def test_invalid_group_by(client, admin_headers):
    resp = client.get("/api/reports/sales?group_by=week", headers=admin_headers)
    assert resp.status_code == 400


def test_inverted_range(client, admin_headers):
    resp = client.get("/api/reports/sales?from=2025-03-10&to=2025-03-01", headers=admin_headers)
    assert resp.status_code == 400


def test_profit_and_loss(client, admin_headers, trading_day):
    body = client.get("/api/reports/profit-loss", headers=admin_headers).json

    assert body["revenue"]["net_cents"] == 100_000
    assert body["revenue"]["tax_cents"] == 5_000
    assert body["revenue"]["sales_count"] == 1
    assert body["costs"]["cogs_cents"] == 101_000
    assert body["expenses"]["total_cents"] == 30_000
    assert body["profit"]["gross_cents"] == -1_000
    assert body["profit"]["net_cents"] == -31_000


def test_profit_and_loss_is_admin_only(client, seller_headers):
    assert client.get("/api/reports/profit-loss", headers=seller_headers).status_code == 403


def test_expense_report(client, admin_headers, trading_day):
    category = expense_service.create_expense_category("Transport")
    expense_service.create_expense({"title": "Taxi", "amount_cents": 4_000, "category_id": category.id})

    body = client.get("/api/reports/expenses", headers=admin_headers).json

    assert body["summary"] == {"count": 2, "total_expense_cents": 34_000}
    assert body["by_category"][0] == {"category": "Uncategorized", "count": 1, "amount_cents": 30_000}


def test_inventory_report(client, seller_headers, make_product):
    make_product("Low", stock=3, cost_price_cents=10_000)
    make_product("Empty", stock=0)
    make_product("Plenty", stock=9, cost_price_cents=20_000)

    body = client.get("/api/reports/inventory", headers=seller_headers).json

    assert [p["name"] for p in body["low_stock"]] == ["Low"]
    assert body["summary"]["out_of_stock_count"] == 1
    assert body["summary"]["total_stock"] == 12
    assert body["summary"]["total_value_cents"] == 3 * 10_000 + 9 * 20_000
    assert body["summary"]["low_stock_threshold"] == 5


def test_dashboard(client, seller_headers, trading_day):
    body = client.get("/api/dashboard/stats", headers=seller_headers).json

    assert body["today"] == {"sales_cents": 105_000, "sales_count": 1}
    assert body["monthly"]["expense_cents"] == 30_000
    assert body["monthly"]["profit_cents"] == 75_000
    assert body["overview"]["total_products"] == 1
    assert body["overview"]["pending_purchases"] == 0
    assert len(body["recent_sales"]) == 3
