"""
Operating expenses and expense categories.
"""

import pytest

from phonepos.extensions import db
from phonepos.models import Expense
from phonepos.services import expense_service
from phonepos.validation import ConflictError, ValidationError


def test_create_expense(client, seller_headers, seller_user):
    category = expense_service.create_expense_category("Rent")

    resp = client.post(
        "/api/expenses",
        json={"title": "October rent", "amount_cents": 300_000, "category_id": category.id, "date": "2025-10-01"},
        headers=seller_headers,
    )

    assert resp.status_code == 201
    assert resp.json["expense"]["date"] == "2025-10-01T00:00:00Z"
    assert db.session.query(Expense).one().created_by_user_id == seller_user.id


@pytest.mark.parametrize("amount", [0, -100])
def test_amount_must_be_positive(client, admin_headers, amount):
    resp = client.post("/api/expenses", json={"title": "Tea", "amount_cents": amount}, headers=admin_headers)
    assert resp.status_code == 400


def test_title_required():
    with pytest.raises(ValidationError, match="title"):
        expense_service.create_expense({"amount_cents": 100})


def test_unknown_category(client, admin_headers):
    resp = client.post(
        "/api/expenses", json={"title": "Tea", "amount_cents": 100, "category_id": 999_999}, headers=admin_headers
    )
    assert resp.status_code == 404


def test_list_reports_total_over_all_pages(client, admin_headers):
    for amount in (1_000, 2_000, 3_000):
        expense_service.create_expense({"title": f"Snacks {amount}", "amount_cents": amount})

    body = client.get("/api/expenses?per_page=2", headers=admin_headers).json

    assert body["count"] == 2
    assert body["pagination"]["total"] == 3
    assert body["total_amount_cents"] == 6_000


def test_list_filters_by_date_range(client, admin_headers):
    expense_service.create_expense({"title": "Old", "amount_cents": 100, "date": "2025-01-15"})
    expense_service.create_expense({"title": "New", "amount_cents": 200, "date": "2025-03-15"})

    body = client.get("/api/expenses?from=2025-03-01&to=2025-03-31", headers=admin_headers).json

    assert [e["title"] for e in body["items"]] == ["New"]
    assert body["total_amount_cents"] == 200


def test_update_expense(client, admin_headers):
    expense = expense_service.create_expense({"title": "Power", "amount_cents": 5_000})

    resp = client.put(f"/api/expenses/{expense.id}", json={"amount_cents": 6_500}, headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json["expense"]["amount_cents"] == 6_500


def test_only_admin_deletes(client, admin_headers, seller_headers):
    expense = expense_service.create_expense({"title": "Power", "amount_cents": 5_000})

    assert client.delete(f"/api/expenses/{expense.id}", headers=seller_headers).status_code == 403
    assert client.delete(f"/api/expenses/{expense.id}", headers=admin_headers).status_code == 200
    assert db.session.query(Expense).count() == 0


class TestExpenseCategories:

    def test_duplicate_name_case_insensitive(self, client, admin_headers):
        expense_service.create_expense_category("Utilities")

        resp = client.post("/api/expenses/categories", json={"name": "UTILITIES"}, headers=admin_headers)

        assert resp.status_code == 409

    def test_category_in_use_cannot_be_deleted(self):
        category = expense_service.create_expense_category("Utilities")
        expense_service.create_expense({"title": "Water", "amount_cents": 900, "category_id": category.id})

        with pytest.raises(ConflictError, match="1 expense"):
            expense_service.delete_expense_category(category.id)

    def test_list_counts_expenses(self, client, admin_headers):
        used = expense_service.create_expense_category("Utilities")
        expense_service.create_expense_category("Marketing")
        expense_service.create_expense({"title": "Water", "amount_cents": 900, "category_id": used.id})

        body = client.get("/api/expenses/categories", headers=admin_headers).json

        counts = {c["name"]: c["expense_count"] for c in body["items"]}
        assert counts == {"Marketing": 0, "Utilities": 1}
